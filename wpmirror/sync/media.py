"""
Media resolution: binary asset paths, placeholders and usage detection.

Binary files are registered in the media file map with a placeholder so that
they are never reported as deleted. Only media whose metadata changed get
their binaries downloaded later, by the binary synchronizer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .config import Endpoint
from .records import (
    ContentKind, Dictionaries, MediaRecord, BodyRecord,
    remove_excluded_properties, wrap_in_file_meta
)

UPLOADS_MARKER = '/wp-content/uploads/'
MEDIA_PLACEHOLDER = 'TBD : Binary file to be updated in a later step'


def path_from_media_source_url(source_url: str) -> str:
    """
    Get the path of a media source url after the uploads root.

    Example:
        "https://x/wp-content/uploads/2020/07/img.jpg" -> "2020/07/img.jpg"
    """
    if UPLOADS_MARKER in source_url:
        return source_url.split(UPLOADS_MARKER)[1]
    return urlparse(source_url).path.lstrip('/')


def absolute_media_url(source_url: str, wordpress_url: str) -> str:
    # sometimes the source_url is full and sometimes it is relative
    if source_url.startswith('http'):
        return source_url
    return wordpress_url + source_url


@dataclass
class MediaEntry:
    """One media item and the repository paths of its binaries."""
    id: int
    data: Dict[str, Any]
    metadata_path: str
    source_url: str
    sizes: List[Dict[str, Any]] = field(default_factory=list)
    path: Optional[str] = None  # unsized media (documents)

    @property
    def binary_paths(self) -> List[str]:
        if self.sizes:
            return [s['path'] for s in self.sizes]
        return [self.path] if self.path else []

    def binary_sources(self, wordpress_url: str) -> List[Tuple[str, str]]:
        """
        Binaries to download for this media item.

        Returns:
            `(path, absolute_url)` pairs, one per distinct path
        """
        pairs: Dict[str, str] = {}
        if self.sizes:
            for size in self.sizes:
                pairs.setdefault(size['path'], absolute_media_url(size['source_url'], wordpress_url))
        elif self.path:
            pairs[self.path] = absolute_media_url(self.source_url, wordpress_url)
        return list(pairs.items())


def build_media_entry(record: MediaRecord, dictionaries: Dictionaries, endpoint: Endpoint) -> MediaEntry:
    data = record.to_output_record(dictionaries)
    remove_excluded_properties(data, endpoint.exclude_properties)

    sizes: List[Dict[str, Any]] = []
    path = None
    if record.raw_sizes:
        sizes = [
            {'type': name, 'path': path_from_media_source_url(size['source_url']), **size}
            for name, size in record.raw_sizes.items()
        ]
        sizes.sort(key=lambda s: s.get('width') or 0, reverse=True)  # Big first
        data['sizes'] = sizes
    else:
        path = path_from_media_source_url(record.source_url)
        data['path'] = path

    metadata_path = path_from_media_source_url(record.source_url).split('.')[0] + '.json'
    return MediaEntry(
        id=record.id,
        data=data,
        metadata_path=metadata_path,
        source_url=record.source_url,
        sizes=sizes,
        path=path,
    )


def build_media_file_map(entries: List[MediaEntry], endpoint: Endpoint, source_code_url: Optional[str] = None) -> Dict[str, Any]:
    """
    File map for the media path: binary placeholders plus metadata files.
    """
    file_map: Dict[str, Any] = {}
    for entry in entries:
        for binary_path in entry.binary_paths:
            file_map[binary_path] = MEDIA_PLACEHOLDER
        file_map[entry.metadata_path] = wrap_in_file_meta(endpoint, ContentKind.MEDIA, entry.data, source_code_url)
    return file_map


def find_media_usage(html: str, featured_media: int, entries: List[MediaEntry]) -> List[Dict[str, Any]]:
    """
    List the media sizes a body uses.

    A size is used when its source_url appears verbatim in the HTML or when
    the media item is the featured media. Only sized media are considered.
    """
    usage = []
    for entry in entries:
        for size in entry.sizes:
            source_url_match = size['source_url'] in html
            featured = featured_media == entry.id
            if featured or source_url_match:
                usage.append({
                    'id': entry.id,
                    **size,
                    'source_url_match': source_url_match,
                    'featured': featured,
                })
    return usage


def attach_media_usage(data: Dict[str, Any], record: BodyRecord, html: str, entries: List[MediaEntry]) -> None:
    """Set `media` on an output record, or leave it out when nothing is used."""
    if record.featured_media:
        data['featured_media'] = record.featured_media

    usage = find_media_usage(html, record.featured_media, entries)
    if usage:
        data['media'] = usage
    else:
        data.pop('media', None)
