"""
Record normalization: WordPress rows -> output records.

Posts, pages and media share most of their handling. Each kind is a
`ContentRecord` subclass that knows its own link field and lookups; the shared
`to_output_record` copies the source fields and resolves the author.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

from ..config import FIELD_REFERENCE, REFRESH_FREQUENCY, WORDPRESS_API_VERSION
from .config import Endpoint


class ContentKind(str, Enum):
    """Content types synced per endpoint, named after their REST collections."""
    POST = "posts"
    PAGE = "pages"
    MEDIA = "media"


@dataclass(frozen=True)
class Dictionaries:
    """Lookup tables fetched once per endpoint run."""
    categories: Dict[int, str] = field(default_factory=dict)
    tags: Dict[int, str] = field(default_factory=dict)
    users: Dict[int, str] = field(default_factory=dict)


def cleanup_content(html: str) -> str:
    """
    Prepare WordPress HTML for storage.

    Every triple newline becomes a single newline, then one leading newline is
    removed.
    """
    html = html.replace('\n\n\n', '\n')
    if html.startswith('\n'):
        html = html[1:]
    return html


def remove_excluded_properties(data: Dict[str, Any], exclude: Optional[Iterable[str]]) -> None:
    """Delete the named fields from an output record, in place."""
    for name in exclude or ():
        data.pop(name, None)


def common_meta(endpoint: Endpoint, source_code_url: Optional[str] = None) -> Dict[str, Any]:
    """Provenance shared by every file of an endpoint."""
    process = {
        'source_data': endpoint.wordpress_url,
        'deployment_target': endpoint.github_target.tree_url,
    }
    if source_code_url:
        process = {'source_code': source_code_url, **process}
    return {
        'api_version': WORDPRESS_API_VERSION,
        'api_url': endpoint.api_url,
        'process': process,
        'refresh_frequency': REFRESH_FREQUENCY,
    }


def wrap_in_file_meta(endpoint: Endpoint, kind: ContentKind, data: Dict[str, Any], source_code_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Wrap an output record with its provenance metadata.

    Returns:
        `{"meta": {...}, "data": data}`
    """
    return {
        'meta': {
            'created_date': data.get('date_gmt'),
            'updated_date': data.get('modified_gmt'),
            'field_reference': FIELD_REFERENCE[kind.value],
            **common_meta(endpoint, source_code_url),
        },
        'data': data,
    }


class ContentRecord:
    """A raw WordPress row of one content kind."""
    kind: ContentKind

    def __init__(self, fields: Dict[str, Any]):
        self.fields = fields

    @property
    def id(self) -> int:
        return self.fields['id']

    @property
    def slug(self) -> str:
        return self.fields['slug']

    @property
    def wordpress_url(self) -> Optional[str]:
        return self.fields.get('link')

    def to_output_record(self, dictionaries: Dictionaries) -> Dict[str, Any]:
        """Copy all source fields, resolving ids to display names."""
        return {
            **self.fields,
            'author': dictionaries.users.get(self.fields.get('author')),
            'wordpress_url': self.wordpress_url,
        }


class BodyRecord(ContentRecord):
    """A post or page: has an HTML body and may feature a media item."""

    @property
    def body_html(self) -> str:
        return cleanup_content(self.fields.get('content') or '')

    @property
    def featured_media(self) -> int:
        return self.fields.get('featured_media') or 0

    @property
    def json_path(self) -> str:
        return f"{self.slug}.json"

    @property
    def html_path(self) -> str:
        return f"{self.slug}.html"


class PostRecord(BodyRecord):
    kind = ContentKind.POST

    def to_output_record(self, dictionaries: Dictionaries) -> Dict[str, Any]:
        data = super().to_output_record(dictionaries)
        data['categories'] = [dictionaries.categories.get(c) for c in self.fields.get('categories') or []]
        data['tags'] = [dictionaries.tags.get(t) for t in self.fields.get('tags') or []]
        return data


class PageRecord(BodyRecord):
    kind = ContentKind.PAGE


class MediaRecord(ContentRecord):
    kind = ContentKind.MEDIA

    @property
    def source_url(self) -> str:
        return self.fields['source_url']

    @property
    def wordpress_url(self) -> Optional[str]:
        return self.fields.get('source_url')

    @property
    def raw_sizes(self) -> Dict[str, Dict[str, Any]]:
        details = self.fields.get('media_details') or {}
        return details.get('sizes') or {}


RECORD_TYPES: Dict[ContentKind, Type[ContentRecord]] = {
    ContentKind.POST: PostRecord,
    ContentKind.PAGE: PageRecord,
    ContentKind.MEDIA: MediaRecord,
}


def make_records(kind: ContentKind, rows: List[Dict[str, Any]]) -> List[ContentRecord]:
    record_type = RECORD_TYPES[kind]
    return [record_type(row) for row in rows]
