"""
Binary synchronization for media files.

A binary is downloaded only once the diff has shown that its media item
changed. Its git blob SHA is predicted locally so the upload can be skipped
when the repository already holds that object.
"""

from typing import Dict, List

from .github_tree import GitHubTreeService, TreeEntry, git_blob_sha
from .logging_manager import get_logger
from .wordpress_fetcher import WordPressFetcher

logger = get_logger(__name__)


class BinarySynchronizer:
    """Downloads media binaries and makes sure their blobs exist on GitHub."""

    def __init__(self, fetcher: WordPressFetcher, tree_service: GitHubTreeService):
        self.fetcher = fetcher
        self.tree_service = tree_service
        self.downloads = 0
        self.uploads = 0

    async def sync_binary(self, source_url: str, path: str, status: str = 'modified') -> TreeEntry:
        """
        Resolve one binary to a tree entry that points at its blob.

        Args:
            source_url: Absolute URL of the binary
            path: Full repository path of the binary
            status: Diff status to carry over

        Returns:
            TreeEntry with `sha` set and no literal content
        """
        data = await self.fetcher.fetch_binary(source_url)
        self.downloads += 1

        sha = git_blob_sha(data)
        if not await self.tree_service.object_exists(sha):
            sha = await self.tree_service.create_object(data)  # should be the same
            self.uploads += 1
        else:
            logger.info(f"Blob {sha} already exists for {path}")

        return TreeEntry(path=path, status=status, sha=sha)


def resolve_pending_entries(entries: List[TreeEntry], resolved: Dict[str, TreeEntry]) -> List[TreeEntry]:
    """
    Assemble the final entry list.

    Placeholder entries are swapped for their resolved entry. Placeholders
    without one, and resolved binaries whose blob is already at that path,
    are not real changes and are dropped.
    """
    final = []
    for entry in entries:
        if entry.path in resolved:
            if resolved[entry.path].sha != entry.base_sha:
                final.append(resolved[entry.path])
        elif not entry.is_placeholder:
            final.append(entry)
    return final
