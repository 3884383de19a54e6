"""
Sync module for mirroring WordPress content into GitHub repositories.

This module fetches posts, pages and media from the WordPress REST API,
normalizes them into JSON metadata + HTML body files, syncs media binaries
only when their metadata changed, and opens one pull request per content type
when something actually differs.
"""

from .config import SyncConfig, Endpoint, GitHubTarget

from .wordpress_fetcher import WordPressFetcher, flatten_rendered_fields

from .records import (
    ContentKind, Dictionaries, ContentRecord, PostRecord, PageRecord, MediaRecord,
    cleanup_content, wrap_in_file_meta
)

from .media import (
    MediaEntry, MEDIA_PLACEHOLDER, path_from_media_source_url, find_media_usage
)

from .github_tree import (
    GitHubTreeService, TreeEntry, CommitReport, FileChange, diff_file_map, git_blob_sha
)

from .binary_sync import BinarySynchronizer, resolve_pending_entries

from .notifier import SlackNotifier

from .orchestrator import (
    EndpointOrchestrator, SyncOrchestrator, SyncSummary, EndpointResult,
    run_sync_orchestration, run_sync_orchestration_sync
)

__all__ = [
    # Configuration
    'SyncConfig',
    'Endpoint',
    'GitHubTarget',

    # Fetching and normalization
    'WordPressFetcher',
    'flatten_rendered_fields',
    'ContentKind',
    'Dictionaries',
    'ContentRecord',
    'PostRecord',
    'PageRecord',
    'MediaRecord',
    'cleanup_content',
    'wrap_in_file_meta',

    # Media
    'MediaEntry',
    'MEDIA_PLACEHOLDER',
    'path_from_media_source_url',
    'find_media_usage',

    # Destination
    'GitHubTreeService',
    'TreeEntry',
    'CommitReport',
    'FileChange',
    'diff_file_map',
    'git_blob_sha',
    'BinarySynchronizer',
    'resolve_pending_entries',

    # Reporting
    'SlackNotifier',

    # Orchestration
    'EndpointOrchestrator',
    'SyncOrchestrator',
    'SyncSummary',
    'EndpointResult',
    'run_sync_orchestration',
    'run_sync_orchestration_sync',
]
