"""
Sync Orchestration

This module sequences the mirror pipeline for every configured endpoint:
- dictionary lookups (categories, tags, users)
- media: file map with binary placeholders, diff, binary sync, pull request
- posts and pages: normalized records with media usage, diff, pull request
- Slack reporting of the pull requests, and of failures in live mode

Endpoints run one at a time in configured order; within an endpoint the
content types always run media, posts, pages, because media usage detection
needs the media entries.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional

import aiohttp

from ..config import (
    COMMIT_TITLE_MEDIA, COMMIT_TITLE_PAGES, COMMIT_TITLE_POSTS,
    GitHubCommitter, get_default_debug_channel, get_github_committer, get_github_token, get_slack_token
)
from .binary_sync import BinarySynchronizer, resolve_pending_entries
from .config import Endpoint, SyncConfig
from .error_tracker import ConfigurationError, EndpointSyncError, ErrorSeverity, ErrorTracker
from .github_tree import CommitReport, GitHubTreeService, TreeEntry, join_path
from .logging_manager import LoggingManager
from .media import MediaEntry, attach_media_usage, build_media_entry, build_media_file_map
from .notifier import SlackNotifier
from .records import (
    BodyRecord, ContentKind, Dictionaries, MediaRecord,
    make_records, remove_excluded_properties, wrap_in_file_meta
)
from .resilience import RetryPolicy
from .wordpress_fetcher import WordPressFetcher

logger = LoggingManager.get_logger(__name__)

COMMIT_TITLES = {
    ContentKind.MEDIA: COMMIT_TITLE_MEDIA,
    ContentKind.POST: COMMIT_TITLE_POSTS,
    ContentKind.PAGE: COMMIT_TITLE_PAGES,
}


@dataclass
class EndpointResult:
    """Result of one endpoint run."""
    endpoint: str
    status: str  # success, failed
    processing_time: float
    reports: List[CommitReport] = field(default_factory=list)
    error_message: Optional[str] = None


@dataclass
class SyncSummary:
    """Summary of the entire run."""
    total_endpoints: int
    successful_endpoints: int
    failed_endpoints: int
    total_pull_requests: int
    total_processing_time: float
    errors: List[Dict[str, Any]]
    results: List[EndpointResult]


class EndpointOrchestrator:
    """
    Runs the pipeline for one endpoint.

    All collaborators are passed in, so every stage can be driven with fakes.
    Pull requests raised during the run accumulate in `reports`, including
    when a later content type fails.
    """

    def __init__(self, endpoint: Endpoint, fetcher: WordPressFetcher, tree_service: GitHubTreeService,
                 binaries: BinarySynchronizer, committer: GitHubCommitter,
                 source_code_url: Optional[str] = None, error_tracker: Optional[ErrorTracker] = None,
                 debug_mode: bool = False):
        self.endpoint = endpoint
        self.target = endpoint.github_target
        self.fetcher = fetcher
        self.tree_service = tree_service
        self.binaries = binaries
        self.committer = committer
        self.source_code_url = source_code_url
        self.error_tracker = error_tracker or ErrorTracker()
        self.debug_mode = debug_mode
        self.reports: List[CommitReport] = []
        self.failures: Dict[str, str] = {}
        self.logger = logging.LoggerAdapter(logger, {'endpoint': endpoint.name})

    async def fetch_dictionaries(self) -> Dictionaries:
        return Dictionaries(
            categories=await self.fetcher.fetch_dictionary('categories'),
            tags=await self.fetcher.fetch_dictionary('tags'),
            users=await self.fetcher.fetch_dictionary('users'),
        )

    async def load_media(self, dictionaries: Dictionaries) -> List[MediaEntry]:
        rows = await self.fetcher.fetch_paged(ContentKind.MEDIA.value)
        records = make_records(ContentKind.MEDIA, rows)
        return [build_media_entry(record, dictionaries, self.endpoint) for record in records if isinstance(record, MediaRecord)]

    async def publish_media(self, entries: List[MediaEntry]) -> Optional[CommitReport]:
        """
        Diff the media file map and sync binaries of changed media only.
        """
        file_map = build_media_file_map(entries, self.endpoint, self.source_code_url)
        diff = await self.tree_service.compute_diff(file_map, self.target.media_path)

        changed = {e.path for e in diff if e.content is not None and not e.is_placeholder}
        pending = {e.path: e for e in diff if e.is_placeholder}
        if changed:
            self.logger.info(f"Checking {len(diff)} media items")

        resolved: Dict[str, TreeEntry] = {}
        for entry in entries:
            if join_path(self.target.media_path, entry.metadata_path) not in changed:
                continue
            for path, url in entry.binary_sources(self.endpoint.wordpress_url):
                full_path = join_path(self.target.media_path, path)
                if full_path in resolved:
                    continue
                status = pending[full_path].status if full_path in pending else 'added'
                resolved[full_path] = await self.binaries.sync_binary(url, full_path, status)

        tree = resolve_pending_entries(diff, resolved)
        return await self._propose(tree, f"{COMMIT_TITLE_MEDIA} ({len(tree)} updates)")

    def build_content_file_map(self, records: List[BodyRecord], dictionaries: Dictionaries,
                               media_entries: List[MediaEntry]) -> Dict[str, Any]:
        file_map: Dict[str, Any] = {}
        for record in records:
            data = record.to_output_record(dictionaries)
            html = record.body_html
            if self.target.sync_media:
                attach_media_usage(data, record, html, media_entries)
            remove_excluded_properties(data, self.endpoint.exclude_properties)

            file_map[record.json_path] = wrap_in_file_meta(self.endpoint, record.kind, data, self.source_code_url)
            file_map[record.html_path] = html
        return file_map

    async def sync_content(self, kind: ContentKind, dictionaries: Dictionaries,
                           media_entries: List[MediaEntry]) -> Optional[CommitReport]:
        """Posts or pages: normalize, diff, propose."""
        rows = await self.fetcher.fetch_paged(kind.value)
        records = [r for r in make_records(kind, rows) if isinstance(r, BodyRecord)]
        file_map = self.build_content_file_map(records, dictionaries, media_entries)

        path_prefix = self.target.post_path if kind == ContentKind.POST else self.target.page_path
        tree = await self.tree_service.compute_diff(file_map, path_prefix)
        html_updates = len([e for e in tree if e.path.endswith('.html')])
        return await self._propose(tree, f"{COMMIT_TITLES[kind]} ({html_updates} updates)")

    async def _propose(self, tree: List[TreeEntry], title: str) -> Optional[CommitReport]:
        if not tree:
            self.logger.info(f"No changes for '{title.split(' (')[0]}'")
            return None
        report = await self.tree_service.propose_change(tree, title, self.committer, True)
        if report:
            self.reports.append(report)
        return report

    async def _run_stage(self, kind: ContentKind, stage: Awaitable[Optional[CommitReport]]) -> None:
        """Await one content type; failures are recorded so later types still run."""
        try:
            await stage
        except Exception as e:
            if self.debug_mode:
                raise
            self.failures[kind.value] = str(e)
            self.error_tracker.report_exception(e, source_id=f"{self.endpoint.name}/{kind.value}")
            self.logger.error(f"Failed to publish {kind.value}: {e}", exc_info=True)

    async def sync(self) -> List[CommitReport]:
        """
        Run the full pipeline for the endpoint.

        Returns:
            Reports of the pull requests that were opened

        Raises:
            EndpointSyncError: when any content type failed to publish
        """
        dictionaries = await self.fetch_dictionaries()

        media_entries: List[MediaEntry] = []
        if self.target.sync_media:
            media_entries = await self.load_media(dictionaries)
            await self._run_stage(ContentKind.MEDIA, self.publish_media(media_entries))

        await self._run_stage(ContentKind.POST, self.sync_content(ContentKind.POST, dictionaries, media_entries))
        await self._run_stage(ContentKind.PAGE, self.sync_content(ContentKind.PAGE, dictionaries, media_entries))

        if self.failures:
            raise EndpointSyncError(
                f"Endpoint {self.endpoint.name} failed for: {', '.join(self.failures)}",
                source_id=self.endpoint.name,
                failures=self.failures
            )
        return self.reports


class SyncOrchestrator:
    """
    Runs the selected endpoints one after another and reports the results.

    In live mode a failing endpoint is logged, tracked and reported to the
    debug Slack channel, and the next endpoint still runs. In debug mode
    errors propagate uncaught.
    """

    def __init__(self, config: SyncConfig, debug_mode: bool = False, trigger_context: Optional[Dict[str, Any]] = None,
                 github_token: Optional[str] = None, committer: Optional[GitHubCommitter] = None,
                 slack_token: Optional[str] = None):
        self.config = config
        self.debug_mode = debug_mode
        self.trigger_context = trigger_context or {}

        self.logging_manager = LoggingManager(log_level=config.log_level, log_file=config.log_file)
        self.error_tracker = ErrorTracker()
        self.logger = self.logging_manager.get_logger(__name__)

        try:
            self.github_token = github_token or get_github_token()
        except ValueError as e:
            raise ConfigurationError(str(e), recovery_suggestion="Set GITHUB_TOKEN in the environment or .env file.")
        self.committer = committer or get_github_committer()
        self.slack_token = slack_token if slack_token is not None else get_slack_token()
        self.retry_policy = RetryPolicy(retries=config.fetch_retries, delay_seconds=config.retry_delay_seconds)

        self.results: List[EndpointResult] = []

    def create_endpoint_orchestrator(self, session: aiohttp.ClientSession, endpoint: Endpoint) -> EndpointOrchestrator:
        fetcher = WordPressFetcher(session, endpoint.api_url, retry_policy=self.retry_policy)
        tree_service = GitHubTreeService(session, endpoint.github_target, self.github_token)
        return EndpointOrchestrator(
            endpoint=endpoint,
            fetcher=fetcher,
            tree_service=tree_service,
            binaries=BinarySynchronizer(fetcher, tree_service),
            committer=self.committer,
            source_code_url=self.config.source_code_url,
            error_tracker=self.error_tracker,
            debug_mode=self.debug_mode,
        )

    async def run(self, names: Optional[List[str]] = None) -> SyncSummary:
        start_time = time.time()
        work = self.config.select_endpoints(names, self.debug_mode)
        if work:
            self.logger.info(f"Using {len(work)} endpoint(s)")
        else:
            self.logger.error('No endpoints selected. For debug mode you should set at least one "enabled_local" to true.')

        async with aiohttp.ClientSession() as session:
            for endpoint in work:
                self.results.append(await self._sync_endpoint(session, endpoint))

        summary = self._generate_summary(start_time)
        self.logger.info(
            f"Sync finished: {summary.successful_endpoints}/{summary.total_endpoints} endpoints, "
            f"{summary.total_pull_requests} pull requests",
            extra={'details': self.error_tracker.generate_report()}
        )
        return summary

    async def _sync_endpoint(self, session: aiohttp.ClientSession, endpoint: Endpoint) -> EndpointResult:
        self.logger.info(f"*** Checking endpoint for {endpoint.name} ***")
        start_time = time.time()
        orchestrator = self.create_endpoint_orchestrator(session, endpoint)

        status, error_message = 'success', None
        try:
            await orchestrator.sync()
        except Exception as e:
            if self.debug_mode:
                raise
            status, error_message = 'failed', str(e)
            if not isinstance(e, EndpointSyncError):
                self.error_tracker.report_exception(e, source_id=endpoint.name, severity=ErrorSeverity.CRITICAL)
            self.logger.error(f"Endpoint {endpoint.name} failed: {e}", exc_info=True)
            await self._report_error(session, e, endpoint)

        await self._report_changes(session, endpoint, orchestrator.reports)
        return EndpointResult(
            endpoint=endpoint.name,
            status=status,
            processing_time=time.time() - start_time,
            reports=list(orchestrator.reports),
            error_message=error_message,
        )

    async def _report_changes(self, session: aiohttp.ClientSession, endpoint: Endpoint, reports: List[CommitReport]) -> None:
        if not (reports and endpoint.reporting_channel_slack and self.slack_token):
            return
        notifier = SlackNotifier(session, self.slack_token, endpoint.reporting_channel_slack, username=endpoint.name)
        try:
            await notifier.notify_reports(reports)
        except Exception as e:
            if self.debug_mode:
                raise
            self.error_tracker.report_exception(e, source_id=endpoint.name, severity=ErrorSeverity.WARNING)
            self.logger.error(f"Failed to report changes for {endpoint.name}: {e}")

    async def _report_error(self, session: aiohttp.ClientSession, error: BaseException, endpoint: Endpoint) -> None:
        debug_channel = self.config.debug_channel or get_default_debug_channel()
        if not (debug_channel and self.slack_token):
            return
        notifier = SlackNotifier(session, self.slack_token, debug_channel)
        context = {'endpoint': endpoint.name, **self.trigger_context}
        try:
            await notifier.report_error(error, context)
        except Exception as e:
            self.error_tracker.report_exception(e, source_id=endpoint.name, severity=ErrorSeverity.WARNING)
            self.logger.error(f"Failed to send error report for {endpoint.name}: {e}")

    def _generate_summary(self, start_time: float) -> SyncSummary:
        return SyncSummary(
            total_endpoints=len(self.results),
            successful_endpoints=len([r for r in self.results if r.status == 'success']),
            failed_endpoints=len([r for r in self.results if r.status == 'failed']),
            total_pull_requests=sum(len(r.reports) for r in self.results),
            total_processing_time=time.time() - start_time,
            errors=[e.to_dict() for e in self.error_tracker.get_errors()],
            results=self.results,
        )


async def run_sync_orchestration(config_path: str, names: Optional[List[str]] = None, debug_mode: bool = False,
                                 trigger_context: Optional[Dict[str, Any]] = None) -> SyncSummary:
    """
    Convenience function to run the mirror sync from a configuration file.

    Args:
        config_path: Path to the endpoints YAML file
        names: Endpoint names to run; None runs all enabled endpoints
        debug_mode: Local/debug mode (uses `enabled_local`, errors propagate)
        trigger_context: Extra context included in error reports

    Returns:
        SyncSummary with results

    Raises:
        Whatever aborted the run. Outside debug mode it is first reported to
        the debug channel.
    """
    debug_channel = get_default_debug_channel()
    try:
        config = SyncConfig.from_yaml(config_path)
        debug_channel = config.debug_channel or debug_channel
        orchestrator = SyncOrchestrator(config, debug_mode=debug_mode, trigger_context=trigger_context)
        return await orchestrator.run(names)
    except Exception as e:
        if debug_mode:
            raise
        logger.error(f"Sync run failed: {e}", exc_info=True)
        await report_run_error(e, debug_channel, trigger_context)
        raise


async def report_run_error(error: BaseException, channel: Optional[str], trigger_context: Optional[Dict[str, Any]] = None) -> None:
    """Send a run-level failure to the debug channel, when Slack is configured."""
    slack_token = get_slack_token()
    if not (slack_token and channel):
        return
    async with aiohttp.ClientSession() as session:
        notifier = SlackNotifier(session, slack_token, channel)
        try:
            await notifier.report_error(error, trigger_context or {})
        except Exception as e:
            logger.error(f"Failed to send run error report to {channel}: {e}")


def run_sync_orchestration_sync(config_path: str, names: Optional[List[str]] = None, debug_mode: bool = False,
                                trigger_context: Optional[Dict[str, Any]] = None) -> SyncSummary:
    """Synchronous version of run_sync_orchestration."""
    return asyncio.run(run_sync_orchestration(config_path, names, debug_mode, trigger_context))
