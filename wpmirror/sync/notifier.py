"""
Slack reporting for sync runs.

After an endpoint run, a summary message lists how many files changed and
which items they belong to; each pull request then gets a threaded reply
with per-file status lines. Run failures are posted to a debug channel.
"""

import re
import traceback
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import SLACK_API_URL
from .error_tracker import ExternalServiceError
from .github_tree import CommitReport
from .logging_manager import get_logger

logger = get_logger(__name__)

SUMMARY_LENGTH_LIMIT = 300
RESOLUTION_SUFFIX = re.compile(r'-\d{1,4}x\d{1,4}$')


def basename(filename: str) -> str:
    return filename.split('/')[-1]


def slug_from_filename(filename: str) -> str:
    """Remove file extension, and remove resolution postfix."""
    return RESOLUTION_SUFFIX.sub('', basename(filename).split('.')[0])


def slugs_from_reports(reports: List[CommitReport]) -> List[str]:
    """Deduplicated slugs across all reports, in first-seen order."""
    slugs: Dict[str, None] = {}
    for report in reports:
        for change in report.files:
            slugs.setdefault(slug_from_filename(change.filename), None)
    return list(slugs)


def summary_message(reports: List[CommitReport]) -> str:
    op_count = sum(len(report.files) for report in reports)
    message = f"{op_count} changes. _{', '.join(slugs_from_reports(reports))}_"
    if len(message) > SUMMARY_LENGTH_LIMIT:
        message = f"{op_count} changes."
    return message


def report_reply(report: CommitReport) -> str:
    file_data = '\n'.join(f"• {change.status} - _{basename(change.filename)}_" for change in report.files)
    url = report.pull_request_url or report.html_url
    count_line = f"{len(report.files)} changes\n" if len(report.files) > 1 else ''
    return f"<{url}|{report.message}>\n{count_line}{file_data}"


class SlackNotifier:
    """
    Posts messages to one Slack channel through chat.postMessage.
    """
    def __init__(self, session: aiohttp.ClientSession, token: str, channel: str, username: Optional[str] = None, api_url: str = SLACK_API_URL):
        self.session = session
        self.channel = channel
        self.username = username
        self.api_url = api_url
        self.headers = {'Authorization': f'Bearer {token}'}
        self.thread_ts: Optional[str] = None

    async def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self.session.post(f"{self.api_url}/chat.postMessage", json=payload, headers=self.headers) as response:
            return await response.json(content_type=None)

    async def post(self, text: str, thread_ts: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {'channel': self.channel, 'text': text}
        if self.username:
            payload['username'] = self.username
        if thread_ts:
            payload['thread_ts'] = thread_ts
        body = await self._request(payload)
        if not body.get('ok'):
            raise ExternalServiceError(f"Slack post to {self.channel} failed: {body.get('error')}", source_id=self.channel)
        return body.get('ts')

    async def chat(self, text: str) -> str:
        """Start a new thread."""
        self.thread_ts = await self.post(text)
        return self.thread_ts

    async def reply(self, text: str) -> str:
        """Reply in the thread started by the last `chat`."""
        return await self.post(text, thread_ts=self.thread_ts)

    async def notify_reports(self, reports: List[CommitReport]) -> None:
        if not reports:
            return
        await self.chat(summary_message(reports))
        for report in reports:
            await self.reply(report_reply(report))
        logger.info(f"Reported {len(reports)} pull requests to {self.channel}")

    async def report_error(self, exc: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """Send one error report with the traceback and trigger context."""
        trace = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        lines = [f"*Error*: {exc}"]
        if context:
            lines.append('\n'.join(f"{key}: {value}" for key, value in context.items()))
        lines.append(f"```{trace}```")
        await self.chat('\n'.join(lines))
