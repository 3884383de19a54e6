"""
Tests for Slack change reports.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from ..error_tracker import ExternalServiceError
from ..github_tree import CommitReport, FileChange
from ..notifier import SlackNotifier, report_reply, slug_from_filename, slugs_from_reports, summary_message


def make_report(*files, message="Wordpress Media Update (3 updates)"):
    return CommitReport(
        message=message,
        html_url="https://github.com/org/content/commit/abc",
        sha="abc",
        pull_request_url="https://github.com/org/content/pull/1",
        files=[FileChange(filename=name, status=status) for name, status in files],
    )


class TestSummary:

    def test_slug_strips_extension_and_resolution(self):
        assert slug_from_filename("wordpress/media/2020/07/a-150x150.jpg") == "a"
        assert slug_from_filename("wordpress/posts/hello-world.html") == "hello-world"
        assert slug_from_filename("x/covid-19.tar.gz") == "covid-19"

    def test_slugs_are_deduplicated(self):
        report = make_report(("m/a-150x150.jpg", "added"), ("m/a-300x300.jpg", "added"), ("m/b.json", "modified"))

        assert slugs_from_reports([report]) == ["a", "b"]

    def test_summary_lists_slugs(self):
        report = make_report(("m/a-150x150.jpg", "added"), ("m/a-300x300.jpg", "added"), ("m/b.json", "modified"))

        assert summary_message([report]) == "3 changes. _a, b_"

    def test_long_summary_is_truncated(self):
        files = [(f"wordpress/posts/a-rather-long-post-slug-number-{i}.html", "added") for i in range(20)]

        assert summary_message([make_report(*files)]) == "20 changes."

    def test_reply_format(self):
        report = make_report(("m/a.jpg", "added"), ("m/a.json", "removed"))

        assert report_reply(report) == (
            "<https://github.com/org/content/pull/1|Wordpress Media Update (3 updates)>\n"
            "2 changes\n"
            "• added - _a.jpg_\n"
            "• removed - _a.json_"
        )

    def test_reply_for_single_file_has_no_count(self):
        report = make_report(("p/a.html", "modified"))

        assert report_reply(report).splitlines()[1] == "• modified - _a.html_"


class TestSlackNotifier:

    @pytest.fixture
    def notifier(self):
        return SlackNotifier(Mock(), "xoxb-token", "C-REPORTS", username="wpmirror")

    @pytest.mark.asyncio
    async def test_replies_thread_under_summary(self, notifier):
        responses = [{"ok": True, "ts": "111.1"}, {"ok": True, "ts": "111.2"}, {"ok": True, "ts": "111.3"}]
        reports = [make_report(("m/a.jpg", "added")), make_report(("p/b.html", "modified"))]
        with patch.object(notifier, "_request", AsyncMock(side_effect=responses)) as mock_request:
            await notifier.notify_reports(reports)

        payloads = [call.args[0] for call in mock_request.await_args_list]
        assert payloads[0]["text"] == "2 changes. _a, b_"
        assert "thread_ts" not in payloads[0]
        assert [p.get("thread_ts") for p in payloads[1:]] == ["111.1", "111.1"]
        assert all(p["channel"] == "C-REPORTS" and p["username"] == "wpmirror" for p in payloads)

    @pytest.mark.asyncio
    async def test_no_reports_posts_nothing(self, notifier):
        with patch.object(notifier, "_request", AsyncMock()) as mock_request:
            await notifier.notify_reports([])

        mock_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_post_raises(self, notifier):
        with patch.object(notifier, "_request", AsyncMock(return_value={"ok": False, "error": "channel_not_found"})):
            with pytest.raises(ExternalServiceError, match="channel_not_found"):
                await notifier.chat("hello")

    @pytest.mark.asyncio
    async def test_report_error_includes_context_and_traceback(self, notifier):
        try:
            raise ValueError("boom")
        except ValueError as e:
            error = e
        with patch.object(notifier, "_request", AsyncMock(return_value={"ok": True, "ts": "1"})) as mock_request:
            await notifier.report_error(error, {"endpoint": "test-site"})

        text = mock_request.await_args.args[0]["text"]
        assert text.startswith("*Error*: boom")
        assert "endpoint: test-site" in text
        assert "ValueError: boom" in text
