"""
Tests for the wpmirror command line.
"""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from .cli import cli
from .sync.github_tree import CommitReport
from .sync.orchestrator import EndpointResult, SyncSummary


def make_summary(failed=0):
    report = CommitReport(message="Wordpress Posts Update (1 updates)", html_url="https://github.com/org/r/commit/1",
                          sha="1", pull_request_url="https://github.com/org/r/pull/1")
    results = [EndpointResult(endpoint="site", status="success", processing_time=0.1, reports=[report])]
    if failed:
        results.append(EndpointResult(endpoint="broken", status="failed", processing_time=0.1, error_message="boom"))
    return SyncSummary(
        total_endpoints=len(results),
        successful_endpoints=1,
        failed_endpoints=failed,
        total_pull_requests=1,
        total_processing_time=0.2,
        errors=[],
        results=results,
    )


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "endpoints.yaml"
    path.write_text(yaml.safe_dump({
        "name": "mirrors",
        "endpoints": [{
            "name": "site",
            "wordpress_url": "https://site.example.com",
            "github_target": {"owner": "org", "repo": "r", "branch": "main", "sync_media": True},
        }],
    }), encoding="utf-8")
    return str(path)


class TestSyncCommand:

    def test_sync_named_endpoints(self, config_path):
        runner = CliRunner()
        with patch("wpmirror.cli.run_sync_orchestration_sync", return_value=make_summary()) as mock_run:
            result = runner.invoke(cli, ["sync", "site", "--config", config_path, "--live"])

        assert result.exit_code == 0
        mock_run.assert_called_once()
        assert mock_run.call_args.args[0] == config_path
        assert mock_run.call_args.kwargs["names"] == ["site"]
        assert mock_run.call_args.kwargs["debug_mode"] is False
        assert "https://github.com/org/r/pull/1" in result.output

    def test_debug_mode_from_environment(self, config_path):
        runner = CliRunner()
        with patch("wpmirror.cli.run_sync_orchestration_sync", return_value=make_summary()) as mock_run, \
                patch("wpmirror.cli.is_debug_mode", return_value=True):
            result = runner.invoke(cli, ["sync", "--config", config_path])

        assert result.exit_code == 0
        assert mock_run.call_args.kwargs["names"] == []
        assert mock_run.call_args.kwargs["debug_mode"] is True

    def test_failed_endpoint_exits_non_zero(self, config_path):
        runner = CliRunner()
        with patch("wpmirror.cli.run_sync_orchestration_sync", return_value=make_summary(failed=1)):
            result = runner.invoke(cli, ["sync", "--config", config_path, "--live"])

        assert result.exit_code == 1
        assert "broken: failed" in result.output

    def test_run_failure_exits_non_zero(self, config_path):
        runner = CliRunner()
        with patch("wpmirror.cli.run_sync_orchestration_sync", side_effect=RuntimeError("boom")):
            result = runner.invoke(cli, ["sync", "--config", config_path, "--live"])

        assert result.exit_code == 1
        assert "Error: boom" in result.output

    def test_run_failure_propagates_in_debug_mode(self, config_path):
        runner = CliRunner()
        with patch("wpmirror.cli.run_sync_orchestration_sync", side_effect=RuntimeError("boom")):
            result = runner.invoke(cli, ["sync", "--config", config_path, "--debug"])

        assert isinstance(result.exception, RuntimeError)


class TestListEndpoints:

    def test_lists_endpoints(self, config_path):
        result = CliRunner().invoke(cli, ["list-endpoints", "--config", config_path])

        assert result.exit_code == 0
        assert "site: https://site.example.com -> org/r@main" in result.output
        assert "media: True" in result.output
