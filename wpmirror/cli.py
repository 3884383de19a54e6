import sys

import click

from .config import DEFAULT_CONFIG_PATH, get_logger, is_debug_mode
from .sync.config import SyncConfig
from .sync.orchestrator import run_sync_orchestration_sync

logger = get_logger(__name__)

@click.group()
def cli():
    """Mirror WordPress sites into GitHub repositories."""
    pass

# Sync command, receives an optional list of endpoint names (none = all enabled endpoints)
@cli.command(name='sync')
@click.argument('endpoints', nargs=-1)
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=str(DEFAULT_CONFIG_PATH), help='Endpoints YAML file')
@click.option('--debug/--live', default=None, help='Debug mode runs "enabled_local" endpoints and lets errors propagate (default: $debug)')
def sync(endpoints, config_path, debug):
    """Sync WordPress endpoints to GitHub."""
    debug_mode = is_debug_mode() if debug is None else debug
    names = list(endpoints)
    click.echo(f"Syncing {', '.join(names) or 'all endpoints'} ({'debug' if debug_mode else 'live'} mode)")
    try:
        summary = run_sync_orchestration_sync(
            config_path,
            names=names,
            debug_mode=debug_mode,
            trigger_context={'trigger': 'cli', 'endpoints': names or 'all'},
        )
    except Exception as e:
        if debug_mode:
            raise
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)
    for result in summary.results:
        click.echo(f"{result.endpoint}: {result.status}, {len(result.reports)} pull requests")
        for report in result.reports:
            click.echo(f"  {report.message} {report.pull_request_url or report.html_url}")
    if summary.failed_endpoints:
        sys.exit(1)

@cli.command(name='list-endpoints')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=str(DEFAULT_CONFIG_PATH), help='Endpoints YAML file')
def list_endpoints(config_path):
    """List configured endpoints and where they are enabled."""
    try:
        config = SyncConfig.from_yaml(config_path)
    except Exception as e:
        click.echo(f"Error: {str(e)}", err=True)
        raise
    for endpoint in config.endpoints:
        target = endpoint.github_target
        click.echo(
            f"{endpoint.name}: {endpoint.wordpress_url} -> {target.full_name}@{target.branch} "
            f"(live: {endpoint.enabled}, local: {endpoint.enabled_local}, media: {target.sync_media})"
        )

def main():
    cli()

if __name__ == '__main__':
    main()
