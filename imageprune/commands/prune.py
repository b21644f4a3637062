"""
Prune command for imageprune.

Deletes container image versions of a repository's packages that are
neither recent nor referenced by a live branch, tag or open pull request.
"""

import asyncio
import sys
from typing import Optional

import click

from ..config import LOG_LEVELS, configure_logging, load_config
from ..exit_codes import (
    CommandError,
    USAGE_ERROR,
    AuthenticationError,
    PartialSuccessError,
    get_exit_code_for_exception,
)
from ..infra import GitHubClient, RegistryClient
from ..render import decisions_to_jsonl, render_decisions_table, render_summary
from ..services import PruneContext, PruneReport, PruneService, RetentionPolicy


async def run_prune(
    *,
    token: str,
    owner: str,
    repository: str,
    api_url: str,
    registry_url: str,
    jobs: int,
    dry_run: bool,
    policy: RetentionPolicy,
    timeout: float,
    retries: int,
    log,
) -> PruneReport:
    """Open both API clients, run one prune pass and close them again."""
    github = GitHubClient(
        token,
        api_url=api_url,
        timeout=timeout,
        retries=retries,
        log=log.getChild("github"),
    )
    registry = RegistryClient(
        token,
        registry_url=registry_url,
        timeout=timeout,
        retries=retries,
        log=log.getChild("registry"),
    )
    async with github, registry:
        context = PruneContext(
            github=github,
            registry=registry,
            jobs=jobs,
            dry_run=dry_run,
            logger=log,
        )
        return await PruneService(context, policy=policy).run(owner, repository)


@click.command('prune')
@click.option('--token', '-t', envvar='GITHUB_TOKEN', help='GitHub API token [env: GITHUB_TOKEN]')
@click.option('--repository', '-r', envvar='GITHUB_REPOSITORY',
              help='GitHub repository name, with or without owner/ [env: GITHUB_REPOSITORY]')
@click.option('--owner', '-o', envvar='GITHUB_REPOSITORY_OWNER',
              help='Package owner [env: GITHUB_REPOSITORY_OWNER]')
@click.option('--api-url', '-u', envvar='GITHUB_API_URL',
              help='GitHub API base URL [env: GITHUB_API_URL, default: https://api.github.com]')
@click.option('--registry-url', '-d', help='Container registry URL [default: https://ghcr.io]')
@click.option('--log-level', '-v', type=click.Choice(list(LOG_LEVELS)), help='Console log level [default: info]')
@click.option('--jobs', '-j', type=click.IntRange(min=1), help='Concurrency level [default: 1]')
@click.option('--dry-run', '-n', is_flag=True, help='Do not delete packages, only print messages')
@click.option('--min-age-days', type=click.FloatRange(min=0), help='Never delete versions updated more recently [default: 1]')
@click.option('--max-age-days', type=click.FloatRange(min=0), help='Always delete versions updated earlier [default: 365]')
@click.option('--json', 'as_json', is_flag=True, help='Print every decision as JSONL on stdout')
@click.option('--pretty', is_flag=True, help='Print a table of decisions')
def prune_handler(
    token: Optional[str],
    repository: Optional[str],
    owner: Optional[str],
    api_url: Optional[str],
    registry_url: Optional[str],
    log_level: Optional[str],
    jobs: Optional[int],
    dry_run: bool,
    min_age_days: Optional[float],
    max_age_days: Optional[float],
    as_json: bool,
    pretty: bool,
):
    """
    Delete stale container image versions of a repository.

    A version is kept when it was updated within --min-age-days, or when
    any platform variant has no org.opencontainers.image.version label or
    a label naming a live branch, tag or open pull request (pr-<number>).
    Versions older than --max-age-days are deleted without inspection.

    \b
    Examples:
        # Preview what would be deleted
        imageprune prune -o octo -r octo/app --dry-run
        # Delete with 8 concurrent requests
        imageprune prune -o octo -r app -j 8
        # Inside GitHub Actions everything comes from the environment
        imageprune prune
    """
    try:
        config = load_config()
    except CommandError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)

    github_config = config.get('github', {})
    prune_config = config.get('prune', {})
    retention_config = config.get('retention', {})
    http_config = config.get('http', {})
    logging_config = config.get('logging', {})

    token = token or github_config.get('token')
    api_url = api_url or github_config.get('api_url') or 'https://api.github.com'
    registry_url = registry_url or config.get('registry', {}).get('url') or 'https://ghcr.io'
    jobs = jobs or int(prune_config.get('jobs', 1))
    dry_run = dry_run or bool(prune_config.get('dry_run', False))
    if min_age_days is None:
        min_age_days = retention_config.get('min_age_days', 1)
    if max_age_days is None:
        max_age_days = retention_config.get('max_age_days', 365)

    try:
        log = configure_logging(
            log_level or logging_config.get('level', 'info'),
            logging_config.get('format', '%(levelname)s: %(message)s'),
        )
    except CommandError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)

    if not token:
        e = AuthenticationError("No GitHub token: pass --token or set GITHUB_TOKEN")
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
    if not repository or not owner:
        click.echo("Error: --repository and --owner are required", err=True)
        sys.exit(USAGE_ERROR)

    try:
        policy = RetentionPolicy.from_days(float(min_age_days), float(max_age_days))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(USAGE_ERROR)

    try:
        report = asyncio.run(run_prune(
            token=token,
            owner=owner,
            repository=repository,
            api_url=api_url,
            registry_url=registry_url,
            jobs=jobs,
            dry_run=dry_run,
            policy=policy,
            timeout=float(http_config.get('timeout', 30)),
            retries=int(http_config.get('retries', 3)),
            log=log,
        ))
    except Exception as e:
        log.debug("Run aborted", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(get_exit_code_for_exception(e))
    except KeyboardInterrupt as e:
        sys.exit(get_exit_code_for_exception(e))

    if as_json:
        for line in decisions_to_jsonl(report.decisions):
            print(line, flush=True)
    elif pretty:
        render_decisions_table(report.decisions)
        render_summary(report)

    deletion = report.deletion
    if deletion.failed:
        e = PartialSuccessError(deletion.summary(), succeeded=deletion.succeeded, failed=deletion.failed)
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
