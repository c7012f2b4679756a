"""
CLI entry point for repopulse. Wires the pipeline: connect -> fetch -> reconcile -> report
"""

import argparse
import asyncio
import logging
import os
import sys
import webbrowser
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote

import settings
from errors import GitServiceError
from normalize.models import (
    BitbucketIdentity,
    Credential,
    GitHubIdentity,
    GitLabIdentity,
    PlatformId,
    RepositoryIdentity,
)
from platforms.factory import create_client
from report.renderer import render
from stats.calendar import ContributionAggregator, aggregate_connections

logger = logging.getLogger(__name__)

TOKEN_ENV = {
    PlatformId.GITHUB: 'GITHUB_TOKEN',
    PlatformId.GITLAB: 'GITLAB_TOKEN',
    PlatformId.BITBUCKET: 'BITBUCKET_TOKEN',
}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def parse_identity(platform: PlatformId, repo: str) -> RepositoryIdentity:
    """Build the identity variant for a REPO argument: owner/repo, workspace/slug, or a GitLab id or path."""
    repo = (repo or '').strip().strip('/')
    if platform == PlatformId.GITLAB:
        if repo.isdigit():
            return GitLabIdentity(project_id=int(repo))
        if not repo:
            raise ValueError("GitLab project id or path is required")
        # the API accepts a URL-encoded namespace/project path in place of the id
        return GitLabIdentity(project_id=quote(repo, safe=''))
    first, _, second = repo.partition('/')
    if not first or not second or '/' in second:
        raise ValueError(f"Expected OWNER/REPO, got {repo!r}")
    if platform == PlatformId.GITHUB:
        return GitHubIdentity(owner=first, repo=second)
    return BitbucketIdentity(workspace=first, slug=second)


def _resolve_credentials(args, parser) -> List[Credential]:
    """Resolve one credential per requested platform from CLI flags or environment variables.
    Calls parser.error() if any token is missing.
    """
    credentials = []
    missing = []
    for name in args.platform:
        try:
            platform = PlatformId.parse(name)
        except GitServiceError as ex:
            parser.error(str(ex))
        flag = f"{platform.value.lower()}_token"
        token = getattr(args, flag, None) or os.getenv(TOKEN_ENV[platform])
        if not token:
            missing.append(f"{flag} (CLI flag --{flag.replace('_', '-')} or env {TOKEN_ENV[platform]})")
            continue
        credentials.append(Credential(platform=platform, token=token))
    if missing:
        parser.error('Missing required tokens: ' + ', '.join(missing))
    return credentials


def _single(credentials: List[Credential], parser, command: str) -> Credential:
    if len(credentials) != 1:
        parser.error(f"'{command}' takes exactly one --platform")
    return credentials[0]


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(fmt: str, rendered: str, args):
    """Write output to --out-file (or stdout) and optionally open HTML in the browser."""
    out_path = (args.out_file or '').strip()
    if not out_path:
        print(rendered)
        return
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(rendered)
    print(f"Wrote report to {out_path}")
    if args.open and fmt == 'html':
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print("Failed to open browser automatically; file saved at", out_path)


async def run_command(args, credentials: List[Credential], parser) -> str:
    """Execute the selected subcommand and return the rendered output."""
    fmt = (args.output or 'text').lower()
    generated_at = datetime.now(timezone.utc).isoformat()

    if args.command == 'calendar':
        if args.repo:
            client = create_client(_single(credentials, parser, 'calendar --repo'))
            wanted = set(args.repo)
            repos = [r for r in await client.list_repositories() if r.full_name in wanted]
            calendar = await ContributionAggregator(client, args.concurrency).build_calendar(repos)
        else:
            calendar = await aggregate_connections(credentials, concurrency=args.concurrency)
        return render(fmt, calendar=calendar, generated_at=generated_at)

    credential = _single(credentials, parser, args.command)
    client = create_client(credential)

    if args.command == 'verify':
        account = await client.verify_connection()
        login = account.get('login') or account.get('username') or account.get('display_name') or '?'
        return f"Connected to {credential.platform.value} as {login}"

    if args.command == 'repos':
        return render(fmt, repositories=await client.list_repositories(), generated_at=generated_at)

    if args.command == 'analyze' and credential.platform != PlatformId.GITHUB:
        parser.error("'analyze' is only available for GITHUB")

    try:
        identity = parse_identity(credential.platform, args.repo_id)
    except ValueError as ex:
        parser.error(str(ex))
    label = f"{credential.platform.value}:{args.repo_id}"

    if args.command == 'analyze':
        analysis = await client.analyze_repository(identity)
        return render(fmt, analysis=analysis, label=label, generated_at=generated_at)

    stats = await client.get_repository_stats(identity)
    return render(fmt, stats=stats, label=label, generated_at=generated_at)


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--platform", action="append", required=True, help="GITHUB, GITLAB or BITBUCKET (repeatable for 'calendar')")
    common.add_argument("--github-token", dest="github_token", type=str, help="GitHub token (or set GITHUB_TOKEN env var)")
    common.add_argument("--gitlab-token", dest="gitlab_token", type=str, help="GitLab token (or set GITLAB_TOKEN env var)")
    common.add_argument("--bitbucket-token", dest="bitbucket_token", type=str, help="Bitbucket token (or set BITBUCKET_TOKEN env var)")
    common.add_argument("--output", type=str, default="text", help="Output format (text, md, csv, json, html)")
    common.add_argument("--out-file", type=str, default="", help="Output file path. If omitted the report is printed")
    common.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    common.add_argument("--config", type=str, default=None, help="Path to a YAML settings file (default: ./repopulse.yaml if present)")
    # runtime knobs: CLI flags take precedence over REPOPULSE_* environment variables and the config file
    common.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds (overrides REPOPULSE_TIMEOUT)")
    common.add_argument("--max-attempts", type=int, default=None, help="Attempts at GitHub's computed statistics before giving up on them")
    common.add_argument("--backoff", type=float, default=None, help="Seconds to wait while GitHub computes statistics")
    common.add_argument("--concurrency", type=int, default=None, help="Repositories fetched in parallel when building a calendar")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(prog="repopulse", description="Repository activity across GitHub, GitLab and Bitbucket")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("verify", parents=[common], help="Check that a token works")
    sub.add_parser("repos", parents=[common], help="List repositories visible to a token")
    stats_p = sub.add_parser("stats", parents=[common], help="Statistics for one repository")
    stats_p.add_argument("repo_id", metavar="REPO", help="OWNER/REPO, WORKSPACE/SLUG, or a GitLab project id or path")
    analyze_p = sub.add_parser("analyze", parents=[common], help="Contributors, languages and activity for one GitHub repository")
    analyze_p.add_argument("repo_id", metavar="REPO", help="OWNER/REPO")
    cal_p = sub.add_parser("calendar", parents=[common], help="Estimated daily contribution calendar for the last 365 days")
    cal_p.add_argument("--repo", action="append", default=[], help="Limit to these repositories (full names; repeatable)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)

    try:
        settings.use_file(args.config)
        settings.configure(
            request_timeout_seconds=args.timeout,
            stats_max_attempts=args.max_attempts,
            stats_backoff_seconds=args.backoff,
            calendar_concurrency=args.concurrency,
        )
    except (OSError, ValueError) as ex:
        parser.error(str(ex))

    credentials = _resolve_credentials(args, parser)
    logger.debug("Running %s for %s", args.command, ', '.join(c.platform.value for c in credentials))

    try:
        rendered = asyncio.run(run_command(args, credentials, parser))
    except GitServiceError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 1

    write_output((args.output or 'text').lower(), rendered, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
