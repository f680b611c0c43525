#!/usr/bin/env python3
"""
Bulk mirror backup of GitHub repositories
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich_argparse import ArgumentDefaultsRichHelpFormatter

from . import interactive
from .credentials import CredentialStore, get_github_token
from .destination import cleanup_destination, default_destination, prepare_destination
from .exceptions import AuthenticationError, BulkMirrorError, GitNotFoundError
from .filters import apply_filters, compile_patterns, parse_parallel, resolve_query_options
from .git import GitRunner
from .github_client import DEFAULT_API_URL, GitHubClient
from .models import (
    EXIT_FAILURES,
    EXIT_INTERRUPTED,
    EXIT_NOTHING_TO_BACKUP,
    EXIT_OK,
    FilterFlags,
    Flag,
)
from .pipeline import BackupPipeline, PipelineOptions
from .reporting import ConsoleReporter

INTERACTIVE_EXCLUSIVE = (
    "public",
    "private",
    "owner",
    "collaborator",
    "member",
    "exclude",
    "match",
    "clean_refs",
    "lfs",
)


class InterceptHandler(logging.Handler):
    """Route standard logging records from library modules into loguru"""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(
    verbose: bool = False, log_file: str = "bulk-mirror.log", quiet: bool = False
):
    """Setup console and file logging with loguru"""

    # Remove default loguru handler
    logger.remove()

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / log_file

    log_level = "DEBUG" if verbose else "INFO"
    console_level = "WARNING" if quiet and not verbose else log_level

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )
    logger.add(sys.stdout, format=console_format, level=console_level, colorize=True)

    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # Keep HTTP client chatter out of the logs
    for noisy in ("urllib3", "github"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.debug(f"[CONFIG] Logging configured, log file: {log_file_path}")

    return logger


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulk-mirror",
        description="[bold blue]Bulk mirror backup[/bold blue] - Mirror every GitHub repository of an account to local storage",
        formatter_class=ArgumentDefaultsRichHelpFormatter,
    )

    log_options = argparse.ArgumentParser(add_help=False)
    log_group = log_options.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "bulk-mirror.log"),
        metavar="FILE",
        help="Log file name under logs/ (env: LOG_FILE)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    backup = commands.add_parser(
        "backup",
        parents=[log_options],
        formatter_class=ArgumentDefaultsRichHelpFormatter,
        help="Mirror repositories of a user or organization",
        description="""Mirror repositories to a local directory.

- repositories you own: [yellow]bulk-mirror backup[/yellow] (or [yellow]bulk-mirror backup $YOUR_USERNAME $BACKUP_PATH[/yellow])
- repositories of another user: [yellow]bulk-mirror backup $USERNAME[/yellow]
- repositories of an organization: [yellow]bulk-mirror backup $ORGNAME[/yellow]

Git LFS objects are backed up when git-lfs is available in PATH.""",
    )
    backup.add_argument(
        "source",
        nargs="?",
        help="User or organization name to backup from (default: authenticated user)",
    )
    backup.add_argument(
        "destination",
        nargs="?",
        default=get_env_default("BULK_MIRROR_DESTINATION"),
        help="Backup destination path (env: BULK_MIRROR_DESTINATION, default: ./bulk-mirror-backup-<timestamp>)",
    )

    search = backup.add_argument_group("Search Filters")
    search.add_argument(
        "--public", action="store_true", default=None, help="Include public repositories"
    )
    search.add_argument(
        "--private", action="store_true", default=None, help="Include private repositories"
    )
    search.add_argument(
        "--owner",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include/exclude owned repositories",
    )
    search.add_argument(
        "--collaborator",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include/exclude repositories where user is collaborator",
    )
    search.add_argument(
        "--member",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include/exclude repositories where user is member",
    )
    search.add_argument(
        "-x",
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Exclude repositories whose name matches the regex pattern (repeatable)",
    )
    search.add_argument(
        "-m",
        "--match",
        action="append",
        metavar="PATTERN",
        help="Only include repositories whose name matches every given regex pattern (repeatable)",
    )

    ops = backup.add_argument_group("Backup Operations")
    ops.add_argument(
        "-c",
        "--clean-refs",
        action="store_true",
        default=None,
        help="Remove GitHub pull refs (refs/pull) from backup repositories",
    )
    ops.add_argument(
        "--lfs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include LFS objects in backup (default: enabled)",
    )
    ops.add_argument(
        "-p",
        "--parallel",
        default=get_env_default("BULK_MIRROR_PARALLEL", "8"),
        metavar="N",
        help="Number of repositories backed up concurrently (env: BULK_MIRROR_PARALLEL)",
    )
    ops.add_argument(
        "-q", "--quiet", action="store_true", help="Only show warnings and errors"
    )
    ops.add_argument(
        "-i", "--interactive", action="store_true", help="Interactive mode"
    )
    ops.add_argument(
        "--api-url",
        default=get_env_default("GITHUB_API_URL", DEFAULT_API_URL),
        metavar="URL",
        help="GitHub API URL (env: GITHUB_API_URL)",
    )

    commands.add_parser(
        "login",
        parents=[log_options],
        formatter_class=ArgumentDefaultsRichHelpFormatter,
        help="Save a GitHub personal access token",
        description="Login to GitHub with a personal access token from https://github.com/settings/tokens",
    )
    commands.add_parser(
        "logout",
        parents=[log_options],
        formatter_class=ArgumentDefaultsRichHelpFormatter,
        help="Erase saved authentication details",
    )

    return parser


def flags_from_args(args: argparse.Namespace) -> FilterFlags:
    return FilterFlags(
        public=Flag.from_optional(args.public),
        private=Flag.from_optional(args.private),
        owner=Flag.from_optional(args.owner),
        collaborator=Flag.from_optional(args.collaborator),
        member=Flag.from_optional(args.member),
        exclude=list(args.exclude or []),
        match=list(args.match or []),
        lfs=args.lfs is not False,
        clean_refs=bool(args.clean_refs),
        parallel=parse_parallel(args.parallel),
        quiet=args.quiet,
        interactive=args.interactive,
    )


def run_backup(
    args: argparse.Namespace,
    store: Optional[CredentialStore] = None,
    git: Optional[GitRunner] = None,
    client: Optional[GitHubClient] = None,
    console: Optional[Console] = None,
) -> int:
    """Run one backup; returns the process exit code"""
    store = store or CredentialStore()
    git = git or GitRunner()
    console = console or Console(stderr=True)
    flags = flags_from_args(args)

    if client is None:
        token = get_github_token(store)
        if not token:
            raise AuthenticationError(
                "You are not authenticated, please run bulk-mirror login first."
            )
        client = GitHubClient(token, api_url=args.api_url)

    logger.debug("[CONFIG] Checking git command availability")
    if not git.has_git():
        raise GitNotFoundError()

    # Invalid patterns fail before anything is written
    compile_patterns(flags.exclude)
    compile_patterns(flags.match)

    login = client.get_authenticated_login()
    source = args.source or login
    logger.debug(f"[CONFIG] Authenticated user is {login}")

    destination = prepare_destination(args.destination or default_destination())
    logger.info(f"[CONFIG] Backup destination: {destination.path}")

    try:
        if flags.interactive:
            interactive.prompt_search_filters(flags, console)

        account_type = client.resolve_account_type(source, login)
        options = resolve_query_options(flags, account_type, source)

        if not flags.quiet:
            logger.info(f"[DISCOVER] Fetching repositories of {source}...")
        listing = client.list_repositories(options)

        if listing.truncated:
            logger.warning(
                f"[LIST] Listing stopped after page {listing.pages}, "
                f"the repository list may be incomplete"
            )
        if listing.dropped:
            logger.debug(
                f"[LIST] Skipped {len(listing.dropped)} repositories without pull right"
            )

        if not listing.records:
            logger.warning("No repositories to backup.")
            cleanup_destination(destination)
            return EXIT_NOTHING_TO_BACKUP

        logger.debug(f"[LIST] {len(listing.records)} repositories found")

        selection = apply_filters(listing.records, flags.exclude, flags.match)
        if selection.excluded:
            logger.info(f"[FILTER] Excluded {len(selection.excluded)} repositories")
        if selection.unmatched:
            logger.info(
                f"[FILTER] {len(selection.unmatched)} repositories did not match"
            )
        repositories = selection.selected

        if flags.interactive and repositories:
            repositories = interactive.select_repositories(repositories, console)
            flags.clean_refs = interactive.prompt_clean_refs(console)
            if git.has_lfs():
                flags.lfs = interactive.prompt_lfs(console)

        if not repositories:
            logger.warning("No repositories to backup.")
            cleanup_destination(destination)
            return EXIT_NOTHING_TO_BACKUP

    except KeyboardInterrupt:
        logger.warning("[INTERRUPT] Backup interrupted before it started")
        cleanup_destination(destination)
        return EXIT_INTERRUPTED
    except BulkMirrorError:
        cleanup_destination(destination)
        raise

    frozen = flags.freeze()
    if not frozen.quiet:
        logger.info(f"[START] Starting backup of {len(repositories)} repositories...")

    reporter = ConsoleReporter(quiet=frozen.quiet, console=console)
    pipeline = BackupPipeline(
        git=git,
        destination=destination.path,
        options=PipelineOptions(
            parallel=frozen.parallel, lfs=frozen.lfs, clean_refs=frozen.clean_refs
        ),
        on_event=reporter,
        cancel_event=threading.Event(),
    )

    reporter.start(len(repositories))
    try:
        report = pipeline.run(repositories)
    finally:
        reporter.close()

    if report.interrupted:
        cleanup_destination(destination)

    reporter.summary(report)
    logger.info(
        f"[SUMMARY] {report.succeeded}/{report.total_selected} backed up, "
        f"{report.warned} with warnings, {report.failed} failed"
    )
    return report.exit_code


def run_login(
    store: Optional[CredentialStore] = None,
    api_url: str = DEFAULT_API_URL,
    console: Optional[Console] = None,
) -> int:
    store = store or CredentialStore()
    console = console or Console()
    previous = store.get_auth()

    if previous and not Confirm.ask(
        f"You are already logged in as {previous.user}. Change user?",
        default=False,
        console=console,
    ):
        return EXIT_OK

    token = ""
    while not token:
        token = Prompt.ask(
            "Enter your personal access token", password=True, console=console
        ).strip()
        if not token:
            console.print("[red]Token is required[/red]")

    try:
        user = GitHubClient(token, api_url=api_url).get_authenticated_login()
    except BulkMirrorError as e:
        store.clear_auth()
        if previous:
            logger.warning(f"{previous.user} was logged out")
        logger.error(str(e))
        return EXIT_FAILURES

    store.save_auth(token, user)
    logger.info(f"Logged in as {user}")
    return EXIT_OK


def run_logout(store: Optional[CredentialStore] = None) -> int:
    store = store or CredentialStore()
    store.clear_auth()
    logger.info("Logged out")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables first (before parsing args)
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "backup" and args.interactive:
        given = [
            name for name in INTERACTIVE_EXCLUSIVE if getattr(args, name) is not None
        ]
        if given:
            parser.error(
                f"--interactive cannot be used with: {', '.join('--' + g.replace('_', '-') for g in given)}"
            )

    setup_logging(
        verbose=args.verbose,
        log_file=args.log_file,
        quiet=getattr(args, "quiet", False),
    )

    try:
        if args.command == "login":
            return run_login(api_url=get_env_default("GITHUB_API_URL", DEFAULT_API_URL))
        if args.command == "logout":
            return run_logout()
        return run_backup(args)
    except BulkMirrorError as e:
        logger.error(f"[ERROR] {e}")
        return EXIT_FAILURES
    except KeyboardInterrupt:
        logger.warning("[INTERRUPT] Interrupted")
        return EXIT_INTERRUPTED


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
