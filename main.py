#!/usr/bin/env python3
"""Paper summarizer: batch summarization of recent arXiv papers.

This CLI tool discovers recent papers, downloads their PDFs, extracts text
in a crash-proof sandbox and writes one markdown summary per paper.
Papers that already have a summary are skipped, so runs can be repeated.

Commands:
    run         Execute one batch run
    status      Show configuration and artifact counts
    discover    List discovered papers and whether each is done

Examples:
    python main.py run                       # Single batch
    python main.py run --group-size 5        # Smaller concurrent groups
    python main.py run --sandbox thread      # Thread isolation fallback
    python main.py discover --pending-only   # Papers still to summarize
    python main.py status                    # Show config

Environment:
    OPENAI_API_KEY: Required for summarization
    BASE_DIR: Working directory (default: $HOME/ras)
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys

from config import Config
from models.paper import SUMMARY_SUFFIX
from observability.logging import setup_logging

logger = logging.getLogger(__name__)


def _apply_overrides(args: argparse.Namespace, config: Config) -> None:
    """Override config with CLI arguments."""
    if getattr(args, "group_size", None) is not None:
        config.group_size = args.group_size
    if getattr(args, "max_papers", None) is not None:
        config.max_papers = args.max_papers
    if getattr(args, "source", None) is not None:
        config.discovery_source = args.source
    if getattr(args, "sandbox", None) is not None:
        config.sandbox_mode = args.sandbox


def _banner(config: Config) -> None:
    logger.info("=" * 60)
    logger.info("Paper summarizer starting")
    logger.info(
        "Config | source=%s model=%s group_size=%d max_papers=%d sandbox=%s",
        config.discovery_source,
        config.model,
        config.group_size,
        config.max_papers,
        config.sandbox_mode,
    )
    logger.info("Directories | papers=%s summary=%s", config.papers_dir, config.summary_dir)
    logger.info("=" * 60)


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Execute one batch run.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    from pipeline import run_once

    _banner(config)

    try:
        stats = asyncio.run(run_once(config))
        print(json.dumps(stats, indent=2))
        return 0
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger.error("Pipeline failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1


def _count(directory, suffix: str) -> int:
    if not directory.is_dir():
        return 0
    return sum(1 for path in directory.iterdir() if path.name.endswith(suffix) and path.is_file())


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration and artifact statistics."""
    status = {
        "config": {
            "discovery_source": config.discovery_source,
            "max_papers": config.max_papers,
            "model": config.model,
            "api_base_url": config.api_base_url,
            "group_size": config.group_size,
            "extraction_timeout": config.extraction_timeout,
            "sandbox_mode": config.sandbox_mode,
            "api_key_set": bool(config.api_key),
            "enable_logfire": config.enable_logfire,
        },
        "artifacts": {
            "base_dir": str(config.base_dir) if config.base_dir else None,
            "cached_pdfs": _count(config.papers_dir, ".pdf"),
            "summaries": _count(config.summary_dir, SUMMARY_SUFFIX),
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_discover(args: argparse.Namespace, config: Config) -> int:
    """List discovered papers and whether each already has a summary."""
    from artifacts import existing_summary_keys
    from feeds import fetch_papers
    from tools.utils import create_session

    async def discover():
        async with create_session(timeout=config.http_timeout) as session:
            return await fetch_papers(session, config)

    papers = asyncio.run(discover())
    completed = existing_summary_keys(config.summary_dir)

    pending = 0
    for paper in papers:
        done = paper.canonical_key in completed
        if not done:
            pending += 1
        if done and args.pending_only:
            continue
        print(f"[{'done' if done else 'pending'}] {paper.paper_id}  {paper.title}")

    print(f"\n{len(papers)} discovered, {pending} pending")
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Paper summarizer: batch summarization of recent arXiv papers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run one batch")
    run_parser.add_argument(
        "--group-size",
        type=int,
        help="Papers processed concurrently per group (default: GROUP_SIZE or 10)",
    )
    run_parser.add_argument(
        "--max-papers",
        type=int,
        help="Max papers to discover (default: MAX_PAPERS or 100)",
    )
    run_parser.add_argument(
        "--source",
        choices=["listing", "rss"],
        help="Discovery source (default: listing)",
    )
    run_parser.add_argument(
        "--sandbox",
        choices=["process", "thread"],
        help="Extraction isolation mode (default: process)",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # discover command
    discover_parser = subparsers.add_parser("discover", help="List discovered papers")
    discover_parser.add_argument(
        "--max-papers",
        type=int,
        help="Max papers to discover",
    )
    discover_parser.add_argument(
        "--source",
        choices=["listing", "rss"],
        help="Discovery source",
    )
    discover_parser.add_argument(
        "--pending-only",
        action="store_true",
        help="Only show papers without a summary",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    _apply_overrides(args, config)

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that need it
    if args.command == "run":
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    # Route to command handler
    commands = {
        "run": cmd_run,
        "status": cmd_status,
        "discover": cmd_discover,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except Exception as e:
            logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
