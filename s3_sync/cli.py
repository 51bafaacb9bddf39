"""
Command-line interface for the sync service.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .client import create_s3_client
from .config import SyncConfig, load_config
from .errors import SyncError
from .orchestrator import SyncOrchestrator
from .tracker import SyncTracker

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_orchestrator(config: SyncConfig) -> SyncOrchestrator:
    """Create and configure the sync orchestrator.

    Args:
        config: Loaded configuration

    Returns:
        Configured SyncOrchestrator instance
    """
    s3_client = create_s3_client(
        region=config.region,
        profile=config.profile,
        endpoint_url=config.endpoint_url,
        max_pool_connections=max(10, config.max_concurrency * 2)
    )
    return SyncOrchestrator(
        s3_client,
        service_path=config.service_path,
        max_concurrency=config.max_concurrency,
        tracker=SyncTracker(log_dir=config.log_dir)
    )


def handle_sync(args: argparse.Namespace, config: SyncConfig,
                orchestrator: SyncOrchestrator) -> None:
    """Handle the sync command.

    Args:
        args: Command line arguments
        config: Loaded configuration
        orchestrator: Orchestrator to run with
    """
    if args.phase in ('artifact', 'all'):
        orchestrator.sync_all(config.targets, artifact=True)
    if args.phase in ('deploy', 'all'):
        orchestrator.sync_all(config.targets, artifact=False)


def handle_clear(args: argparse.Namespace, config: SyncConfig,
                 orchestrator: SyncOrchestrator) -> None:
    """Handle the clear command.

    Args:
        args: Command line arguments
        config: Loaded configuration
        orchestrator: Orchestrator to run with
    """
    orchestrator.clear_all(config.targets)


def handle_plan(args: argparse.Namespace, config: SyncConfig,
                orchestrator: SyncOrchestrator) -> None:
    """Handle the plan command.

    Args:
        args: Command line arguments
        config: Loaded configuration
        orchestrator: Orchestrator to run with
    """
    for target in config.targets:
        actions = orchestrator.plan_directory(target)
        print(f"\nTarget: {target.local_directory} -> {target.target_id}")
        print(f"Artifact: {target.artifact}")
        for action in actions:
            if action.kind == "skip" and not args.show_skipped:
                continue
            print(f"  {action.kind:<6} {action.key}")
        print(f"Uploads: {sum(a.kind == 'upload' for a in actions)}, "
              f"Deletes: {sum(a.kind == 'delete' for a in actions)}, "
              f"Skips: {sum(a.kind == 'skip' for a in actions)}")


HANDLERS = {
    'sync': handle_sync,
    'clear': handle_clear,
    'plan': handle_plan,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(description="Sync local directories to S3 prefixes")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path, required=True,
                        help="Path to config file")

    subparsers = parser.add_subparsers(dest='command', required=True)

    sync_parser = subparsers.add_parser('sync',
                                        help="Sync directories to their S3 prefixes")
    sync_parser.add_argument('-p', '--phase', choices=['artifact', 'deploy', 'all'],
                             default='all',
                             help="Which targets to sync (default: artifact then deploy)")

    subparsers.add_parser('clear',
                          help="Remove all objects under the configured prefixes")

    plan_parser = subparsers.add_parser('plan',
                                        help="Show what a sync would do")
    plan_parser.add_argument('--show-skipped', action='store_true',
                             help="Also list unchanged files")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
        orchestrator = create_orchestrator(config)
        HANDLERS[args.command](args, config, orchestrator)
    except SyncError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
