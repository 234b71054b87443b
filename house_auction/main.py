"""
Main CLI entry point for the house cricket live auction.
"""

import argparse
import logging
import sys
from pathlib import Path

from . import config
from .auction.entity_store import CheckpointLock, EntityStore
from .auction.errors import StoreFailureError
from .auction.sale_log import SaleLog
from .output_writer import write_output
from .player_import import import_players


def setup_logging(verbose: bool = False):
    """
    Configure logging for the application.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='House Cricket Live Auction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the auction server
  python -m house_auction.main serve

  # Check a registration sheet without writing anything
  python -m house_auction.main import-players data/players.xlsx --dry-run

  # Write team budgets, rosters and the sale log to CSV
  python -m house_auction.main export --output-dir results
        """
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the auction API server')
    serve.add_argument(
        '--host',
        type=str,
        default=config.API_HOST,
        help=f'Bind address (default: {config.API_HOST})'
    )
    serve.add_argument(
        '--port',
        type=int,
        default=config.API_PORT,
        help=f'Port (default: {config.API_PORT})'
    )

    importer = subparsers.add_parser('import-players', help='Import players from a sheet')
    importer.add_argument(
        'file',
        type=str,
        help='Registration sheet (.xlsx, .xls or .csv)'
    )
    importer.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate rows without writing'
    )
    importer.add_argument(
        '--allow-duplicates',
        action='store_true',
        help='Import players even if the same name and batch already exist'
    )

    export = subparsers.add_parser('export', help='Write auction results to CSV')
    export.add_argument(
        '--output-dir',
        type=str,
        default=None,
        help=f'Output directory (default: {config.OUTPUT_DIR})'
    )

    return parser.parse_args(argv)


def run_server(args):
    """Serve the API with uvicorn."""
    import uvicorn

    logger = logging.getLogger(__name__)
    logger.info(f"Starting auction server on {args.host}:{args.port}")

    uvicorn.run(
        "house_auction.auction.api_server:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level="debug" if args.verbose else "info"
    )


def run_import(args) -> int:
    """Import a registration sheet into the checkpointed store."""
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Player Import")
    logger.info("=" * 60)

    checkpoint_path = Path(config.CHECKPOINT_FILE)
    lock = CheckpointLock(checkpoint_path)

    try:
        if not args.dry_run:
            lock.acquire()
        store = EntityStore.load_checkpoint(checkpoint_path)
        result = import_players(
            store,
            Path(args.file),
            dry_run=args.dry_run,
            skip_existing=not args.allow_duplicates
        )
    except (FileNotFoundError, ValueError, StoreFailureError) as e:
        logger.error(f"Import failed: {e}")
        return 1
    finally:
        lock.release()

    if args.dry_run:
        logger.info("Dry run: no players were written")

    return 1 if result.errors else 0


def run_export(args) -> int:
    """Export team summary, sold roster and sale log."""
    logger = logging.getLogger(__name__)

    store = EntityStore.load_checkpoint(Path(config.CHECKPOINT_FILE))
    paths = write_output(store, args.output_dir)

    sale_log = SaleLog(Path(config.SALE_LOG_FILE))
    sales_path = paths['teams'].parent / 'sales.csv'
    if sale_log.export_to_csv(sales_path):
        paths['sales'] = sales_path

    for name, path in paths.items():
        logger.info(f"{name}: {path}")
    return 0


def main(argv=None):
    """Main execution function with command branching."""
    args = parse_arguments(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        if args.command == 'serve':
            run_server(args)
            return
        elif args.command == 'import-players':
            exit_code = run_import(args)
        else:
            exit_code = run_export(args)
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        return
    except Exception as e:
        logger.exception(f"Error during {args.command}: {e}")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == '__main__':
    main()
