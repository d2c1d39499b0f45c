"""
Normalizer Service - Main Entry Point

This is the command-line interface for the normalizer service.
It can be called directly from the terminal or from Airflow tasks.

Usage:
    python -m services.normalizer.main [OPTIONS]

Options:
    --config TEXT         Path to pipeline.yml configuration file
    --dry-run            Build the clean model without writing to database
    --verbose            Enable debug logging
    --help               Show this message and exit

Examples:
    # Rebuild the clean model from the raw tables:
    python -m services.normalizer.main

    # Dry run to see how many rows each clean table would get:
    python -m services.normalizer.main --dry-run --verbose

Exit Codes:
    0: Success
    2: Fatal error (database connection, invalid numeric data, duplicate keys, etc.)
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from services.common.config_loader import PipelineConfig, load_pipeline_config
from services.common.database import DatabaseError

from .db_operations import NormalizerDB
from .facts import NormalizationError
from .model import build_clean_model

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Build the clean relational model from raw staging tables',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to pipeline.yml configuration file (default: config/pipeline.yml)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build the clean model without writing to database',
        dest='dry_run'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def run_normalizer(
    db: NormalizerDB,
    config: PipelineConfig,
    dry_run: bool = False
) -> dict[str, int]:
    """
    Main normalizer logic.

    Args:
        db: Database interface
        config: Pipeline configuration (schemas, coercion, merge policy)
        dry_run: If True, don't write to database

    Returns:
        Dictionary with statistics:
        - raw_<table>: Number of rows read per raw table
        - <clean table>: Number of rows built per clean table
        - nulled_counts / nulled_salaries: Values nulled under lenient coercion

    Raises:
        NormalizationError: If the clean model cannot be built
        DatabaseError: If reading or writing fails
    """
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting normalizer service",
        extra={
            'raw_schema': config.schemas.raw,
            'clean_schema': config.schemas.clean,
            'merge_policy': config.normalizer.dimension_merge_policy,
            'dry_run': dry_run,
        }
    )

    raw = db.fetch_raw_tables(config.schemas.raw)

    model = build_clean_model(
        raw,
        config.coercion,
        config.normalizer.dimension_merge_policy,
    )

    stats: dict[str, int] = {f'raw_{table}': len(rows) for table, rows in raw.items()}
    stats.update({table: len(rows) for table, rows in model.tables.items()})
    stats['nulled_counts'] = model.nulled_counts
    stats['nulled_salaries'] = model.nulled_salaries

    if dry_run:
        logger.info(
            f"DRY RUN: Would rebuild {len(model.tables)} clean tables",
            extra={'row_counts': {t: len(r) for t, r in model.tables.items()}}
        )
    else:
        db.replace_clean_model(config.schemas.clean, model.tables)

    # Log final statistics
    duration = (datetime.now(timezone.utc) - start_time).total_seconds()

    logger.info(
        "Normalizer service completed",
        extra={
            'duration_seconds': duration,
            'jobs': stats['jobs'],
            'raw_postings': stats['raw_data_postings_raw'],
            'companies': stats['companies'],
            'job_salaries': stats['job_salaries'],
        }
    )

    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the normalizer service.

    Returns:
        Exit code (0 = success, 2 = fatal error)
    """
    args = parse_args(argv)

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    # Get database connection string from environment
    database_url = os.getenv('DATABASE_URL')
    if not database_url:
        logger.error("DATABASE_URL environment variable must be set")
        return 2  # Fatal error - cannot proceed without database

    try:
        config = load_pipeline_config(args.config)

        # Initialize database connection
        logger.info("Connecting to database")
        db = NormalizerDB(database_url)

        stats = run_normalizer(db=db, config=config, dry_run=args.dry_run)

        if stats['jobs'] == 0:
            logger.warning("No jobs were built; check raw postings and company ids")

        logger.info("Normalizer completed successfully")
        return 0

    except NormalizationError as e:
        logger.error(f"Normalization failed: {e}")
        return 2

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 2  # Fatal error

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # Standard Unix exit code for SIGINT

    except Exception as e:
        logger.error(
            "Unexpected fatal error",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 2  # Fatal error


if __name__ == '__main__':
    sys.exit(main())
