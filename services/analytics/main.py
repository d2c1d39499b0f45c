"""
Analytics Service - Main Entry Point

This is the command-line interface for the analytics service.
It can be called directly from the terminal or from Airflow tasks.

Usage:
    python -m services.analytics.main [OPTIONS]

Options:
    --config TEXT         Path to pipeline.yml configuration file
    --dry-run            Compute aggregates without writing to database
    --verbose            Enable debug logging
    --help               Show this message and exit

Examples:
    # Rebuild all analytics tables and views:
    python -m services.analytics.main

    # Print the top skills without writing anything:
    python -m services.analytics.main --dry-run

Exit Codes:
    0: Success
    2: Fatal error (database connection, missing clean tables, etc.)
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

from .aggregations import build_analytics
from .db_operations import AnalyticsDB

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

TOP_N_PREVIEW = 10


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Build analytics summary tables and views from the clean model',
        formatter_class=argparse.RawDescriptionHelpFormatter
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
        dest='dry_run',
        help='Compute aggregates without writing to database'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def run_analytics(
    db: AnalyticsDB,
    config: PipelineConfig,
    dry_run: bool = False
) -> dict[str, int]:
    """
    Main analytics logic.

    Args:
        db: Database interface
        config: Pipeline configuration
        dry_run: If True, don't write to database

    Returns:
        Row count per analytics table
    """
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting analytics service",
        extra={
            'clean_schema': config.schemas.clean,
            'analytics_schema': config.schemas.analytics,
            'dry_run': dry_run,
        }
    )

    clean = db.fetch_clean_tables(config.schemas.clean)
    tables = build_analytics(clean)

    stats = {name: len(rows) for name, rows in tables.items()}

    if dry_run:
        logger.info(f"DRY RUN: Would rebuild {len(tables)} analytics tables")
        for row in tables['skill_demand'][:TOP_N_PREVIEW]:
            print(f"{row['skill_abr']:<8} {row['skill_name'] or '-':<30} {row['job_count']}")
    else:
        db.replace_analytics(config.schemas.analytics, config.schemas.clean, tables)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Analytics service completed",
        extra={'duration_seconds': duration, 'row_counts': stats}
    )

    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the analytics service.

    Returns:
        Exit code (0 = success, 2 = fatal error)
    """
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    database_url = os.getenv('DATABASE_URL')
    if not database_url:
        logger.error("DATABASE_URL environment variable must be set")
        return 2

    try:
        config = load_pipeline_config(args.config)

        logger.info("Connecting to database")
        db = AnalyticsDB(database_url)

        run_analytics(db=db, config=config, dry_run=args.dry_run)

        logger.info("Analytics completed successfully")
        return 0

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 2

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(
            "Unexpected fatal error",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 2


if __name__ == '__main__':
    sys.exit(main())
