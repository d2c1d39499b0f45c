"""
Run the full job warehouse build: load raw >> build clean model >> build analytics.

Usage:
    python scripts/run_pipeline.py [--config PATH] [--from-stage STAGE] [--dry-run] [--verbose]

Options:
    --config PATH        Path to pipeline.yml (default: config/pipeline.yml)
    --from-stage STAGE   First stage to run: raw, clean or analytics (default: raw)
    --dry-run            Compute and report without writing to database
    --verbose            Enable debug logging

Example:
    # Full rebuild
    python scripts/run_pipeline.py

    # The analytics stage failed last night; resume from it
    python scripts/run_pipeline.py --from-stage analytics
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Import after path modification
from services.common.config_loader import load_pipeline_config  # noqa: E402
from services.common.database import DatabaseError  # noqa: E402
from services.normalizer.facts import NormalizationError  # noqa: E402
from services.pipeline import STAGES, run_pipeline  # noqa: E402
from services.raw_loader.sources import RawLoadError  # noqa: E402

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the job warehouse pipeline stages in order",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to pipeline.yml configuration file (default: config/pipeline.yml)",
    )

    parser.add_argument(
        "--from-stage",
        choices=STAGES,
        default="raw",
        dest="from_stage",
        help="First stage to run (default: raw)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and report without writing to database",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL environment variable must be set")
        return 2

    try:
        config = load_pipeline_config(args.config)
        results = run_pipeline(
            database_url,
            config,
            from_stage=args.from_stage,
            dry_run=args.dry_run,
        )

        for stage, stats in results.items():
            print(f"[{stage}]")
            for name, count in stats.items():
                print(f"  {name}: {count}")

        return 0

    except (RawLoadError, NormalizationError, DatabaseError) as e:
        logger.error(f"Pipeline failed: {e}")
        return 2

    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
