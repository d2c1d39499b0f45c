"""
Pipeline Runner

Runs the three warehouse stages in their fixed order:

    raw (load CSVs) >> clean (normalize) >> analytics (aggregate)

Each stage rebuilds its own tables from scratch, so a failed run is recovered
by re-running from the failed stage (or from the start).
"""

import logging
from typing import Any, Callable, Optional

from services.analytics.db_operations import AnalyticsDB
from services.analytics.main import run_analytics
from services.common.config_loader import PipelineConfig
from services.normalizer.db_operations import NormalizerDB
from services.normalizer.main import run_normalizer
from services.raw_loader.db_operations import RawLoaderDB
from services.raw_loader.main import run_raw_loader

logger = logging.getLogger(__name__)

STAGES = ('raw', 'clean', 'analytics')

DEFAULT_DB_FACTORIES: dict[str, Callable[[str], Any]] = {
    'raw': RawLoaderDB,
    'clean': NormalizerDB,
    'analytics': AnalyticsDB,
}


def run_pipeline(
    database_url: str,
    config: PipelineConfig,
    from_stage: str = 'raw',
    dry_run: bool = False,
    db_factories: Optional[dict[str, Callable[[str], Any]]] = None
) -> dict[str, dict[str, int]]:
    """
    Run the pipeline stages in order, starting at from_stage.

    Args:
        database_url: PostgreSQL connection URL
        config: Pipeline configuration
        from_stage: First stage to run ('raw', 'clean' or 'analytics')
        dry_run: If True, stages compute and report without writing
        db_factories: Stage name -> callable building its database interface

    Returns:
        Statistics per executed stage

    Raises:
        ValueError: If from_stage is unknown
        Any stage error; later stages are not started after a failure
    """
    if from_stage not in STAGES:
        raise ValueError(f"Unknown stage '{from_stage}', expected one of {list(STAGES)}")

    factories = {**DEFAULT_DB_FACTORIES, **(db_factories or {})}
    results: dict[str, dict[str, int]] = {}

    for stage in STAGES[STAGES.index(from_stage):]:
        logger.info("Running pipeline stage", extra={'stage': stage, 'dry_run': dry_run})

        if stage == 'raw':
            db = None if dry_run else factories['raw'](database_url)
            results[stage] = run_raw_loader(
                db=db,
                data_dir=config.data_dir,
                schema=config.schemas.raw,
                dry_run=dry_run,
            )
        elif stage == 'clean':
            results[stage] = run_normalizer(
                db=factories['clean'](database_url),
                config=config,
                dry_run=dry_run,
            )
        else:
            results[stage] = run_analytics(
                db=factories['analytics'](database_url),
                config=config,
                dry_run=dry_run,
            )

    logger.info("Pipeline completed", extra={'stages': list(results)})
    return results
