"""
Configuration Loader for the Job Warehouse Pipeline

This module loads and validates the pipeline configuration from pipeline.yml.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .coercion import VALID_POLICIES

logger = logging.getLogger(__name__)

DATA_DIR_ENV_VAR = 'JOB_WAREHOUSE_DATA_DIR'

MERGE_FIRST_NON_NULL = 'first_non_null'
MERGE_MOST_COMPLETE = 'most_complete'
VALID_MERGE_POLICIES = {MERGE_FIRST_NON_NULL, MERGE_MOST_COMPLETE}


@dataclass
class SchemaNames:
    """PostgreSQL schemas holding each stage's tables."""

    raw: str = 'raw'
    clean: str = 'clean'
    analytics: str = 'analytics'

    def validate(self) -> None:
        names = [self.raw, self.clean, self.analytics]
        if any(not name for name in names):
            raise ValueError("Schema names must be non-empty")
        if len(set(names)) != len(names):
            raise ValueError(f"Schema names must be distinct, got {names}")


@dataclass
class CoercionPolicy:
    """Numeric coercion policy per field group ('strict' or 'lenient')."""

    counts: str = 'strict'
    salaries: str = 'strict'

    def validate(self) -> None:
        for group, policy in (('counts', self.counts), ('salaries', self.salaries)):
            if policy not in VALID_POLICIES:
                raise ValueError(
                    f"Invalid coercion policy for {group}: '{policy}' "
                    f"(expected one of {sorted(VALID_POLICIES)})"
                )


@dataclass
class NormalizerOptions:
    """Options for the clean-model build."""

    dimension_merge_policy: str = MERGE_FIRST_NON_NULL

    def validate(self) -> None:
        if self.dimension_merge_policy not in VALID_MERGE_POLICIES:
            raise ValueError(
                f"Invalid dimension_merge_policy '{self.dimension_merge_policy}' "
                f"(expected one of {sorted(VALID_MERGE_POLICIES)})"
            )


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""

    data_dir: str = 'data'
    schemas: SchemaNames = field(default_factory=SchemaNames)
    coercion: CoercionPolicy = field(default_factory=CoercionPolicy)
    normalizer: NormalizerOptions = field(default_factory=NormalizerOptions)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "PipelineConfig":
        """Create PipelineConfig from dictionary."""
        schemas_dict = config_dict.get('schemas') or {}
        schemas = SchemaNames(
            raw=schemas_dict.get('raw', 'raw'),
            clean=schemas_dict.get('clean', 'clean'),
            analytics=schemas_dict.get('analytics', 'analytics'),
        )
        schemas.validate()

        coercion_dict = config_dict.get('coercion') or {}
        coercion = CoercionPolicy(
            counts=coercion_dict.get('counts', 'strict'),
            salaries=coercion_dict.get('salaries', 'strict'),
        )
        coercion.validate()

        normalizer_dict = config_dict.get('normalizer') or {}
        normalizer = NormalizerOptions(
            dimension_merge_policy=normalizer_dict.get(
                'dimension_merge_policy', MERGE_FIRST_NON_NULL
            ),
        )
        normalizer.validate()

        data_dir = os.getenv(DATA_DIR_ENV_VAR) or config_dict.get('data_dir', 'data')

        return cls(
            data_dir=str(data_dir),
            schemas=schemas,
            coercion=coercion,
            normalizer=normalizer,
        )


def load_pipeline_config(config_path: Optional[str] = None) -> PipelineConfig:
    """
    Load pipeline configuration from YAML file.

    Args:
        config_path: Path to pipeline.yml file. If None, uses default location.

    Returns:
        PipelineConfig with data directory, schema names and policies

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid

    Example:
        >>> config = load_pipeline_config('config/pipeline.yml')
        >>> print(config.schemas.clean)
        clean
    """
    if config_path is None:
        # Default path relative to project root
        project_root = Path(__file__).parent.parent.parent
        config_path = str(project_root / "config" / "pipeline.yml")

    logger.info("Loading pipeline configuration", extra={'config_path': config_path})

    try:
        with open(config_path) as f:
            config_dict = yaml.safe_load(f)

        if not config_dict:
            logger.warning("Empty configuration file, using defaults")
            config_dict = {}

        if not isinstance(config_dict, dict):
            raise ValueError("Top-level configuration must be a mapping")

        config = PipelineConfig.from_dict(config_dict)

        logger.info(
            "Pipeline configuration loaded successfully",
            extra={
                'data_dir': config.data_dir,
                'schemas': [config.schemas.raw, config.schemas.clean, config.schemas.analytics],
                'coercion_counts': config.coercion.counts,
                'coercion_salaries': config.coercion.salaries,
                'dimension_merge_policy': config.normalizer.dimension_merge_policy,
            }
        )

        return config

    except FileNotFoundError:
        logger.error(f"Configuration file not found: {config_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ValueError(f"Failed to load configuration: {e}") from e
