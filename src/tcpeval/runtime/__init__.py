from tcpeval.runtime.config import (
    VARIANTS,
    ExperimentConfig,
    build_experiment_config,
    default_config,
    load_experiment_config,
    validate_config,
)

__all__ = [
    "VARIANTS",
    "ExperimentConfig",
    "build_experiment_config",
    "default_config",
    "load_experiment_config",
    "validate_config",
]
