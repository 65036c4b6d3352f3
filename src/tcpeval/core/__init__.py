"""Data model and parameter derivation for TCP evaluation experiments."""

from tcpeval.core.params import DerivedParameters, TopologyTargets, derive_parameters, red_parameters
from tcpeval.core.types import ConfigError, TrafficClass, TrafficParameters

__all__ = [
    "ConfigError",
    "DerivedParameters",
    "TopologyTargets",
    "TrafficClass",
    "TrafficParameters",
    "derive_parameters",
    "red_parameters",
]
