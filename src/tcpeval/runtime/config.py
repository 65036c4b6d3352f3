from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tcpeval.core.params import ACCESS_BUFFER_POLICIES, TopologyTargets
from tcpeval.core.types import ConfigError, TrafficParameters
from tcpeval.traffic.orchestrator import START_WINDOW, STOP_POLICIES
from tcpeval.utils.io import deep_merge, load_yaml

VARIANTS = ("dumbbell", "parking-lot")

FLOW_KEYS = (
    "fwd_ftp_flows",
    "rev_ftp_flows",
    "cross_ftp_flows",
    "voice_flows",
    "fwd_streaming_flows",
    "rev_streaming_flows",
)

_VARIANT_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "dumbbell": {
        "output_file": "TcpEvalDumbbell",
        "link": {"hops": 1},
        "traffic": {"simulation_time": 10.0},
    },
    "parking-lot": {
        "output_file": "TcpEvalParkingLot",
        "link": {"hops": 3},
        "traffic": {"simulation_time": 100.0},
    },
}


@dataclass(frozen=True)
class ExperimentConfig:
    variant: str = "dumbbell"
    targets: TopologyTargets = field(default_factory=TopologyTargets)
    traffic: TrafficParameters = field(default_factory=TrafficParameters)
    seed: int = 42
    output_file: Optional[str] = "TcpEvalDumbbell"
    run_dir: Optional[str] = None
    stop_policy: str = "drain"
    start_window: Tuple[float, float] = START_WINDOW
    stop_grace: float = 5.0
    queue_sample_interval: Optional[float] = None
    normalize_queue: bool = False

    @property
    def duration(self) -> float:
        return self.traffic.simulation_time

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["start_window"] = list(self.start_window)
        return out


def default_config(variant: str = "dumbbell") -> Dict[str, Any]:
    """Raw configuration mapping with every key at its default value."""
    base: Dict[str, Any] = {
        "topology": variant,
        "seed": 42,
        "output_file": "TcpEvalDumbbell",
        "run_dir": None,
        "link": {
            "bandwidth": 10.0,
            "rttp": 0.08,
            "rtt_difference": 0.0,
            "cross_link_delay": 0.01,
            "hops": 1,
            "bdp_factor": 1.0,
            "access_buffer": "mirror",
        },
        "traffic": {
            "fwd_ftp_flows": 5,
            "rev_ftp_flows": 5,
            "cross_ftp_flows": 5,
            "voice_flows": 5,
            "fwd_streaming_flows": 5,
            "rev_streaming_flows": 5,
            "streaming_rate": 640.0,
            "streaming_packet_size": 840,
            "use_aqm": False,
            "simulation_time": 10.0,
        },
        "experiment": {
            "stop_policy": "drain",
            "start_window": list(START_WINDOW),
            "stop_grace": 5.0,
            "queue_sample_interval": None,
            "normalize_queue": False,
        },
    }
    return deep_merge(base, _VARIANT_DEFAULTS.get(variant, {}))


def validate_config(cfg: Dict[str, Any]) -> List[str]:
    errors: List[str] = []

    variant = cfg.get("topology")
    if variant not in VARIANTS:
        errors.append(f"unknown topology variant: {variant!r} (expected one of {', '.join(VARIANTS)})")

    link = cfg.get("link", {})
    traffic = cfg.get("traffic", {})
    experiment = cfg.get("experiment", {})
    for name, section in (("link", link), ("traffic", traffic), ("experiment", experiment)):
        if not isinstance(section, dict):
            errors.append(f"'{name}' must be a dict")
    if errors:
        return errors

    bandwidth = _number(link, "bandwidth", "link", errors)
    if bandwidth is not None and bandwidth <= 0:
        errors.append("link.bandwidth must be > 0")
    for key in ("rttp", "rtt_difference", "cross_link_delay"):
        value = _number(link, key, "link", errors)
        if value is not None and value < 0:
            errors.append(f"link.{key} must be >= 0")
    bdp = _number(link, "bdp_factor", "link", errors)
    if bdp is not None and bdp <= 0:
        errors.append("link.bdp_factor must be > 0")
    if variant == "parking-lot":
        hops = _number(link, "hops", "link", errors)
        if hops is not None and (hops < 1 or int(hops) != hops):
            errors.append("link.hops must be an integer >= 1")
    if link.get("access_buffer", "mirror") not in ACCESS_BUFFER_POLICIES:
        errors.append(f"unknown link.access_buffer policy: {link.get('access_buffer')!r}")

    for key in FLOW_KEYS:
        value = _number(traffic, key, "traffic", errors)
        if value is not None and (value < 0 or int(value) != value):
            errors.append(f"traffic.{key} must be a non-negative integer")
    rate = _number(traffic, "streaming_rate", "traffic", errors)
    if rate is not None and rate <= 0:
        errors.append("traffic.streaming_rate must be > 0")
    size = _number(traffic, "streaming_packet_size", "traffic", errors)
    if size is not None and size <= 0:
        errors.append("traffic.streaming_packet_size must be > 0")
    sim_time = _number(traffic, "simulation_time", "traffic", errors)
    if sim_time is not None and sim_time <= 0:
        errors.append("traffic.simulation_time must be > 0")

    if experiment.get("stop_policy", "drain") not in STOP_POLICIES:
        errors.append(f"unknown experiment.stop_policy: {experiment.get('stop_policy')!r}")
    window = experiment.get("start_window", list(START_WINDOW))
    if not isinstance(window, (list, tuple)) or len(window) != 2:
        errors.append("experiment.start_window must be a [min, max] pair")
    else:
        try:
            lo, hi = float(window[0]), float(window[1])
        except (TypeError, ValueError):
            errors.append("experiment.start_window values must be numbers")
        else:
            if lo < 0 or hi < lo:
                errors.append("experiment.start_window must satisfy 0 <= min <= max")
    grace = _number(experiment, "stop_grace", "experiment", errors)
    if grace is not None and grace < 0:
        errors.append("experiment.stop_grace must be >= 0")
    if experiment.get("queue_sample_interval") is not None:
        interval = _number(experiment, "queue_sample_interval", "experiment", errors)
        if interval is not None and interval <= 0:
            errors.append("experiment.queue_sample_interval must be > 0")

    return errors


def _number(section: Dict[str, Any], key: str, prefix: str, errors: List[str]) -> Optional[float]:
    if key not in section:
        return None
    value = section[key]
    if isinstance(value, bool):
        errors.append(f"{prefix}.{key} must be a number")
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        errors.append(f"{prefix}.{key} must be a number")
        return None


def build_experiment_config(raw: Dict[str, Any]) -> ExperimentConfig:
    """Merge ``raw`` over its variant defaults, validate, and freeze."""
    variant = str(raw.get("topology", "dumbbell")).lower()
    cfg = deep_merge(default_config(variant), dict(raw, topology=variant))
    errors = validate_config(cfg)
    if errors:
        raise ConfigError(errors)

    link = cfg["link"]
    traffic = cfg["traffic"]
    experiment = cfg["experiment"]
    hops = 1 if variant == "dumbbell" else int(link["hops"])
    window = experiment["start_window"]
    interval = experiment.get("queue_sample_interval")

    return ExperimentConfig(
        variant=variant,
        targets=TopologyTargets(
            bandwidth=float(link["bandwidth"]),
            rttp=float(link["rttp"]),
            rtt_difference=float(link["rtt_difference"]),
            hops=hops,
            cross_link_delay=float(link["cross_link_delay"]),
            bdp_factor=float(link["bdp_factor"]),
            access_buffer=str(link["access_buffer"]),
        ),
        traffic=TrafficParameters(
            fwd_ftp_flows=int(traffic["fwd_ftp_flows"]),
            rev_ftp_flows=int(traffic["rev_ftp_flows"]),
            cross_ftp_flows=int(traffic["cross_ftp_flows"]) if variant == "parking-lot" else 0,
            voice_flows=int(traffic["voice_flows"]),
            fwd_streaming_flows=int(traffic["fwd_streaming_flows"]),
            rev_streaming_flows=int(traffic["rev_streaming_flows"]),
            streaming_rate=float(traffic["streaming_rate"]),
            streaming_packet_size=int(traffic["streaming_packet_size"]),
            use_aqm=bool(traffic["use_aqm"]),
            simulation_time=float(traffic["simulation_time"]),
        ),
        seed=int(cfg["seed"]),
        output_file=str(cfg["output_file"]) if cfg.get("output_file") else None,
        run_dir=str(cfg["run_dir"]) if cfg.get("run_dir") else None,
        stop_policy=str(experiment["stop_policy"]),
        start_window=(float(window[0]), float(window[1])),
        stop_grace=float(experiment["stop_grace"]),
        queue_sample_interval=float(interval) if interval is not None else None,
        normalize_queue=bool(experiment["normalize_queue"]),
    )


def load_experiment_config(
    path: str | Path | None = None,
    overrides: Optional[Dict[str, Any]] = None,
    variant: Optional[str] = None,
) -> ExperimentConfig:
    raw: Dict[str, Any] = load_yaml(path) if path else {}
    if variant is not None:
        raw["topology"] = variant
    if overrides:
        raw = deep_merge(raw, overrides)
    return build_experiment_config(raw)
