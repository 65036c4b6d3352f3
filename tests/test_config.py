from __future__ import annotations

from pathlib import Path

import pytest

from tcpeval.core.types import ConfigError
from tcpeval.runtime.config import (
    build_experiment_config,
    default_config,
    load_experiment_config,
    validate_config,
)


def test_dumbbell_defaults() -> None:
    cfg = build_experiment_config({})

    assert cfg.variant == "dumbbell"
    assert cfg.targets.bandwidth == 10.0
    assert cfg.targets.rttp == pytest.approx(0.08)
    assert cfg.targets.hops == 1
    assert cfg.traffic.fwd_ftp_flows == 5
    assert cfg.traffic.cross_ftp_flows == 0
    assert cfg.traffic.simulation_time == 10.0
    assert cfg.output_file == "TcpEvalDumbbell"
    assert cfg.stop_policy == "drain"
    assert cfg.seed == 42


def test_parking_lot_defaults() -> None:
    cfg = build_experiment_config({"topology": "parking-lot"})

    assert cfg.targets.hops == 3
    assert cfg.traffic.cross_ftp_flows == 5
    assert cfg.traffic.simulation_time == 100.0
    assert cfg.targets.cross_link_delay == pytest.approx(0.01)
    assert cfg.output_file == "TcpEvalParkingLot"


def test_dumbbell_forces_single_hop() -> None:
    cfg = build_experiment_config({"topology": "dumbbell", "link": {"hops": 4}})
    assert cfg.targets.hops == 1


def test_load_yaml_with_overrides(tmp_path: Path) -> None:
    cfg_path = tmp_path / "exp.yaml"
    cfg_path.write_text(
        """
topology: parking-lot
seed: 7
link:
  bandwidth: 5
  hops: 2
traffic:
  cross_ftp_flows: 2
  use_aqm: true
experiment:
  stop_policy: shared
  start_window: [0.01, 0.02]
""".strip(),
        encoding="utf-8",
    )
    cfg = load_experiment_config(cfg_path, overrides={"traffic": {"simulation_time": 12}})

    assert cfg.variant == "parking-lot"
    assert cfg.seed == 7
    assert cfg.targets.bandwidth == 5.0
    assert cfg.targets.hops == 2
    assert cfg.traffic.cross_ftp_flows == 2
    assert cfg.traffic.use_aqm is True
    assert cfg.traffic.simulation_time == 12.0
    assert cfg.traffic.voice_flows == 5
    assert cfg.stop_policy == "shared"
    assert cfg.start_window == (0.01, 0.02)
    assert cfg.to_dict()["start_window"] == [0.01, 0.02]


def test_variant_argument_wins_over_file(tmp_path: Path) -> None:
    cfg_path = tmp_path / "exp.yaml"
    cfg_path.write_text("topology: parking-lot\n", encoding="utf-8")
    cfg = load_experiment_config(cfg_path, variant="dumbbell")
    assert cfg.variant == "dumbbell"


def test_validate_collects_every_error() -> None:
    raw = default_config("parking-lot")
    raw["link"]["bandwidth"] = 0
    raw["link"]["hops"] = 0
    raw["traffic"]["fwd_ftp_flows"] = -1
    raw["experiment"]["stop_policy"] = "sometimes"

    errors = validate_config(raw)
    assert "link.bandwidth must be > 0" in errors
    assert "link.hops must be an integer >= 1" in errors
    assert "traffic.fwd_ftp_flows must be a non-negative integer" in errors
    assert any("stop_policy" in e for e in errors)


def test_defaults_are_valid() -> None:
    assert validate_config(default_config("dumbbell")) == []
    assert validate_config(default_config("parking-lot")) == []


def test_unknown_variant_is_a_config_error() -> None:
    with pytest.raises(ConfigError) as info:
        build_experiment_config({"topology": "star"})
    assert any("unknown topology variant" in e for e in info.value.errors)


def test_non_numeric_values_are_reported() -> None:
    with pytest.raises(ConfigError) as info:
        build_experiment_config({"link": {"rttp": "fast"}, "traffic": {"simulation_time": 0}})
    assert "link.rttp must be a number" in info.value.errors
    assert "traffic.simulation_time must be > 0" in info.value.errors


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    cfg_path = tmp_path / "list.yaml"
    cfg_path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_experiment_config(cfg_path)
