from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from tcpeval.core.types import ConfigError
from tcpeval.driver import run_experiment
from tcpeval.runtime.config import VARIANTS, default_config, load_experiment_config, validate_config
from tcpeval.traffic.orchestrator import STOP_POLICIES
from tcpeval.utils.io import deep_merge, load_yaml

# (flag, section, key, type)
_OVERRIDES = (
    ("bottleneck_bandwidth", "link", "bandwidth", float),
    ("rttp", "link", "rttp", float),
    ("rtt_difference", "link", "rtt_difference", float),
    ("cross_link_delay", "link", "cross_link_delay", float),
    ("bottleneck_count", "link", "hops", int),
    ("bdp_factor", "link", "bdp_factor", float),
    ("access_buffer", "link", "access_buffer", str),
    ("n_fwd_ftp_flows", "traffic", "fwd_ftp_flows", int),
    ("n_rev_ftp_flows", "traffic", "rev_ftp_flows", int),
    ("n_cross_ftp_flows", "traffic", "cross_ftp_flows", int),
    ("n_voice_flows", "traffic", "voice_flows", int),
    ("n_fwd_streaming_flows", "traffic", "fwd_streaming_flows", int),
    ("n_rev_streaming_flows", "traffic", "rev_streaming_flows", int),
    ("streaming_rate", "traffic", "streaming_rate", float),
    ("streaming_packet_size", "traffic", "streaming_packet_size", int),
    ("use_aqm", "traffic", "use_aqm", bool),
    ("simulation_time", "traffic", "simulation_time", float),
    ("stop_policy", "experiment", "stop_policy", str),
    ("stop_grace", "experiment", "stop_grace", float),
    ("queue_sample_interval", "experiment", "queue_sample_interval", float),
)


def _add_experiment_args(p: argparse.ArgumentParser, variant: str) -> None:
    p.add_argument("--config", help="YAML experiment config; flags override its values.")
    for flag, _, _, typ in _OVERRIDES:
        if flag in ("bottleneck_count", "n_cross_ftp_flows", "cross_link_delay") and variant != "parking-lot":
            continue
        name = "--" + flag.replace("_", "-")
        if typ is bool:
            p.add_argument(name, dest=flag, action=argparse.BooleanOptionalAction, default=None)
        elif flag == "stop_policy":
            p.add_argument(name, dest=flag, choices=STOP_POLICIES, default=None)
        else:
            p.add_argument(name, dest=flag, type=typ, default=None)
    p.add_argument("--normalize-queue", action="store_true", default=None, help="Report queue as %% of capacity.")
    p.add_argument("--file-name", dest="output_file", default=None, help="Output file the summary row is appended to.")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--run-dir", default=None, help="Directory for result.json, config and events.jsonl.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tcp-eval", description="TCP evaluation experiment runner")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    for variant in VARIANTS:
        p = sub.add_parser(variant, help=f"Run a {variant} experiment")
        _add_experiment_args(p, variant)

    p_validate = sub.add_parser("validate", help="Validate a config file")
    p_validate.add_argument("--config", required=True)

    return parser


def collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for flag, section, key, _ in _OVERRIDES:
        value = getattr(args, flag, None)
        if value is not None:
            out.setdefault(section, {})[key] = value
    if getattr(args, "normalize_queue", None):
        out.setdefault("experiment", {})["normalize_queue"] = True
    for key in ("output_file", "seed", "run_dir"):
        value = getattr(args, key, None)
        if value is not None:
            out[key] = value
    return out


def _fail(errors: List[str]) -> int:
    print(json.dumps({"ok": False, "errors": errors}, ensure_ascii=False, indent=2), file=sys.stderr)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "validate":
        try:
            raw = load_yaml(args.config)
        except (OSError, ValueError) as exc:
            return _fail([str(exc)])
        variant = str(raw.get("topology", "dumbbell")).lower()
        errors = validate_config(deep_merge(default_config(variant), dict(raw, topology=variant)))
        if errors:
            return _fail(errors)
        print(json.dumps({"ok": True}, ensure_ascii=False, indent=2))
        return 0

    try:
        config = load_experiment_config(args.config, overrides=collect_overrides(args), variant=args.cmd)
    except ConfigError as exc:
        return _fail(exc.errors)
    except (OSError, ValueError) as exc:
        return _fail([str(exc)])

    result = run_experiment(config)
    print(json.dumps(result, indent=2, ensure_ascii=False, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
