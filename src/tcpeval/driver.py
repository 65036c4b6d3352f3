from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from tcpeval.core.logging import JsonlLogger
from tcpeval.core.params import derive_parameters
from tcpeval.engine.base import Engine
from tcpeval.engine.packet_sim import PacketSimEngine
from tcpeval.runtime.config import ExperimentConfig
from tcpeval.stats.sampler import StatisticsSampler
from tcpeval.topology.dumbbell import DumbbellTopology
from tcpeval.topology.parking_lot import ParkingLotTopology
from tcpeval.topology.topology import TopologyBuilder
from tcpeval.traffic.orchestrator import TrafficOrchestrator
from tcpeval.utils.io import dump_json, ensure_dir

log = logging.getLogger("tcpeval.driver")

EngineFactory = Callable[[ExperimentConfig], Engine]


def default_engine_factory(config: ExperimentConfig) -> Engine:
    return PacketSimEngine(seed=config.seed)


class ExperimentDriver:
    """Wires parameters, topology, traffic and sampling into one run.

    Order matters: the topology is realized and traffic installed before
    routes are populated, and the sampler is torn down only after the engine
    returns from ``run``.
    """

    def __init__(self, config: ExperimentConfig, engine_factory: EngineFactory = default_engine_factory) -> None:
        self.config = config
        self.engine_factory = engine_factory
        self.params = derive_parameters(config.targets, config.traffic)
        self.builder = self._make_builder()
        self.engine: Optional[Engine] = None
        self.orchestrator: Optional[TrafficOrchestrator] = None
        self.sampler: Optional[StatisticsSampler] = None

    def _make_builder(self) -> TopologyBuilder:
        if self.config.variant == "parking-lot":
            return ParkingLotTopology(self.params, self.config.traffic, hops=self.config.targets.hops)
        return DumbbellTopology(self.params, self.config.traffic)

    def run(self) -> Dict[str, Any]:
        cfg = self.config
        run_dir = ensure_dir(cfg.run_dir) if cfg.run_dir else None
        trace = JsonlLogger(run_dir / "events.jsonl" if run_dir else None)
        try:
            payload = self._run(trace)
        finally:
            trace.close()
        if run_dir is not None:
            dump_json(run_dir / "result.json", payload)
            dump_json(run_dir / "config.effective.json", cfg.to_dict())
        return payload

    def _run(self, trace: JsonlLogger) -> Dict[str, Any]:
        cfg = self.config
        engine = self.engine_factory(cfg)
        self.engine = engine
        trace.bind_clock(engine.now)

        topology = self.builder.build()
        topology.install(engine)
        trace.log("topology_built", variant=cfg.variant, **self.builder.summary())
        log.info("built %s topology: %s", cfg.variant, self.builder.summary())

        self.orchestrator = TrafficOrchestrator(
            self.builder,
            cfg.traffic,
            seed=cfg.seed,
            stop_policy=cfg.stop_policy,
            start_window=cfg.start_window,
            trace=trace,
        )
        flows = self.orchestrator.install(engine)
        engine.populate_routes()

        self.sampler = StatisticsSampler(
            bandwidth=cfg.targets.bandwidth,
            rtt=cfg.targets.rttp,
            flow_count=cfg.traffic.fwd_ftp_flows,
            duration=cfg.duration,
            output_file=cfg.output_file,
            queue_capacity=self.params.bottleneck_buffer,
            normalize_queue=cfg.normalize_queue,
            queue_sample_interval=cfg.queue_sample_interval,
            trace=trace,
        )
        self.sampler.install(engine, topology.iface_handle(self.builder.bottleneck_interface()))

        engine.run(until=cfg.duration + cfg.stop_grace)
        row = self.sampler.teardown()

        return {
            "variant": cfg.variant,
            "seed": cfg.seed,
            "output_file": cfg.output_file,
            "row": row.format(),
            "summary": row.as_dict(),
            "topology": self.builder.summary(),
            "flows": self.orchestrator.counts(),
            "flow_pairs": len(flows),
            "derived": self.params.to_dict(),
            "series": self.sampler.series(),
        }


def run_experiment(config: ExperimentConfig, engine_factory: EngineFactory = default_engine_factory) -> Dict[str, Any]:
    return ExperimentDriver(config, engine_factory=engine_factory).run()
