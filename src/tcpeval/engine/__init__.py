"""Simulation engine interface and the built-in packet-level engine."""

from tcpeval.engine.base import Engine
from tcpeval.engine.packet_sim import PacketSimEngine
from tcpeval.engine.scheduler import EventScheduler

__all__ = ["Engine", "EventScheduler", "PacketSimEngine"]
