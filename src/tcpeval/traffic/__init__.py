from tcpeval.traffic.orchestrator import STOP_POLICIES, TrafficOrchestrator

__all__ = ["STOP_POLICIES", "TrafficOrchestrator"]
