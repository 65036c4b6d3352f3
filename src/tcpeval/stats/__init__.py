from tcpeval.stats.sampler import MetricAccumulator, StatisticsSampler, drop_rate

__all__ = ["MetricAccumulator", "StatisticsSampler", "drop_rate"]
