from prometheus_client import Counter, Gauge, REGISTRY, start_http_server
from loguru import logger

# Keep global references so repeated imports/instantiations don't register the
# same metric name multiple times (pytest builds several relays in one process).
_counter_cache: dict[str, Counter] = {}
_gauge_cache: dict[str, Gauge] = {}

label_names = ["worker"]


def GaugeWithParams(metric_name: str, description: str) -> Gauge:
    if metric_name not in _gauge_cache:
        _gauge_cache[metric_name] = Gauge(
            metric_name,
            description,
            labelnames=label_names,
            registry=REGISTRY,
        )
    return _gauge_cache[metric_name]


def CounterWithParams(metric_name: str, description: str) -> Counter:
    if metric_name not in _counter_cache:
        _counter_cache[metric_name] = Counter(
            metric_name,
            description,
            labelnames=label_names,
            registry=REGISTRY,
        )
    return _counter_cache[metric_name]


HASHRATE_GAUGE = GaugeWithParams("miner_hashrate_hs", "Latest GPU hashrate reported by the miner (H/s)")
TEMPERATURE_GAUGE = GaugeWithParams("miner_gpu_temperature_celsius", "Latest GPU temperature reported by the miner")
BACKEND_UP_GAUGE = GaugeWithParams("miner_backend_up", "1 if the accounting backend answered the last health probe")
SESSION_UPDATE_FAILURES = CounterWithParams(
    "miner_session_update_failures", "Mid-session telemetry updates rejected or lost"
)
REALTIME_PUSHES = CounterWithParams("miner_realtime_pushes", "mining_stats messages handed to the realtime channel")


def start_metrics_server(port: int) -> None:
    """Expose the registry over HTTP for scraping."""
    start_http_server(port)
    logger.info(f"Prometheus metrics exposed on :{port}/metrics")
