"""Monitoring configuration for the player."""
from prometheus_client import Counter, Gauge, start_http_server

# Cycle metrics
cycles_started = Counter(
    "legoplayer_cycles_started_total",
    "Total number of cycle runs started",
)

cycles_stopped = Counter(
    "legoplayer_cycles_stopped_total",
    "Total number of cycle runs stopped before the queue was exhausted",
)

items_completed = Counter(
    "legoplayer_items_completed_total",
    "Total number of learning items played to completion",
    ["item_type"],
)

phase_errors = Counter(
    "legoplayer_phase_errors_total",
    "Total number of audio misses or failures per phase",
    ["phase"],
)

# Network metrics
nodes_registered = Counter(
    "legoplayer_nodes_registered_total",
    "Total number of unit nodes added to networks",
)

edges_registered = Counter(
    "legoplayer_edges_registered_total",
    "Total number of co-occurrence edges created",
)

eternal_promotions = Counter(
    "legoplayer_eternal_promotions_total",
    "Total number of units promoted to eternal",
)

# Replay metrics
replay_steps = Counter(
    "legoplayer_replay_steps_total",
    "Total number of replay steps executed",
)

replays_running = Gauge(
    "legoplayer_replays_running",
    "Number of replay simulations currently running",
)

# Cache metrics
script_cache_hits = Counter(
    "legoplayer_script_cache_hits_total",
    "Total number of script cache hits",
)

script_cache_misses = Counter(
    "legoplayer_script_cache_misses_total",
    "Total number of script cache misses",
)

script_cache_errors = Counter(
    "legoplayer_script_cache_errors_total",
    "Total number of swallowed script cache errors",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
