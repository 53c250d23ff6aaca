# metrics/registry.py
from prometheus_client import Counter, Gauge, Histogram

__all__ = ["LLM_LATENCY", "LLM_TOKENS_INFLIGHT", "ERRORS", "EVENTS_TOTAL", "ROUTING_DROPS"]

# Completion latency by model
LLM_LATENCY = Histogram(
    "llm_latency_seconds",
    "LLM response latency",
    ["model", "phase"]  # phase: "analyze"|"embed"
)

# Requests currently waiting on the completion service
LLM_TOKENS_INFLIGHT = Gauge(
    "llm_tokens_inflight",
    "Active tokens in flight",
    ["direction"]  # "in"|"out"
)

# Errors by component/type
ERRORS = Counter(
    "errors_total",
    "Errors by component",
    ["component", "etype"]  # etype: exception class name or Parse|Timeout|HTTP
)

# Events passing through the dispatcher
EVENTS_TOTAL = Counter(
    "dispatcher_events_total",
    "Events handled by the dispatcher",
    ["direction", "kind"]  # direction: "inbound"|"outbound"
)

# Outbound events dropped because the target client is not registered
ROUTING_DROPS = Counter(
    "dispatcher_routing_drops_total",
    "Outbound events dropped for unknown targets",
    ["target"]
)
