# metrics/noop.py
__all__ = ["LLM_LATENCY", "LLM_TOKENS_INFLIGHT", "ERRORS", "EVENTS_TOTAL", "ROUTING_DROPS"]


class _No:
    def labels(self, *a, **kw): return self
    def observe(self, *a, **kw): pass
    def inc(self, *a, **kw): pass
    def dec(self, *a, **kw): pass
    def set(self, *a, **kw): pass

LLM_LATENCY = LLM_TOKENS_INFLIGHT = ERRORS = EVENTS_TOTAL = ROUTING_DROPS = _No()
