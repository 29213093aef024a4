"""Rate limiting adapters.

The limiter keeps its per-token state in the shared keyed store, so an
in-memory store gives a per-process limit and a durable store shares the
limit between every process pointed at it.
"""
