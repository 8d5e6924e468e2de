"""Pure reconciliation and metrics logic for the finance dashboard.

Records are parsed once at the boundary (``records``); everything else here is a
side-effect free function of those records plus an explicit ``now`` where a
rolling window is involved.
"""

__all__ = [
    "aggregation",
    "matching",
    "metrics",
    "numbers",
    "pricing",
    "records",
]
