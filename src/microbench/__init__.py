"""microbench: a micro-benchmark measurement harness.

Runs a unit of work repeatedly under controlled conditions and reduces
the timing, memory, and CPU-time samples to outlier-robust summary
statistics that can be compared across implementations.
"""

__version__ = "0.1.0"
