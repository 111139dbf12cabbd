"""Measurement-and-statistics engine for microbench.

Provides the warmup/measurement protocol, sample collection, the
3-sigma statistical reduction, and the multi-candidate comparison
protocol.
"""
