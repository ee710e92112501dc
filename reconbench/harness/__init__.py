"""
Experiment harness measuring write latency around a membership reconfiguration.

It discovers the current leader, keeps closed-loop writers busy against it,
issues the reconfiguration at a fixed point in time, follows leadership on
the secondary clusters and gathers everything into a single JSON report.
"""

from .main import main

__all__ = ["main"]
