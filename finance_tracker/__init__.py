"""
Finance Tracker - Core Package

The reactive ledger-and-aggregation engine of a personal finance tracker,
together with the scheduled budget-monitoring job.

DESIGN PRINCIPLES:
1. One authoritative ledger, writes serialized
2. Derived figures are recomputed, never patched
3. Commit first, notify second
4. Storage failures surface to the caller, never swallowed
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
