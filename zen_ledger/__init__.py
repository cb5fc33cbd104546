"""
Zen Ledger - Source Package

A personal finance ledger engine: records income and expense events,
classifies them into user-defined categories, tracks monthly budget caps
and auto-posts recurring commitments once per calendar month.

DESIGN PRINCIPLES:
1. One store owns all state; every other component reads snapshots
2. Recurring postings happen at most once per month, structurally
3. Budget checks warn, they never block a write
4. Scanned receipts are drafts until the user commits them
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Zen Ledger Team"
