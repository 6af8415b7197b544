"""
Inventory Kernel

A transactional stock movement engine with:
- Append-only movement ledger
- Row-locked, all-or-nothing balance updates
- Idempotent movement submission
- Conservation-preserving warehouse transfers
"""

__version__ = "0.1.0"
