"""
Procurement Kernel - Purchase Order lifecycle engine

A transactional core for refinery equipment purchase orders with:
- Idempotent draft creation
- Frozen catalog snapshots on line items
- Single-supplier enforcement under row locks
- Always-consistent derived totals
- Fixed five-state lifecycle with an append-only audit timeline
"""

__version__ = "0.1.0"
