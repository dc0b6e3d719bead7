"""
Approval Kernel - contract approval workflow engine.

Routes a contract through an ordered chain of approval steps with:
- Serial step gating (swappable policy)
- Compare-and-swap decisions, at most one winner per approval row
- Configurable SLA deadlines and overdue/due-soon scanning
- Append-only contract history
- Notification intents dispatched after commit
"""

__version__ = "0.1.0"
