"""
Movement Kernel

Warehouse movement workflow library with:
- Static per-type movement policy
- Central movement, line and task state machines
- Advisory stock-availability pre-checks
- Optimistic-concurrency guarded transitions
- Exactly-once inventory-apply intents on completion
"""

__version__ = "0.1.0"
