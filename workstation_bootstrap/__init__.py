"""Workstation bootstrap (declarative, idempotent).

Core design goals:
- Desired state declared as an ordered list of resources
- Check-then-act: probe, apply only on mismatch, probe again
- One failed resource never stops the run
- Platform detected once and passed explicitly
- Centralized logging
"""

__all__ = []
