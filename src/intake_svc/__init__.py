"""
Intake Service - Request Lifecycle & Approval

A review/approval gateway for registry requests:
- Schema and remote-reference validation at submission
- Guarded NEW -> APPROVED / REJECTED status transitions
- Ordered approval pipeline (remote entity, credentials, commit, notify)
- Best-effort notifications that never overturn a committed decision
"""

__version__ = "0.1.0"
