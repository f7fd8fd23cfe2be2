"""HR Ops: attendance reconciliation and leave entitlement service."""

__version__ = "1.0.0"
