"""
Billing Kernel

Shared infrastructure for the billing and budget reconciliation engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock and Decimal helpers
- SQLAlchemy declarative base and session management
"""

__version__ = "0.1.0"
