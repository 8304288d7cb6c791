"""
Billing Kernel

Shared foundations for the billing backend:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Injectable clock and reference-number generation
- Decimal-only money handling with explicit half-up rounding
- SQLAlchemy base classes and engine/session management
"""

__version__ = "0.1.0"
