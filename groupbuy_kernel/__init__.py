"""
Group-Buy Kernel

Shared core of the group-purchase ledger:
- Typed errors with machine-readable codes
- Structured JSON logging
- Decimal-only money helpers (JPY -> CNY)
- Record-store contract with a SQLAlchemy implementation
- Atomic multi-record write sequences
"""

__version__ = "0.1.0"
