"""
Payables Kernel

Shared infrastructure for the invoice approval and settlement workflow:
- Typed error taxonomy
- Structured logging
- Injectable clock
- Actors, roles and read visibility
- Invoice lifecycle status rules
- Persistence base, sequences and a hash-chained audit trail
"""

__version__ = "0.1.0"
