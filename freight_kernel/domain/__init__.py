"""
Kernel domain layer -- pure value objects and policy tables.

ZERO I/O.  No imports from ``db/``, ``models/``, ``services/``,
``selectors/`` or outer packages.
"""
