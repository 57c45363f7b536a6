"""
Freight Kernel - workflow authorization and derived-value engine

Decision layer for the freight-forwarding pipeline:
- Shipment lifecycle stages and legal transitions
- Per-user, per-field edit permissions
- Advisory edit locks per record
- Salesperson commission formulas
"""

__version__ = "0.1.0"
