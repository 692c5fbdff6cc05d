"""
Labworks REST API.

Provides DRF ViewSets for:
- Worksheet (read-only + transition, requirements, traceability)
- Material (read-only + lot ledger, allocation preview, alerts)
- MaterialLot (read-only + recall, traceability)
"""
