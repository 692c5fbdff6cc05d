"""
Django Labworks - worksheet lifecycle and lot-tracked material allocation
for dental laboratories (EU MDR custom-made devices).

Usage:
    from labworks import lab, LabError

    plan = lab.allocate(material.pk, "70")
    for line in plan.lines:
        print(f"{line.lot_number}: {line.quantity}")

    try:
        snap = lab.transition(ws.pk, "IN_PRODUCTION", "user:7", "TECHNICIAN")
    except LabError as e:
        print(e.as_dict())
"""

from labworks.exceptions import LabError


def __getattr__(name):
    """Lazy import to avoid AppRegistryNotReady errors."""
    if name in ("lab", "Lab"):
        from labworks.service import Lab

        return Lab
    if name == "Role":
        from labworks.machine import Role

        return Role
    if name in ("AllocationPlan", "WorksheetSnapshot"):
        from labworks import results

        return getattr(results, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["lab", "Lab", "LabError", "Role", "AllocationPlan", "WorksheetSnapshot"]
__version__ = "0.1.0"
