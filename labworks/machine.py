"""
Worksheet state machine.

Pure transition validation: no I/O, no side effects.

    check = can_transition(WorksheetStatus.QC_PENDING, WorksheetStatus.QC_APPROVED, Role.QC_INSPECTOR)
    if not check.allowed:
        raise InvalidTransitionError(check.code, reason=check.reason)
"""

from dataclasses import dataclass

from django.db import models
from django.utils.translation import gettext_lazy as _

from labworks.models.worksheet import WorksheetStatus


class Role(models.TextChoices):
    """
    Production roles.

    INVOICING is what invoicing staff resolve to; it holds no transition of
    its own. Delivery is booked through Lab.mark_delivered, which acts as
    SYSTEM, the only role on QC_APPROVED → DELIVERED.
    """

    ADMIN = "ADMIN", _("Administrator")
    TECHNICIAN = "TECHNICIAN", _("Technician")
    QC_INSPECTOR = "QC_INSPECTOR", _("QC inspector")
    INVOICING = "INVOICING", _("Invoicing")
    SYSTEM = "SYSTEM", _("System")


S = WorksheetStatus

_PRODUCTION = frozenset({Role.ADMIN, Role.TECHNICIAN})
_QC = frozenset({Role.ADMIN, Role.QC_INSPECTOR, Role.TECHNICIAN})
_ADMIN = frozenset({Role.ADMIN})
_SYSTEM = frozenset({Role.SYSTEM})

# target -> allowed roles, per source status
TRANSITIONS: dict[str, dict[str, frozenset]] = {
    S.DRAFT: {
        S.IN_PRODUCTION: _PRODUCTION,
        S.CANCELLED: _PRODUCTION,
        S.VOIDED: _ADMIN,
    },
    S.IN_PRODUCTION: {
        S.QC_PENDING: _PRODUCTION,
        S.CANCELLED: _PRODUCTION,
        S.VOIDED: _ADMIN,
    },
    S.QC_PENDING: {
        S.QC_APPROVED: _QC,
        S.QC_REJECTED: _QC,
        S.CANCELLED: _PRODUCTION,
        S.VOIDED: _ADMIN,
    },
    S.QC_APPROVED: {
        S.DELIVERED: _SYSTEM,
        S.CANCELLED: _PRODUCTION,
        S.VOIDED: _ADMIN,
    },
    S.QC_REJECTED: {
        S.IN_PRODUCTION: _PRODUCTION,
        S.CANCELLED: _PRODUCTION,
        S.VOIDED: _ADMIN,
    },
    S.DELIVERED: {
        S.VOIDED: _ADMIN,
    },
    S.CANCELLED: {
        S.VOIDED: _ADMIN,
    },
    S.VOIDED: {},
}

# Adding a status without a row here is a programming error.
_missing = set(WorksheetStatus.values) - set(TRANSITIONS)
if _missing:
    raise ImportError(f"Worksheet transition table has no row for: {sorted(_missing)}")

# Targets whose transition must carry a reason.
NOTES_REQUIRED = frozenset({S.QC_REJECTED, S.VOIDED})

# Targets with nothing left to do.
TERMINAL = frozenset({S.DELIVERED, S.CANCELLED, S.VOIDED})


@dataclass(frozen=True)
class TransitionCheck:
    allowed: bool
    reason: str | None = None
    code: str | None = None


def can_transition(current: str, target: str, role: str) -> TransitionCheck:
    """
    Decide whether `role` may move a worksheet from `current` to `target`.

    Rejections carry a code: NO_SUCH_TRANSITION when the edge does not
    exist, ROLE_NOT_PERMITTED when it exists but not for this role.
    Unknown statuses and roles are rejected with INVALID_STATUS/INVALID_ROLE.
    """
    if current not in WorksheetStatus.values or target not in WorksheetStatus.values:
        return TransitionCheck(
            allowed=False,
            reason=f"Unknown status: {current!s} -> {target!s}",
            code="INVALID_STATUS",
        )
    if role not in Role.values:
        return TransitionCheck(allowed=False, reason=f"Unknown role: {role!s}", code="INVALID_ROLE")

    roles = TRANSITIONS[current].get(target)
    if roles is None:
        return TransitionCheck(
            allowed=False,
            reason=f"No transition from {current} to {target}",
            code="NO_SUCH_TRANSITION",
        )
    if role not in roles:
        return TransitionCheck(
            allowed=False,
            reason=f"Role {role} may not move a worksheet from {current} to {target}",
            code="ROLE_NOT_PERMITTED",
        )
    return TransitionCheck(allowed=True)


def available_transitions(current: str, role: str) -> list[str]:
    """Targets reachable from `current` by `role`, in status declaration order."""
    row = TRANSITIONS.get(current, {})
    return [status for status in WorksheetStatus.values if role in row.get(status, ())]
