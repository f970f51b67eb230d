"""Listing lifecycle — which status changes each kind of actor may make.

Owners have two levers only. Asking for ``active`` is the REACTIVATE
transition: the listing goes back to ``pending`` for review, exactly like a
first submission. Asking for ``inactive`` takes it off the market, and an
inactive listing stays inactive until an admin moves it.
"""

import enum
from dataclasses import dataclass

from marketplace.errors import InvalidTransitionError, ValidationError

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
ACTIVE = "active"
INACTIVE = "inactive"
EXPIRED = "expired"

STATUSES = (PENDING, APPROVED, REJECTED, ACTIVE, INACTIVE, EXPIRED)
PUBLIC_STATUSES = (APPROVED, ACTIVE)
HIDDEN_STATUSES = (PENDING, REJECTED, INACTIVE, EXPIRED)
OWNER_REQUESTABLE = (ACTIVE, INACTIVE)
# A featured slot only goes to a listing on the market or waiting for review
FEATURABLE_STATUSES = (PENDING, *PUBLIC_STATUSES)


class Transition(enum.Enum):
    SUBMIT = "submit"
    REACTIVATE = "reactivate"
    DEACTIVATE = "deactivate"
    APPROVE = "approve"
    REJECT = "reject"
    ADMIN_SET = "admin_set"
    EXPIRE = "expire"
    NOOP = "noop"


@dataclass(frozen=True)
class StatusChange:
    """Outcome of a requested status change."""

    transition: Transition
    previous: str
    status: str

    @property
    def changed(self) -> bool:
        return self.previous != self.status

    @property
    def needs_review(self) -> bool:
        """True when admins should be told a listing is waiting for them."""
        return self.transition in (Transition.SUBMIT, Transition.REACTIVATE) and self.changed


def initial_status() -> str:
    """New listings always start in review, whatever the client asked for."""
    return PENDING


def owner_transition(current: str, requested: str) -> StatusChange:
    """Resolve a status change requested by the listing's owner.

    Raises:
        InvalidTransitionError: the requested status is not one an owner may
            ask for, or the listing is inactive.
    """
    if requested not in OWNER_REQUESTABLE:
        raise InvalidTransitionError(
            current,
            requested,
            f"Owners may only set status to 'active' or 'inactive', not '{requested}'",
        )

    if current == INACTIVE:
        if requested == INACTIVE:
            return StatusChange(Transition.NOOP, current, current)
        raise InvalidTransitionError(
            current,
            requested,
            "Inactive listings can only be reactivated by an administrator",
        )

    if requested == INACTIVE:
        return StatusChange(Transition.DEACTIVATE, current, INACTIVE)

    # "active" from the owner is a resubmission for review
    return StatusChange(Transition.REACTIVATE, current, PENDING)


def admin_transition(current: str, requested: str) -> StatusChange:
    """Admins may set any known status directly, without review."""
    if requested not in STATUSES:
        raise ValidationError(f"Unknown status '{requested}'", field="status")
    if requested == current:
        return StatusChange(Transition.NOOP, current, current)
    return StatusChange(Transition.ADMIN_SET, current, requested)


def approve(current: str) -> StatusChange:
    if current == INACTIVE:
        raise InvalidTransitionError(current, APPROVED, "Inactive listings cannot be approved")
    return StatusChange(Transition.APPROVE, current, APPROVED)


def reject(current: str, reason: str | None) -> StatusChange:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required", field="reason")
    if current == INACTIVE:
        raise InvalidTransitionError(current, REJECTED, "Inactive listings cannot be rejected")
    return StatusChange(Transition.REJECT, current, REJECTED)


def expire(current: str) -> StatusChange:
    """Only listings that are on the market can lapse."""
    if current not in PUBLIC_STATUSES:
        return StatusChange(Transition.NOOP, current, current)
    return StatusChange(Transition.EXPIRE, current, EXPIRED)
