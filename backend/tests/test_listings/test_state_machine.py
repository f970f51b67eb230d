"""Unit tests for listing status transitions."""

import pytest

from marketplace.errors import InvalidTransitionError, ValidationError
from marketplace.listings import state_machine as sm
from marketplace.listings.state_machine import Transition


class TestOwnerTransition:
    def test_reactivate_approved_goes_back_to_review(self):
        change = sm.owner_transition(sm.APPROVED, sm.ACTIVE)
        assert change.transition is Transition.REACTIVATE
        assert change.status == sm.PENDING
        assert change.needs_review is True

    def test_reactivate_rejected_resubmits(self):
        change = sm.owner_transition(sm.REJECTED, sm.ACTIVE)
        assert change.status == sm.PENDING
        assert change.needs_review is True

    def test_reactivate_pending_is_not_a_new_review(self):
        change = sm.owner_transition(sm.PENDING, sm.ACTIVE)
        assert change.status == sm.PENDING
        assert change.changed is False
        assert change.needs_review is False

    @pytest.mark.parametrize("current", [sm.PENDING, sm.APPROVED, sm.ACTIVE, sm.REJECTED, sm.EXPIRED])
    def test_deactivate_from_anywhere(self, current):
        change = sm.owner_transition(current, sm.INACTIVE)
        assert change.transition is Transition.DEACTIVATE
        assert change.status == sm.INACTIVE

    def test_inactive_is_terminal_for_owner(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.owner_transition(sm.INACTIVE, sm.ACTIVE)
        assert exc_info.value.current == sm.INACTIVE

    def test_inactive_to_inactive_is_noop(self):
        change = sm.owner_transition(sm.INACTIVE, sm.INACTIVE)
        assert change.transition is Transition.NOOP
        assert change.changed is False

    @pytest.mark.parametrize("requested", [sm.APPROVED, sm.REJECTED, sm.PENDING, sm.EXPIRED, "published"])
    def test_owner_cannot_request_other_statuses(self, requested):
        with pytest.raises(InvalidTransitionError):
            sm.owner_transition(sm.APPROVED, requested)


class TestAdminTransitions:
    def test_admin_sets_any_known_status(self):
        change = sm.admin_transition(sm.INACTIVE, sm.ACTIVE)
        assert change.transition is Transition.ADMIN_SET
        assert change.status == sm.ACTIVE
        assert change.needs_review is False

    def test_admin_unknown_status(self):
        with pytest.raises(ValidationError):
            sm.admin_transition(sm.PENDING, "archived")

    def test_admin_same_status_is_noop(self):
        assert sm.admin_transition(sm.APPROVED, sm.APPROVED).transition is Transition.NOOP

    def test_approve(self):
        change = sm.approve(sm.PENDING)
        assert change.status == sm.APPROVED

    def test_approve_inactive_refused(self):
        with pytest.raises(InvalidTransitionError):
            sm.approve(sm.INACTIVE)

    def test_reject_requires_reason(self):
        with pytest.raises(ValidationError):
            sm.reject(sm.PENDING, "   ")

    def test_reject(self):
        assert sm.reject(sm.PENDING, "Blurry photos").status == sm.REJECTED


class TestExpire:
    @pytest.mark.parametrize("current", [sm.APPROVED, sm.ACTIVE])
    def test_public_listings_expire(self, current):
        assert sm.expire(current).status == sm.EXPIRED

    @pytest.mark.parametrize("current", [sm.PENDING, sm.REJECTED, sm.INACTIVE])
    def test_hidden_listings_do_not(self, current):
        assert sm.expire(current).transition is Transition.NOOP

    def test_new_listings_start_pending(self):
        assert sm.initial_status() == sm.PENDING
