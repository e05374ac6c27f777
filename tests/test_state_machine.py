import pytest

from app.core.exceptions import InvalidStateTransitionError
from app.services import state_machine


class TestOrderWorkflow:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("PENDING", "CONFIRMED"),
            ("PENDING", "CANCELLED"),
            ("CONFIRMED", "PROCESSING"),
            ("CONFIRMED", "CANCELLED"),
            ("PROCESSING", "SHIPPED"),
            ("SHIPPED", "DELIVERED"),
        ],
    )
    def test_allowed(self, current, new):
        assert state_machine.can_transition("order", current, new)
        state_machine.validate_transition("order", current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("PENDING", "SHIPPED"),
            ("PROCESSING", "CANCELLED"),
            ("SHIPPED", "CANCELLED"),
            ("DELIVERED", "PENDING"),
            ("CANCELLED", "CONFIRMED"),
        ],
    )
    def test_rejected(self, current, new):
        assert not state_machine.can_transition("order", current, new)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            state_machine.validate_transition("order", current, new)
        assert exc_info.value.details["current_status"] == current
        assert exc_info.value.details["requested_status"] == new

    def test_same_state_is_not_a_transition(self):
        with pytest.raises(InvalidStateTransitionError):
            state_machine.validate_transition("order", "PENDING", "PENDING")

    def test_terminal_states(self):
        assert state_machine.is_terminal("order", "DELIVERED")
        assert state_machine.is_terminal("order", "CANCELLED")
        assert not state_machine.is_terminal("order", "SHIPPED")

    def test_terminal_error_lists_no_transitions(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            state_machine.validate_transition("order", "DELIVERED", "CANCELLED")
        assert exc_info.value.allowed == []
        assert "terminal" in exc_info.value.message


class TestPreorderWorkflow:
    def test_allowed_transitions(self):
        assert state_machine.get_allowed_transitions("preorder", "PENDING") == [
            "CONFIRMED", "CANCELLED", "EXPIRED",
        ]
        assert state_machine.get_allowed_transitions("preorder", "READY") == ["SHIPPED", "CANCELLED"]

    def test_same_state_rejected_even_if_listed(self, monkeypatch):
        monkeypatch.setitem(
            state_machine.PREORDER_TRANSITIONS, "CONFIRMED", ["CONFIRMED", "READY", "CANCELLED"]
        )
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            state_machine.validate_transition("preorder", "CONFIRMED", "CONFIRMED")
        assert exc_info.value.details["requested_status"] == "CONFIRMED"

    def test_expired_only_from_pending(self):
        assert state_machine.can_transition("preorder", "PENDING", "EXPIRED")
        assert not state_machine.can_transition("preorder", "CONFIRMED", "EXPIRED")

    @pytest.mark.parametrize("status", ["DELIVERED", "CANCELLED", "EXPIRED"])
    def test_terminal(self, status):
        assert state_machine.is_terminal("preorder", status)
        with pytest.raises(InvalidStateTransitionError):
            state_machine.validate_transition("preorder", status, "CONFIRMED")


def test_unknown_workflow():
    with pytest.raises(ValueError):
        state_machine.can_transition("invoice", "PENDING", "PAID")
