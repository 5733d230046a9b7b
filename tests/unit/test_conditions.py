"""Unit tests for condition utilities."""

from __future__ import annotations

from servicemesh_operator.constants import COND_ACTIVE, COND_CONFIGURED, STATUS_FALSE, STATUS_TRUE, STATUS_UNKNOWN
from servicemesh_operator.utils.conditions import (
    condition_status_from_lifecycle,
    get_condition,
    has_condition,
    message_for_lifecycle,
    reason_for,
    update_condition,
)


class TestUpdateCondition:
    """Test update_condition."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        status: dict = {}
        changed = update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=3)

        assert changed
        cond = get_condition(status, COND_ACTIVE)
        assert cond["status"] == STATUS_TRUE
        assert cond["reason"] == "Successful"
        assert cond["message"] == "ok"
        assert cond["observedGeneration"] == 3
        assert "lastTransitionTime" in cond

    def test_update_condition_existing(self) -> None:
        """Test updating an existing condition."""
        status = {"conditions": [{
            "type": COND_CONFIGURED,
            "status": STATUS_FALSE,
            "reason": "Old",
            "message": "old",
            "observedGeneration": 1,
            "lastTransitionTime": "2023-01-01T00:00:00Z",
        }]}

        changed = update_condition(status, COND_CONFIGURED, STATUS_TRUE, "New", "new", generation=2)

        cond = get_condition(status, COND_CONFIGURED)
        assert changed
        assert len(status["conditions"]) == 1
        assert cond["status"] == STATUS_TRUE
        assert cond["observedGeneration"] == 2
        assert cond["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_update_condition_no_change(self) -> None:
        """Test that writing identical values reports no change."""
        status: dict = {}
        update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=1)
        assert not update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=1)

    def test_unknown_holds_generation(self) -> None:
        """Test an Unknown value keeps the previously observed generation."""
        status: dict = {}
        update_condition(status, COND_CONFIGURED, STATUS_TRUE, "Successful", "ok", generation=1)
        update_condition(status, COND_CONFIGURED, STATUS_UNKNOWN, "ConnectionError", "reset", generation=2)

        assert get_condition(status, COND_CONFIGURED)["observedGeneration"] == 1

    def test_unknown_without_hold(self) -> None:
        """Test the generation advances when holding is disabled."""
        status: dict = {}
        update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=1)
        update_condition(status, COND_ACTIVE, STATUS_UNKNOWN, "LifecycleStateChanged", "updating", 2,
                         hold_generation=False)

        assert get_condition(status, COND_ACTIVE)["observedGeneration"] == 2

    def test_transition_time_kept_when_status_same(self) -> None:
        """Test the transition time only moves when the status changes."""
        status = {"conditions": [{
            "type": COND_ACTIVE,
            "status": STATUS_TRUE,
            "reason": "Successful",
            "message": "ok",
            "observedGeneration": 1,
            "lastTransitionTime": "2023-01-01T00:00:00Z",
        }]}
        update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=2)

        assert get_condition(status, COND_ACTIVE)["lastTransitionTime"] == "2023-01-01T00:00:00Z"


class TestConditionQueries:
    """Test condition lookups."""

    def test_has_condition(self) -> None:
        status: dict = {}
        update_condition(status, COND_ACTIVE, STATUS_TRUE, "Successful", "ok", generation=1)
        assert has_condition(status, COND_ACTIVE, STATUS_TRUE)
        assert not has_condition(status, COND_ACTIVE, STATUS_FALSE)
        assert not has_condition(status, COND_CONFIGURED, STATUS_TRUE)


class TestLifecycleMapping:
    """Test lifecycle state mapping."""

    def test_condition_status_from_lifecycle(self) -> None:
        assert condition_status_from_lifecycle("ACTIVE") == STATUS_TRUE
        assert condition_status_from_lifecycle("FAILED") == STATUS_FALSE
        assert condition_status_from_lifecycle("DELETED") == STATUS_FALSE
        assert condition_status_from_lifecycle("CREATING") == STATUS_UNKNOWN
        assert condition_status_from_lifecycle(None) == STATUS_UNKNOWN

    def test_reason_for(self) -> None:
        assert reason_for(STATUS_TRUE) == "Successful"
        assert reason_for(STATUS_UNKNOWN) == "LifecycleStateChanged"

    def test_message_for_lifecycle(self) -> None:
        assert "Active" in message_for_lifecycle("ACTIVE")
        assert "Creating" in message_for_lifecycle("CREATING")
        assert "Failed" in message_for_lifecycle("FAILED")
