"""Tests for schedule persistence."""

from datetime import UTC, datetime, timedelta

import pytest

from herald.errors import ScheduleNotFoundError
from herald.scheduling.store import ScheduleStore
from herald.scheduling.types import (
    ScheduleStatus,
    TargetType,
    TriggerPayload,
    can_transition,
)
from tests.conftest import OWNER, make_schedule

T = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


class TestScheduleStore:
    async def test_round_trip(self, store: ScheduleStore):
        await store.add(
            make_schedule(
                target_type=TargetType.SPECIFIC,
                target_ids=["r1", "r2"],
                frequency_config={"dayOfWeek": 1},
                timezone="America/New_York",
            )
        )

        loaded = await store.require("sched-1")

        assert loaded.target_type is TargetType.SPECIFIC
        assert loaded.target_ids == ["r1", "r2"]
        assert loaded.frequency_config == {"dayOfWeek": 1}
        assert loaded.starts_at == datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
        assert loaded.starts_at.tzinfo is not None
        assert loaded.created_at is not None

    async def test_owner_scoping(self, store: ScheduleStore):
        await store.add(make_schedule())

        assert await store.get("sched-1", OWNER) is not None
        assert await store.get("sched-1", "coach-2") is None
        with pytest.raises(ScheduleNotFoundError):
            await store.require("sched-1", "coach-2")

    async def test_transition_is_conditional(self, store: ScheduleStore):
        await store.add(make_schedule())

        assert await store.transition(
            "sched-1", ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED
        )
        # A writer that read the old status loses
        assert not await store.transition(
            "sched-1", ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED
        )
        assert (await store.require("sched-1")).status is ScheduleStatus.PAUSED

    async def test_advance_last_sent_is_monotonic(self, store: ScheduleStore):
        await store.add(make_schedule())

        assert await store.advance_last_sent("sched-1", T, T + timedelta(days=1))
        assert not await store.advance_last_sent("sched-1", T - timedelta(days=1))
        assert not await store.advance_last_sent("sched-1", T)

        loaded = await store.require("sched-1")
        assert loaded.last_sent_at == T
        assert loaded.next_send_at == T + timedelta(days=1)

    async def test_list_active_excludes_pending_activation(self, store: ScheduleStore):
        await store.add(make_schedule(id="live"))
        await store.add(make_schedule(id="registering", is_active=False))
        await store.add(make_schedule(id="paused", status=ScheduleStatus.PAUSED))

        assert [s.id for s in await store.list_active()] == ["live"]

    async def test_activate_and_delete(self, store: ScheduleStore):
        await store.add(make_schedule(is_active=False, trigger_handle=None))

        await store.activate("sched-1", "schedule:abc")
        loaded = await store.require("sched-1")
        assert loaded.is_active is True
        assert loaded.trigger_handle == "schedule:abc"

        assert await store.delete("sched-1")
        assert await store.get("sched-1") is None

    async def test_recurring_handle_is_stored_once(self, store: ScheduleStore):
        await store.add(make_schedule(trigger_handle="message:7"))

        assert await store.store_recurring_handle("sched-1", "schedule:a")
        assert not await store.store_recurring_handle("sched-1", "schedule:b")
        assert (await store.require("sched-1")).trigger_handle == "schedule:a"


class TestTypes:
    def test_transitions(self):
        assert can_transition(ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED)
        assert can_transition(ScheduleStatus.PAUSED, ScheduleStatus.ACTIVE)
        assert not can_transition(ScheduleStatus.PAUSED, ScheduleStatus.COMPLETED)
        assert not can_transition(ScheduleStatus.COMPLETED, ScheduleStatus.ACTIVE)
        assert not can_transition(ScheduleStatus.CANCELLED, ScheduleStatus.ACTIVE)

    def test_payload_serialization(self):
        assert TriggerPayload("s1", "c1").to_dict() == {
            "scheduleId": "s1",
            "ownerId": "c1",
        }
        payload = TriggerPayload("s1", "c1", is_first_firing=True, cron_expression="* * * * *")
        assert payload.to_dict()["isFirstFiring"] is True
        assert payload.to_dict()["cronExpression"] == "* * * * *"

    def test_schedule_to_dict(self):
        data = make_schedule(last_sent_at=T).to_dict()
        assert data["ownerId"] == OWNER
        assert data["lastSentAt"] == T.isoformat()
        assert data["startDate"] == "2026-01-01"
        assert data["targetType"] == "all"
