"""Tests for the fallback sweep."""

from datetime import UTC, datetime, timedelta

from herald.delivery import DeliveryLedger, DeliveryRequest, RecipientDirectory
from herald.scheduling.processor import FiringProcessor
from herald.scheduling.service import ScheduleService
from herald.scheduling.store import ScheduleStore
from herald.scheduling.sweep import FallbackSweep
from herald.scheduling.types import ScheduleStatus, TargetType, TriggerPayload
from tests.conftest import OWNER, FakeSender, add_recipients, make_schedule

NOW = datetime(2026, 1, 10, 9, 2, tzinfo=UTC)


class TestSweep:
    async def test_delivers_missed_firings(
        self,
        sweep: FallbackSweep,
        store: ScheduleStore,
        recipients: RecipientDirectory,
        sender: FakeSender,
    ):
        await add_recipients(recipients, "r1", "r2")
        missed = await store.add(
            make_schedule(id="missed", last_sent_at=NOW - timedelta(days=1, minutes=2))
        )
        await store.add(make_schedule(id="recent", last_sent_at=NOW - timedelta(hours=1)))
        await store.add(make_schedule(id="paused", status=ScheduleStatus.PAUSED))

        result = await sweep.run(NOW)

        assert result.schedules == 2
        assert result.dispatched == 1
        assert result.processed == 2
        assert result.total == 2
        assert result.errors == []
        assert {r.schedule_id for r in sender.sent} == {missed.id}
        # Recorded against the 09:00 occurrence, not the sweep time
        stored = await store.require(missed.id)
        assert stored.last_sent_at == datetime(2026, 1, 10, 9, 0, tzinfo=UTC)

    async def test_overlapping_trigger_is_absorbed(
        self,
        sweep: FallbackSweep,
        processor: FiringProcessor,
        store: ScheduleStore,
        recipients: RecipientDirectory,
        ledger: DeliveryLedger,
    ):
        await add_recipients(recipients, "r1")
        schedule = await store.add(make_schedule())

        await processor.process(TriggerPayload(schedule.id, OWNER), now=NOW)
        result = await sweep.run(NOW + timedelta(seconds=30))

        assert result.dispatched == 0
        assert len(await ledger.list_for_schedule(schedule.id)) == 1

    async def test_one_failing_schedule_does_not_stop_the_sweep(
        self,
        sweep: FallbackSweep,
        store: ScheduleStore,
        recipients: RecipientDirectory,
        sender: FakeSender,
    ):
        await add_recipients(recipients, "r1", "r2")
        sender.failing = {"r2"}
        await store.add(
            make_schedule(id="broken", target_type=TargetType.SPECIFIC, target_ids=[])
        )
        await store.add(make_schedule(id="healthy"))

        result = await sweep.run(NOW)

        assert result.dispatched == 1
        assert result.processed == 1
        errors = {(e["scheduleId"], e.get("recipientId")) for e in result.errors}
        assert errors == {("broken", None), ("healthy", "r2")}

    async def test_empty(self, sweep: FallbackSweep):
        result = await sweep.run(NOW)
        assert result.to_dict() == {
            "schedules": 0,
            "dispatched": 0,
            "processed": 0,
            "total": 0,
            "errors": [],
        }

    async def test_schedule_cancelled_mid_sweep_is_not_dispatched(
        self,
        sweep: FallbackSweep,
        service: ScheduleService,
        store: ScheduleStore,
        recipients: RecipientDirectory,
        sender: FakeSender,
    ):
        await add_recipients(recipients, "r1")
        await store.add(make_schedule(id="a"))
        await store.add(make_schedule(id="b"))
        cancelled: list[str] = []

        async def cancel_the_other(request: DeliveryRequest) -> None:
            if not cancelled:
                other = "b" if request.schedule_id == "a" else "a"
                await service.cancel(other, OWNER)
                cancelled.append(other)

        sender.before_send = cancel_the_other

        result = await sweep.run(NOW)

        assert result.schedules == 2
        assert result.dispatched == 1
        [request] = sender.sent
        assert request.schedule_id not in cancelled
        stored = await store.require(cancelled[0])
        assert stored.status is ScheduleStatus.CANCELLED
        assert stored.last_sent_at is None
