"""Tests for subscriber deactivation and reactivation scheduling."""

import uuid
from datetime import timedelta

import pytest
from conftest import START

from escalator.core.errors import NotFoundError, ValidationError
from escalator.services.group_store import new_group
from escalator.services.timers import deactivation_job_key, reactivation_job_key


async def _subscriber(group_store, user_id):
    group = await group_store.get("ops")
    return group.policy.find_subscriber(user_id)


class TestImmediateDeactivation:
    """A deactivate_at at or before now applies inline."""

    @pytest.mark.asyncio
    async def test_past_date_deactivates_now(self, engine, timers, group_store, ops_group):
        group, users = ops_group

        effective, result = await engine.availability.schedule_deactivation(
            group, users[0].id, START - timedelta(hours=1)
        )

        assert effective == START
        subscriber = result.policy.find_subscriber(users[0].id)
        assert subscriber.active is False
        assert subscriber.deactivate_date is None
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_date_equal_to_now_is_due(self, engine, group_store, ops_group):
        group, users = ops_group

        effective, _ = await engine.availability.schedule_deactivation(
            group, users[1].id, START
        )

        assert effective == START
        assert (await _subscriber(group_store, users[1].id)).active is False

    @pytest.mark.asyncio
    async def test_future_reactivation_is_armed(self, engine, timers, group_store, ops_group):
        group, users = ops_group
        back = START + timedelta(days=2)

        await engine.availability.schedule_deactivation(
            group, users[0].id, START - timedelta(hours=1), back
        )

        assert timers.pending() == {reactivation_job_key("ops", users[0].id): back}

        await timers.advance_to(back)

        subscriber = await _subscriber(group_store, users[0].id)
        assert subscriber.active is True
        assert subscriber.reactivate_date is None
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_window_entirely_in_past(self, engine, timers, group_store, ops_group):
        group, users = ops_group

        _, result = await engine.availability.schedule_deactivation(
            group,
            users[0].id,
            START - timedelta(days=2),
            START - timedelta(days=1),
        )

        subscriber = result.policy.find_subscriber(users[0].id)
        assert subscriber.active is True
        assert subscriber.deactivate_date is None
        assert subscriber.reactivate_date is None
        assert timers.pending() == {}


class TestFutureDeactivation:
    """A future deactivate_at is persisted and armed."""

    @pytest.mark.asyncio
    async def test_dates_persisted_before_firing(self, engine, timers, group_store, ops_group):
        group, users = ops_group
        leave = START + timedelta(days=1)
        back = START + timedelta(days=3)

        effective, _ = await engine.availability.schedule_deactivation(
            group, users[2].id, leave, back
        )

        assert effective == leave
        subscriber = await _subscriber(group_store, users[2].id)
        assert subscriber.active is True
        assert subscriber.deactivate_date == leave
        assert subscriber.reactivate_date == back
        assert timers.pending() == {deactivation_job_key("ops", users[2].id): leave}

    @pytest.mark.asyncio
    async def test_full_cycle(self, engine, timers, group_store, ops_group):
        group, users = ops_group
        leave = START + timedelta(days=1)
        back = START + timedelta(days=3)
        await engine.availability.schedule_deactivation(group, users[2].id, leave, back)

        await timers.advance_to(leave)

        subscriber = await _subscriber(group_store, users[2].id)
        assert subscriber.active is False
        assert subscriber.deactivate_date is None
        assert timers.pending() == {reactivation_job_key("ops", users[2].id): back}

        await timers.advance_to(back)

        assert (await _subscriber(group_store, users[2].id)).active is True
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_without_reactivation_stays_inactive(
        self, engine, timers, group_store, ops_group
    ):
        group, users = ops_group
        leave = START + timedelta(hours=4)
        await engine.availability.schedule_deactivation(group, users[0].id, leave)

        await timers.advance_to(START + timedelta(days=30))

        assert (await _subscriber(group_store, users[0].id)).active is False
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_new_window_replaces_pending_reactivation(
        self, engine, timers, group_store, ops_group
    ):
        group, users = ops_group
        user_id = users[0].id
        await engine.availability.schedule_deactivation(
            group, user_id, START - timedelta(hours=1), START + timedelta(days=1)
        )
        group = await group_store.get("ops")

        later = START + timedelta(days=5)
        await engine.availability.schedule_deactivation(
            group, user_id, START + timedelta(days=4), later
        )

        assert reactivation_job_key("ops", user_id) not in timers.pending()
        assert deactivation_job_key("ops", user_id) in timers.pending()


class TestStaleTimers:
    """Jobs re-check the stored dates when they fire."""

    @pytest.mark.asyncio
    async def test_withdrawn_deactivation_is_noop(
        self, engine, timers, group_store, ops_group
    ):
        group, users = ops_group
        leave = START + timedelta(days=1)
        await engine.availability.schedule_deactivation(group, users[0].id, leave)

        def _withdraw(g):
            s = g.policy.find_subscriber(users[0].id)
            g.policy = g.policy.replace_subscriber(s.with_window(None, None))

        await group_store.update("ops", _withdraw)
        await timers.advance_to(leave)

        assert (await _subscriber(group_store, users[0].id)).active is True

    @pytest.mark.asyncio
    async def test_postponed_deactivation_is_rearmed(
        self, engine, timers, group_store, ops_group
    ):
        group, users = ops_group
        leave = START + timedelta(days=1)
        postponed = START + timedelta(days=2)
        await engine.availability.schedule_deactivation(group, users[0].id, leave)

        def _postpone(g):
            s = g.policy.find_subscriber(users[0].id)
            g.policy = g.policy.replace_subscriber(s.with_window(postponed, None))

        await group_store.update("ops", _postpone)
        await timers.advance_to(leave)

        assert (await _subscriber(group_store, users[0].id)).active is True
        assert timers.pending() == {deactivation_job_key("ops", users[0].id): postponed}

    @pytest.mark.asyncio
    async def test_deleted_group_job_is_dropped(self, engine, timers, group_store, ops_group):
        group, users = ops_group
        leave = START + timedelta(days=1)
        await engine.availability.schedule_deactivation(group, users[0].id, leave)
        await group_store.delete("ops")

        await timers.advance_to(leave)

        assert timers.pending() == {}


class TestValidation:
    """Rejected requests leave the policy untouched."""

    @pytest.mark.asyncio
    async def test_reactivation_before_deactivation(self, engine, group_store, ops_group):
        group, users = ops_group

        with pytest.raises(ValidationError):
            await engine.availability.schedule_deactivation(
                group,
                users[0].id,
                START + timedelta(days=2),
                START + timedelta(days=1),
            )

        assert (await _subscriber(group_store, users[0].id)).deactivate_date is None

    @pytest.mark.asyncio
    async def test_naive_instants_treated_as_utc(self, engine, timers, group_store, ops_group):
        group, users = ops_group
        naive_start = START.replace(tzinfo=None)

        effective, _ = await engine.availability.schedule_deactivation(
            group,
            users[0].id,
            naive_start + timedelta(days=1),
            naive_start + timedelta(days=3),
        )

        assert effective == START + timedelta(days=1)
        assert timers.pending() == {deactivation_job_key("ops", users[0].id): effective}
        stored = await _subscriber(group_store, users[0].id)
        assert stored.reactivate_date == START + timedelta(days=3)

    @pytest.mark.asyncio
    async def test_naive_past_instant_deactivates_now(self, engine, group_store, ops_group):
        group, users = ops_group

        effective, _ = await engine.availability.schedule_deactivation(
            group, users[1].id, START.replace(tzinfo=None) - timedelta(hours=2)
        )

        assert effective == START
        assert (await _subscriber(group_store, users[1].id)).active is False

    @pytest.mark.asyncio
    async def test_unknown_subscriber(self, engine, ops_group):
        group, _ = ops_group

        with pytest.raises(NotFoundError):
            await engine.availability.schedule_deactivation(
                group, uuid.uuid4(), START + timedelta(days=1)
            )

    @pytest.mark.asyncio
    async def test_group_without_policy(self, engine, group_store):
        group = await group_store.add(new_group("quiet"))

        with pytest.raises(ValidationError):
            await engine.availability.schedule_deactivation(
                group, uuid.uuid4(), START + timedelta(days=1)
            )


class TestScheduleReactivation:
    """Tests for AvailabilityScheduler.schedule_reactivation."""

    @pytest.mark.asyncio
    async def test_no_reactivate_date_arms_nothing(self, engine, timers, ops_group):
        group, users = ops_group

        instant, returned = await engine.availability.schedule_reactivation(
            group, users[0].id
        )

        assert instant is None
        assert returned.name == "ops"
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_missing_group_returns_none(self, engine):
        assert await engine.availability.deactivate("gone", uuid.uuid4()) is None
        assert await engine.availability.reactivate("gone", uuid.uuid4()) is None
