"""Tests for startup recovery of scheduled jobs."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import START, make_policy, make_user

from escalator.models.escalation_policy import EscalationPolicy, Subscriber
from escalator.services.group_loader import BulkLoader
from escalator.services.group_store import new_group
from escalator.services.timers import (
    deactivation_job_key,
    reactivation_job_key,
    rotation_job_key,
)


async def _add_groups(group_store, count):
    for i in range(count):
        await group_store.add(
            new_group(
                f"team-{i}",
                make_policy(make_user().id, make_user().id),
                last_rotated=START - timedelta(days=i),
            )
        )


class TestBulkScheduleRotation:
    """Tests for BulkLoader.bulk_schedule_rotation."""

    @pytest.mark.asyncio
    async def test_one_rotation_per_group_with_policy(self, engine, timers, group_store):
        await _add_groups(group_store, 3)
        await group_store.add(new_group("quiet"))

        results = await engine.loader.bulk_schedule_rotation()

        assert len(results) == 3
        assert sorted(timers.pending()) == [
            rotation_job_key("team-0"),
            rotation_job_key("team-1"),
            rotation_job_key("team-2"),
        ]

    @pytest.mark.asyncio
    async def test_instants_match_individual_scheduling(self, engine, timers, group_store):
        await _add_groups(group_store, 2)

        results = await engine.loader.bulk_schedule_rotation()

        by_name = {group.name: instant for instant, group in results}
        assert by_name == {
            "team-0": datetime(2024, 1, 8, 23, 59, tzinfo=UTC),
            "team-1": datetime(2024, 1, 7, 23, 59, tzinfo=UTC),
        }

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_other_groups(self, group_store):
        await _add_groups(group_store, 2)
        rotation = MagicMock()
        rotation.schedule_rotation = AsyncMock(
            side_effect=[RuntimeError("boom"), (START, MagicMock())]
        )
        loader = BulkLoader(group_store, rotation, MagicMock())

        results = await loader.bulk_schedule_rotation()

        assert len(results) == 1
        assert rotation.schedule_rotation.await_count == 2


class TestRescheduleAvailability:
    """Tests for rebuilding availability jobs from stored dates."""

    @pytest.mark.asyncio
    async def test_pending_windows_rearmed(self, engine, timers, group_store):
        leaving = make_user().id
        away = make_user().id
        steady = make_user().id
        leave = START + timedelta(days=1)
        back = START + timedelta(days=4)
        await group_store.add(
            new_group(
                "ops",
                EscalationPolicy(
                    subscribers=(
                        Subscriber(leaving, deactivate_date=leave, reactivate_date=back),
                        Subscriber(away, active=False, reactivate_date=back),
                        Subscriber(steady),
                    )
                ),
                last_rotated=START,
            )
        )

        deactivations = await engine.loader.reschedule_deactivation()
        reactivations = await engine.loader.reschedule_reactivation()

        assert len(deactivations) == 1
        assert len(reactivations) == 1
        assert timers.pending() == {
            deactivation_job_key("ops", leaving): leave,
            reactivation_job_key("ops", away): back,
        }

    @pytest.mark.asyncio
    async def test_overdue_reactivation_applied_on_load(self, engine, timers, group_store):
        away = make_user().id
        await group_store.add(
            new_group(
                "ops",
                EscalationPolicy(
                    subscribers=(
                        Subscriber(
                            away,
                            active=False,
                            reactivate_date=START - timedelta(hours=2),
                        ),
                    )
                ),
            )
        )

        await engine.loader.reschedule_reactivation()

        group = await group_store.get("ops")
        assert group.policy.find_subscriber(away).active is True
        assert timers.pending() == {}

    @pytest.mark.asyncio
    async def test_load_all_summary(self, engine, group_store):
        await _add_groups(group_store, 2)

        summary = await engine.loader.load_all()

        assert summary == {"rotations": 2, "deactivations": 0, "reactivations": 0}

    @pytest.mark.asyncio
    async def test_new_window_on_inactive_subscriber_rearmed(
        self, engine, timers, ops_group
    ):
        group, users = ops_group
        away = users[0].id
        await engine.availability.schedule_deactivation(
            group, away, START - timedelta(hours=1)
        )
        leave = START + timedelta(days=1)
        await engine.availability.schedule_deactivation(
            group, away, leave, leave + timedelta(days=1)
        )
        timers.jobs.clear()

        deactivations = await engine.loader.reschedule_deactivation()

        assert len(deactivations) == 1
        assert timers.pending() == {deactivation_job_key("ops", away): leave}

    @pytest.mark.asyncio
    async def test_overdue_deactivation_reactivation_counted_once(
        self, engine, timers, group_store
    ):
        leaving = make_user().id
        back = START + timedelta(days=1)
        await group_store.add(
            new_group(
                "ops",
                EscalationPolicy(
                    subscribers=(
                        Subscriber(
                            leaving,
                            deactivate_date=START - timedelta(hours=1),
                            reactivate_date=back,
                        ),
                    )
                ),
                last_rotated=START,
            )
        )

        summary = await engine.loader.load_all()

        assert summary == {"rotations": 1, "deactivations": 1, "reactivations": 0}
        assert timers.pending()[reactivation_job_key("ops", leaving)] == back


class TestRestartRecovery:
    """Reloading after a restart rebuilds exactly the jobs that were pending."""

    @pytest.mark.asyncio
    async def test_load_all_restores_pending_jobs(self, engine, timers, ops_group):
        group, users = ops_group
        ann, bob, cat = (u.id for u in users)
        await engine.rotation.schedule_rotation(group)
        # ann: future window
        await engine.availability.schedule_deactivation(
            group, ann, START + timedelta(days=1), START + timedelta(days=3)
        )
        # bob: away now, back in two days
        await engine.availability.schedule_deactivation(
            group, bob, START - timedelta(hours=1), START + timedelta(days=2)
        )
        # cat: away indefinitely, then given a new window
        await engine.availability.schedule_deactivation(
            group, cat, START - timedelta(hours=1)
        )
        await engine.availability.schedule_deactivation(
            group, cat, START + timedelta(days=1), START + timedelta(days=2)
        )
        before = timers.pending()
        timers.jobs.clear()

        summary = await engine.loader.load_all()

        assert timers.pending() == before
        assert before == {
            rotation_job_key("ops"): datetime(2024, 1, 8, 23, 59, tzinfo=UTC),
            deactivation_job_key("ops", ann): START + timedelta(days=1),
            reactivation_job_key("ops", bob): START + timedelta(days=2),
            deactivation_job_key("ops", cat): START + timedelta(days=1),
        }
        assert summary == {"rotations": 1, "deactivations": 2, "reactivations": 1}
