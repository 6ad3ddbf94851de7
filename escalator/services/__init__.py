# Escalation engine services
from escalator.services.alert import AlertDispatcher
from escalator.services.availability import AvailabilityScheduler
from escalator.services.engine import EscalationEngine, build_engine
from escalator.services.group_loader import BulkLoader
from escalator.services.rotation import RotationScheduler, next_rotation_instant
from escalator.services.timers import APSchedulerTimers, RepeatingTask, TimerService

__all__ = [
    "APSchedulerTimers",
    "AlertDispatcher",
    "AvailabilityScheduler",
    "BulkLoader",
    "EscalationEngine",
    "RepeatingTask",
    "RotationScheduler",
    "TimerService",
    "build_engine",
    "next_rotation_instant",
]
