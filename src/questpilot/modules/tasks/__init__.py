from .schedule import Schedule, ScheduleService, build_trigger

__all__ = ["Schedule", "ScheduleService", "build_trigger"]
