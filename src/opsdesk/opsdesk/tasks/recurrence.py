from __future__ import annotations

from datetime import date, datetime, time

from ..common.datetime_utils import last_day_of_month
from ..core.constants import DEFAULT_DUE_TIME
from ..core.enums import TaskType
from .model import TaskTemplate

_DEFAULT_DUE = datetime.strptime(DEFAULT_DUE_TIME, "%H:%M").time()


class RecurrenceRule:
    """Decides on which calendar days a template produces an instance."""

    def occurs_on(self, template: TaskTemplate, day: date) -> bool:
        if not template.is_active:
            return False
        if day < template.start_date:
            return False
        if template.end_date is not None and day > template.end_date:
            return False

        if template.task_type == TaskType.DAILY:
            return True
        if template.task_type == TaskType.WEEKLY:
            weekdays = template.weekdays or (template.start_date.weekday(),)
            return day.weekday() in weekdays
        if template.task_type == TaskType.MONTHLY:
            wanted = template.day_of_month or template.start_date.day
            return day.day == min(wanted, last_day_of_month(day.year, day.month))
        return False

    @staticmethod
    def due_datetime(template: TaskTemplate, day: date) -> datetime:
        due: time = template.due_time or _DEFAULT_DUE
        return datetime.combine(day, due)
