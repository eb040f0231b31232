"""
Cleaning schedules and housekeeping task materialization.
"""

from .cleaning_schedule import CleaningSchedule, generate_cleaning_schedule
from .task_materializer import HousekeepingTaskMaterializer, MissingTasksReport

__all__ = ["CleaningSchedule", "generate_cleaning_schedule", "HousekeepingTaskMaterializer", "MissingTasksReport"]
