"""
Analytics module for Timetrack.

Pure aggregation of tasks and time entries into dashboard chart series.
"""

from .engine import (
    AnalyticsView,
    DayProgress,
    DistributionSlice,
    MonthlyHours,
    MonthlyTasks,
    TaskStats,
    TimeConsumingTask,
    build_analytics,
    filter_by_date_range,
    monthly_tasks,
    most_time_consuming_tasks,
    priority_distribution,
    project_distribution,
    task_stats,
    time_spent_by_month,
    weekly_progress,
)

__all__ = [
    # Result types
    'AnalyticsView',
    'DayProgress',
    'DistributionSlice',
    'MonthlyHours',
    'MonthlyTasks',
    'TaskStats',
    'TimeConsumingTask',
    # Aggregations
    'build_analytics',
    'filter_by_date_range',
    'monthly_tasks',
    'most_time_consuming_tasks',
    'priority_distribution',
    'project_distribution',
    'task_stats',
    'time_spent_by_month',
    'weekly_progress',
]
