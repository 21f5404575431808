"""
Dashboard module for Timetrack.

Keeps a live AnalyticsView in sync with the record store.
"""

from .controller import DashboardController

__all__ = ['DashboardController']
