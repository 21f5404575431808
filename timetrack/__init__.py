"""
Timetrack: personal task and time tracking with dashboard analytics.
"""

__version__ = "1.0.0"
