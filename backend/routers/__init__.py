"""
API routers for the Timetrack backend.

Each router handles a specific domain:
- auth: Login, registration and logout
- tasks: Task CRUD and completion toggles
- categories: Category management
- time_entries: Logged time
- timer: Per-user stopwatch
- dashboard: Analytics JSON and the protected dashboard page
"""

from .auth import router as auth_router
from .tasks import router as tasks_router
from .categories import router as categories_router
from .time_entries import router as time_entries_router
from .timer import router as timer_router
from .dashboard import router as dashboard_router

__all__ = [
    'auth_router',
    'tasks_router',
    'categories_router',
    'time_entries_router',
    'timer_router',
    'dashboard_router',
]
