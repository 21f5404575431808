"""
Dashboard endpoints.

- GET /api/dashboard/analytics: the AnalyticsView as JSON
- GET /dashboard: the protected dashboard page, behind the session guard

Both build the view through a DashboardController, which subscribes to the
three collections, waits for all of them, and releases the subscriptions
when the request is done.
"""

import html
import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from backend.dependencies import (
    get_config,
    get_identity_provider,
    get_local_state,
    get_record_store,
    get_session_token,
    require_user,
)
from backend.schemas import AnalyticsResponse
from timetrack.analytics.engine import AnalyticsView
from timetrack.auth.guard import SessionGuard, signed_token_verifier
from timetrack.auth.identity import LocalIdentityProvider
from timetrack.auth.session import LocalStateStore, SessionContext
from timetrack.auth.tokens import verify_authentication
from timetrack.core.config import Config
from timetrack.dashboard.controller import DashboardController
from timetrack.store.record_store import RecordStore
from timetrack.utils.errors import ValidationError
from timetrack.utils.time import (
    align_timezones,
    format_time_for_context,
    get_date_ranges,
    get_time_ago,
)

logger = logging.getLogger("backend.dashboard")

router = APIRouter(tags=["dashboard"])


def build_view(store: RecordStore, user_id: str, config: Config,
               start: Optional[datetime] = None,
               end: Optional[datetime] = None,
               clock: Optional[Callable[[], datetime]] = None) -> AnalyticsView:
    """
    Compute the current AnalyticsView for ``user_id``.

    Month and week buckets follow the configured time zone unless a
    ``clock`` is given.

    Raises:
        ValidationError: If only one bound is given or the range is invalid
    """
    controller = DashboardController(
        store,
        user_id,
        clock=clock or config.now,
        months=int(config.get("analytics_months", "preferences", 6)),
        top_limit=int(config.get("top_tasks_limit", "preferences", 10)),
        week_start=config.get("first_day_of_week", "preferences", "sunday"),
    )
    with controller:
        if start is not None or end is not None:
            controller.set_date_range(start, end)
        return controller.view


def resolve_period(period: str, now: datetime) -> Tuple[datetime, datetime]:
    """
    Bounds of a named reporting period.

    Raises:
        ValidationError: If the period name is unknown
    """
    ranges = get_date_ranges(now)
    if period not in ranges:
        raise ValidationError(
            f"Unknown period '{period}'. Use one of: {', '.join(ranges)}", field="period"
        )
    return ranges[period]


@router.get("/api/dashboard/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    start: Optional[datetime] = Query(None, description="Range start (ISO 8601)"),
    end: Optional[datetime] = Query(None, description="Range end (ISO 8601)"),
    period: Optional[str] = Query(None, description="today, yesterday, this_week, "
                                                    "last_week, this_month or last_month"),
    user_id: str = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
    config: Config = Depends(get_config),
):
    """
    Dashboard analytics for the signed-in user.

    Includes task stats, monthly series, top tasks, project and priority
    distributions and this week's progress. An explicit start/end takes
    precedence over ``period``.
    """
    if period and start is None and end is None:
        start, end = resolve_period(period, config.now())
    return build_view(store, user_id, config, start, end).to_dict()


# =============================================================================
# Protected page
# =============================================================================

def render_dashboard_page(view: AnalyticsView, display_name: str,
                          last_tracked: Optional[datetime] = None,
                          now: Optional[datetime] = None) -> str:
    stats = view.stats
    if view.is_empty:
        body = "<p class=\"empty\">No data yet. Create a task and start the timer.</p>"
    else:
        tracked = sum(t.value for t in view.most_time_consuming_tasks)
        body = (
            "<ul class=\"summary\">"
            f"<li>Total tasks: {stats.total}</li>"
            f"<li>Completed: {stats.completed}</li>"
            f"<li>Pending: {stats.pending}</li>"
            f"<li>Completion rate: {stats.completion_rate}%</li>"
            f"<li>Overdue: {stats.overdue}</li>"
            f"<li>Tracked on top tasks: {html.escape(format_time_for_context(tracked, 'long'))}</li>"
            "</ul>"
        )
    if last_tracked is not None:
        ago = get_time_ago(last_tracked, now)
        body += f"<p class=\"last-tracked\">Last tracked {html.escape(ago)}</p>"
    return (
        "<!DOCTYPE html><html><head><title>Dashboard</title></head><body>"
        f"<h1>Welcome, {html.escape(display_name)}</h1>"
        f"{body}"
        "<a href=\"/api/logout\">Log out</a>"
        "</body></html>"
    )


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    identity: LocalIdentityProvider = Depends(get_identity_provider),
    store: RecordStore = Depends(get_record_store),
    state_store: LocalStateStore = Depends(get_local_state),
    config: Config = Depends(get_config),
):
    """Dashboard page; unauthenticated visitors are sent to the login page."""
    token = get_session_token(request)
    login_path = config.get("login_path", default="/login")

    redirects = []
    session = SessionContext(identity, state_store, token=token)
    guard = SessionGuard(
        session,
        navigate=redirects.append,
        login_path=login_path,
        session_token=token,
        verifier=signed_token_verifier(identity),
    )
    await guard.start()
    guard.stop()

    if not guard.authorized:
        response = RedirectResponse(url=redirects[0] if redirects else login_path, status_code=302)
        if token and verify_authentication(token).expired:
            response.delete_cookie(config.get("session_cookie_name", default="auth-token"), path="/")
        return response

    def render():
        view = build_view(store, guard.user_id, config)
        entries = store.list_time_entries(guard.user_id)
        last_tracked, now = align_timezones(
            entries[0].ended_at if entries else None, config.now()
        )
        return render_dashboard_page(view, session.display_name(), last_tracked, now)

    return HTMLResponse(guard.render(render))
