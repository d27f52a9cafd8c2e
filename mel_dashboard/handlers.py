"""
UI-boundary actions.

Each handler checks the current user's permission, calls a service, and
dispatches the resulting state changes. Service failures (any MelError)
are logged and stored as a plain error string in state["error"] (or the
relevant slice's error) instead of propagating to the page.

After a workflow decision the dashboard refresh token is bumped; when a
DashboardData is passed in it is re-synced and the new metrics dispatched.
"""

import logging
from datetime import datetime

from .config import PENDING_STATUSES
from .errors import MelError
from .permissions import check_permission, has_permission
from .services import MelServices
from .services.base import coerce_id
from .state import MelStore, action

logger = logging.getLogger(__name__)


def _fail(store: MelStore, exc: MelError, slice_action: str | None = None) -> None:
    logger.error("%s", exc)
    if slice_action:
        store.dispatch(action(slice_action, str(exc)))
    store.dispatch(action("set_error", str(exc)))


def _country_of(services: MelServices, item_id) -> int | None:
    """Country a data point belongs to, via its project; None if unknown."""
    data_point = next(
        (dp for dp in services.store.table("data_points") if dp["id"] == coerce_id(item_id)), None
    )
    if data_point is None:
        return None
    project = next(
        (p for p in services.store.table("projects") if p["id"] == data_point.get("project_id")),
        None,
    )
    return project.get("country_id") if project else None


async def refresh_dashboard(store: MelStore, dashboard=None) -> None:
    store.dispatch(action("refresh_dashboard_data"))
    if dashboard is None:
        return
    await dashboard.sync(store.refresh_token)
    if dashboard.error:
        store.dispatch(action("set_error", dashboard.error))
    else:
        store.dispatch(action("update_dashboard_metrics", dashboard.metrics))


def _apply_decision(store: MelStore, updated: dict) -> None:
    fields = {k: v for k, v in updated.items() if k != "audit_trail"}
    store.dispatch(action("update_approval_queue_item", fields))
    trail = updated.get("audit_trail") or []
    if trail:
        store.dispatch(action("add_audit_trail_entry", {"item_id": updated["id"], "entry": trail[-1]}))
    if updated.get("status") not in PENDING_STATUSES:
        store.dispatch(action("remove_from_approval_queue", updated["id"]))


# ---------------------------------------------------------------------------
# Approval queue
# ---------------------------------------------------------------------------

async def load_approval_queue(
    services: MelServices,
    store: MelStore,
    now: datetime | None = None,
) -> list[dict]:
    """Fetch the queue with the store's current filters and sort."""
    queue_state = store.state["approval_queue"]
    filters = {
        **queue_state["filters"],
        "sort_by": queue_state["sort_by"],
        "sort_order": queue_state["sort_order"],
    }
    store.dispatch(action("set_approval_queue_loading", True))
    try:
        items = await services.approval_queue.get_approval_queue(filters, now)
    except MelError as exc:
        _fail(store, exc, "set_approval_queue_error")
        return []

    user = store.state["current_user"]
    items = [i for i in items if has_permission(user, "approve_data", i.get("country_id"))
             or has_permission(user, "data_entry", i.get("country_id"))]
    store.dispatch(action("set_approval_queue_items", items))
    return items


async def _decide(
    services: MelServices,
    store: MelStore,
    item_id,
    call,
    dashboard=None,
) -> dict | None:
    user = store.state["current_user"]
    try:
        check_permission(user, "approve_data", _country_of(services, item_id))
        updated = await call(user["name"])
    except MelError as exc:
        _fail(store, exc)
        return None

    _apply_decision(store, updated)
    await refresh_dashboard(store, dashboard)
    return updated


async def approve_item(services, store, item_id, feedback: str = "", dashboard=None):
    return await _decide(
        services, store, item_id,
        lambda name: services.data_points.approve(item_id, name, feedback),
        dashboard,
    )


async def reject_item(services, store, item_id, reason: str, dashboard=None):
    return await _decide(
        services, store, item_id,
        lambda name: services.data_points.reject(item_id, reason, name),
        dashboard,
    )


async def request_item_changes(services, store, item_id, feedback: str, dashboard=None):
    return await _decide(
        services, store, item_id,
        lambda name: services.data_points.request_changes(item_id, feedback, name),
        dashboard,
    )


async def start_item_review(services: MelServices, store: MelStore, item_id) -> dict | None:
    user = store.state["current_user"]
    try:
        check_permission(user, "approve_data", _country_of(services, item_id))
        updated = await services.data_points.mark_in_review(item_id, user["name"])
    except MelError as exc:
        _fail(store, exc)
        return None
    _apply_decision(store, updated)
    return updated


async def _bulk(services, store, item_ids, run, dashboard=None) -> dict:
    """Run a bulk decision on the ids the user may act on; deny the rest."""
    user = store.state["current_user"]
    allowed, denied = [], []
    for item_id in item_ids:
        if has_permission(user, "approve_data", _country_of(services, item_id)):
            allowed.append(item_id)
        else:
            denied.append({
                "item_id": item_id,
                "success": False,
                "error": f"User {user['name']} does not have permission for 'approve_data'",
            })

    summary = await run(allowed, user["name"]) if allowed else {
        "total_processed": 0, "success_count": 0, "failure_count": 0, "results": [],
    }
    summary = {
        "total_processed": len(item_ids),
        "success_count": summary["success_count"],
        "failure_count": summary["failure_count"] + len(denied),
        "results": summary["results"] + denied,
    }

    for result in summary["results"]:
        if result["success"]:
            _apply_decision(store, result["result"])
    if summary["failure_count"]:
        store.dispatch(action(
            "set_error",
            f"{summary['failure_count']} of {summary['total_processed']} items could not be processed",
        ))
    if summary["success_count"]:
        await refresh_dashboard(store, dashboard)
    return summary


async def bulk_approve_items(services, store, item_ids: list, feedback: str = "", dashboard=None) -> dict:
    return await _bulk(
        services, store, item_ids,
        lambda ids, name: services.approval_queue.bulk_approve(ids, name, feedback),
        dashboard,
    )


async def bulk_reject_items(services, store, item_ids: list, reason: str, dashboard=None) -> dict:
    return await _bulk(
        services, store, item_ids,
        lambda ids, name: services.approval_queue.bulk_reject(ids, name, reason),
        dashboard,
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

async def load_notifications(services: MelServices, store: MelStore) -> list[dict]:
    store.dispatch(action("set_notifications_loading", True))
    try:
        items = await services.notifications.get_all()
    except MelError as exc:
        _fail(store, exc, "set_notifications_error")
        return []
    items.sort(key=lambda n: n.get("created_at") or "", reverse=True)
    store.dispatch(action("set_notifications", items))
    return items


async def mark_notification_read(services: MelServices, store: MelStore, notification_id) -> dict | None:
    try:
        updated = await services.notifications.mark_as_read(notification_id)
    except MelError as exc:
        _fail(store, exc)
        return None
    store.dispatch(action("update_notification", updated))
    return updated


async def mark_all_notifications_read(services: MelServices, store: MelStore) -> list[dict]:
    try:
        items = await services.notifications.mark_all_as_read()
    except MelError as exc:
        _fail(store, exc)
        return []
    items.sort(key=lambda n: n.get("created_at") or "", reverse=True)
    store.dispatch(action("set_notifications", items))
    return items


async def dismiss_notification(services: MelServices, store: MelStore, notification_id) -> bool:
    try:
        await services.notifications.dismiss(notification_id)
    except MelError as exc:
        _fail(store, exc)
        return False
    store.dispatch(action("remove_notification", notification_id))
    return True


# ---------------------------------------------------------------------------
# Data entry
# ---------------------------------------------------------------------------

async def submit_data_point(services: MelServices, store: MelStore, data: dict) -> dict | None:
    """Create a submitted data point as the current user."""
    user = store.state["current_user"]
    project = next(
        (p for p in services.store.table("projects") if p["id"] == coerce_id(data.get("project_id"))), None
    )
    try:
        check_permission(user, "data_entry", project.get("country_id") if project else None)
        created = await services.data_points.create({**data, "submitted_by": user["name"]})
    except MelError as exc:
        _fail(store, exc)
        return None
    store.dispatch(action("clear_error"))
    return created
