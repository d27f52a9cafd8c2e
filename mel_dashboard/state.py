"""
Application state store: a single dict updated only through dispatched actions.

Actions are {"type": <reducer name>, "payload": <value>} dicts. Reducers
mutate a deep copy of the state, then listeners are called with the new
state. The notification unread count is derived after every notification
change; it is never set directly.

Usage:
    store = MelStore()
    unsubscribe = store.subscribe(lambda state: print(state["selected_country"]))
    store.dispatch(action("set_selected_country", "KH"))
"""

import copy
import logging
from typing import Callable

from .config import DEFAULT_QUEUE_FILTERS
from .loaders.utils import to_iso, utc_now

logger = logging.getLogger(__name__)

DEFAULT_USER = {
    "id": 1,
    "name": "Anwesha MEL Lead",
    "role": "Super Admin",
    "email": "anwesha@goodreturn.org",
    "country_id": None,
    "permissions": ["all"],
}


def initial_state(current_user: dict | None = None) -> dict:
    return {
        "current_user": copy.deepcopy(current_user or DEFAULT_USER),
        "selected_country": None,
        "selected_project": None,
        "sidebar_open": False,
        "error": None,
        "notifications": {
            "items": [],
            "loading": False,
            "error": None,
            "unread_count": 0,
        },
        "approval_queue": {
            "items": [],
            "loading": False,
            "error": None,
            "filters": dict(DEFAULT_QUEUE_FILTERS),
            "sort_by": "submitted_at",
            "sort_order": "desc",
        },
        "dashboard": {
            "metrics": None,
            "refresh_token": 0,
            "last_updated": None,
        },
    }


def action(action_type: str, payload=None) -> dict:
    return {"type": action_type, "payload": payload}


def _count_unread(notifications: dict) -> None:
    notifications["unread_count"] = sum(1 for n in notifications["items"] if not n.get("is_read"))


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------

def set_selected_country(state, code):
    state["selected_country"] = code


def set_selected_project(state, project_id):
    state["selected_project"] = project_id


def toggle_sidebar(state, _payload=None):
    state["sidebar_open"] = not state["sidebar_open"]


def set_sidebar_open(state, is_open):
    state["sidebar_open"] = bool(is_open)


def set_error(state, message):
    state["error"] = message


def clear_error(state, _payload=None):
    state["error"] = None


def set_notifications_loading(state, loading):
    state["notifications"]["loading"] = bool(loading)


def set_notifications(state, items):
    notifications = state["notifications"]
    notifications["items"] = list(items)
    notifications["loading"] = False
    notifications["error"] = None
    _count_unread(notifications)


def set_notifications_error(state, message):
    state["notifications"]["error"] = message
    state["notifications"]["loading"] = False


def update_notification(state, notification):
    notifications = state["notifications"]
    for idx, existing in enumerate(notifications["items"]):
        if existing["id"] == notification["id"]:
            notifications["items"][idx] = notification
            _count_unread(notifications)
            return


def remove_notification(state, notification_id):
    notifications = state["notifications"]
    notifications["items"] = [n for n in notifications["items"] if n["id"] != notification_id]
    _count_unread(notifications)


def set_approval_queue_items(state, items):
    queue = state["approval_queue"]
    queue["items"] = list(items)
    queue["loading"] = False
    queue["error"] = None


def set_approval_queue_loading(state, loading):
    state["approval_queue"]["loading"] = bool(loading)


def set_approval_queue_error(state, message):
    state["approval_queue"]["error"] = message
    state["approval_queue"]["loading"] = False


def set_approval_queue_filters(state, filters):
    state["approval_queue"]["filters"].update(filters or {})


def set_approval_queue_sort(state, payload):
    queue = state["approval_queue"]
    queue["sort_by"] = payload.get("sort_by", queue["sort_by"])
    queue["sort_order"] = payload.get("sort_order", queue["sort_order"])


def update_approval_queue_item(state, item):
    items = state["approval_queue"]["items"]
    for idx, existing in enumerate(items):
        if existing["id"] == item["id"]:
            items[idx] = {**existing, **item}
            return


def remove_from_approval_queue(state, item_ids):
    if not isinstance(item_ids, (list, tuple, set)):
        item_ids = [item_ids]
    wanted = set(item_ids)
    queue = state["approval_queue"]
    queue["items"] = [i for i in queue["items"] if i["id"] not in wanted]


def add_audit_trail_entry(state, payload):
    for item in state["approval_queue"]["items"]:
        if item["id"] == payload["item_id"]:
            item.setdefault("audit_trail", []).append(payload["entry"])
            return


def update_dashboard_metrics(state, metrics):
    state["dashboard"]["metrics"] = metrics
    state["dashboard"]["last_updated"] = to_iso(utc_now())


def refresh_dashboard_data(state, _payload=None):
    state["dashboard"]["refresh_token"] += 1


REDUCERS: dict[str, Callable] = {
    fn.__name__: fn
    for fn in (
        set_selected_country,
        set_selected_project,
        toggle_sidebar,
        set_sidebar_open,
        set_error,
        clear_error,
        set_notifications_loading,
        set_notifications,
        set_notifications_error,
        update_notification,
        remove_notification,
        set_approval_queue_items,
        set_approval_queue_loading,
        set_approval_queue_error,
        set_approval_queue_filters,
        set_approval_queue_sort,
        update_approval_queue_item,
        remove_from_approval_queue,
        add_audit_trail_entry,
        update_dashboard_metrics,
        refresh_dashboard_data,
    )
}


class MelStore:
    """Dispatch/subscribe container around the state dict."""

    def __init__(self, state: dict | None = None):
        self._state = state or initial_state()
        self._listeners: list[Callable[[dict], None]] = []

    @property
    def state(self) -> dict:
        return self._state

    def dispatch(self, act: dict) -> dict:
        reducer = REDUCERS.get(act.get("type"))
        if reducer is None:
            raise KeyError(f"Unknown action: {act.get('type')}")

        new_state = copy.deepcopy(self._state)
        reducer(new_state, act.get("payload"))
        self._state = new_state
        logger.debug("Dispatched %s", act["type"])

        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def subscribe(self, listener: Callable[[dict], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Selectors

    @property
    def unread_count(self) -> int:
        return self._state["notifications"]["unread_count"]

    @property
    def refresh_token(self) -> int:
        return self._state["dashboard"]["refresh_token"]
