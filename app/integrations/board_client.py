"""
Project API client and optimistic Kanban board session.

All outbound HTTP calls to the portfolio REST API go through
``ProjectApiClient``. Failures map back onto ``app.core.exceptions`` so a
caller handles a remote error exactly like a local one:

    timeout / connection refused   → ApiTimeoutError (retryable PersistenceError)
    400                            → ValidationError (with details)
    401 / 403                      → AuthenticationError / AuthorizationError
    404                            → NotFoundError
    409                            → ConflictError
    anything else non-2xx          → PersistenceError

There is no automatic retry; ``BoardSession`` surfaces the error and the
user retries by hand.

Stale responses: every fetch takes a generation number from a
``FetchGuard``. A response whose generation is no longer current (a newer
fetch started, or a move was committed meanwhile) is discarded.

Testability: pass a fake ``session`` to ProjectApiClient() in tests instead
of letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import requests

from app.core.exceptions import (
    ApiTimeoutError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.services.kanban import KanbanBoard, Placement
from app.utils.errors import STATE_FIELD, E

logger = logging.getLogger(__name__)

# ── Default request timeout (seconds) ──────────────────────────────────────
DEFAULT_TIMEOUT = 10

# Exceptions a failed API call can raise
API_ERRORS = (
    PersistenceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthenticationError,
    AuthorizationError,
)


def error_from_response(status_code: int, body: dict | None, context: str) -> Exception:
    """Translate a non-2xx response into the matching application exception."""
    body = body if isinstance(body, dict) else {}
    message = body.get("error") or f"{context} failed with HTTP {status_code}"

    if status_code == 400:
        return ValidationError(message, details=body.get("details"))
    if status_code == 401:
        return AuthenticationError(message)
    if status_code == 403:
        return AuthorizationError(message)
    if status_code == 404:
        stem = message[: -len(" not found")] if message.endswith(" not found") else "Resource"
        resource, _, resource_id = stem.partition(" id=")
        return NotFoundError(resource, resource_id or None)
    if status_code == 409:
        field = STATE_FIELD if body.get("code") == E.CONFLICT_STATE else "value"
        return ConflictError("Resource", field, message=message)
    return PersistenceError(
        message, retryable=status_code in (502, 503, 504), status_code=status_code,
    )


class ProjectApiClient:
    """Thin client for ``/api/v1``.

    Usage:
        client = ProjectApiClient("http://localhost:5000/api/v1")
        client.login("alice", "s3cret-pass")
        tasks = client.list_tasks(project_id=1)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config: Any, **kwargs) -> "ProjectApiClient":
        """Build a client from a Flask config mapping (API_BASE_URL, API_CLIENT_TIMEOUT)."""
        return cls(
            config.get("API_BASE_URL"),
            timeout=config.get("API_CLIENT_TIMEOUT", DEFAULT_TIMEOUT),
            **kwargs,
        )

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _request(self, method: str, path: str, *, json: dict | None = None,
                 params: dict | None = None) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        context = f"{method} /{path.lstrip('/')}"
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        t0 = time.perf_counter()
        try:
            resp = self.session.request(
                method, url, json=json, params=params, headers=headers, timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("API timeout %s after %.0fs", context, self.timeout)
            raise ApiTimeoutError(f"{context} timed out after {self.timeout}s")
        except requests.ConnectionError:
            logger.warning("API connection failed %s", context)
            raise ApiTimeoutError(f"{context} could not connect")
        except requests.RequestException as exc:
            logger.error("API request failed %s: %s", context, exc)
            raise PersistenceError(f"{context} failed: {exc}")
        duration_ms = int((time.perf_counter() - t0) * 1000)

        try:
            body = resp.json()
        except ValueError:
            body = None

        if 200 <= resp.status_code < 300:
            logger.debug("API %s → %s (%dms)", context, resp.status_code, duration_ms)
            return body if isinstance(body, dict) else {}

        logger.info("API %s → %s (%dms)", context, resp.status_code, duration_ms)
        raise error_from_response(resp.status_code, body, context)

    # ── Auth ─────────────────────────────────────────────────────────────────

    def login(self, username: str, password: str) -> dict:
        """Log in and keep the returned token for subsequent calls."""
        body = self._request("POST", "auth/login", json={"username": username, "password": password})
        self.token = body.get("token")
        return body.get("user") or {}

    # ── Projects ─────────────────────────────────────────────────────────────

    def list_projects(self, **filters) -> list[dict]:
        return self._request("GET", "projects", params=filters or None).get("data", [])

    def get_project(self, project_id: int, include: tuple[str, ...] = ()) -> dict:
        params = {"include": ",".join(include)} if include else None
        return self._request("GET", f"projects/{project_id}", params=params)["data"]

    def get_project_health(self, project_id: int) -> dict | None:
        return self._request("GET", f"projects/{project_id}/health").get("data")

    def get_board(self, project_id: int) -> list[dict]:
        """Columns in order, each ``{id, status, tasks}``."""
        return self._request("GET", f"projects/{project_id}/board").get("data", [])

    # ── Tasks ────────────────────────────────────────────────────────────────

    def list_tasks(self, project_id: int | None = None, **filters) -> list[dict]:
        params = dict(filters)
        if project_id is not None:
            params["projectId"] = project_id
        return self._request("GET", "tasks", params=params or None).get("data", [])

    def create_task(self, data: dict) -> dict:
        return self._request("POST", "tasks", json=data)["data"]

    def update_task(self, task_id: int, data: dict) -> dict:
        return self._request("PATCH", f"tasks/{task_id}", json=data)["data"]

    def move_task(self, task_id: int, column_id: str, position: int) -> dict:
        """Commit a move. Returns ``{task, changed: [{taskId, columnId, position}]}``."""
        return self._request(
            "POST", f"tasks/{task_id}/move", json={"columnId": column_id, "position": position},
        )["data"]

    # ── Dashboard ────────────────────────────────────────────────────────────

    def get_dashboard(self, stats_filter: str = "ALL") -> dict:
        return self._request("GET", "dashboard", params={"statsFilter": stats_filter})["data"]


class FetchGuard:
    """Request-generation counter.

    ``begin()`` hands out a new generation; a response may only be applied
    while ``is_current(generation)`` holds. ``invalidate()`` makes every
    in-flight fetch stale without starting a new one.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1

    def is_current(self, generation: int) -> bool:
        return generation == self._generation


class BoardSession:
    """Client-side Kanban state for one project.

    drag_over  → preview layout from ``KanbanBoard.preview_move`` (no I/O)
    drag_end   → POST /tasks/<id>/move; the server's placements are adopted
                 only on success, a failure leaves the board as it was and
                 re-raises after recording ``error`` for the UI

    Fetches are split into ``begin_fetch()`` (take a generation before the
    request goes out) and ``apply_fetch(generation, columns)`` (adopt the
    payload only if that generation is still current). Callers that fetch on
    a worker thread or an event loop must use the two halves: a later fetch
    or any ``drag_end`` in between makes the earlier response stale and it is
    dropped. ``load()`` runs both halves around a blocking ``get_board`` call,
    so it is protected the same way when it runs off the UI thread.
    """

    def __init__(self, client: ProjectApiClient, project_id: int) -> None:
        self.client = client
        self.project_id = project_id
        self.tasks: dict[int, dict] = {}
        self.board = KanbanBoard(())
        self.error: str | None = None
        self._guard = FetchGuard()

    # ── Loading ──────────────────────────────────────────────────────────────

    def begin_fetch(self) -> int:
        return self._guard.begin()

    def apply_fetch(self, generation: int, columns: list[dict]) -> bool:
        """Adopt a board payload unless a newer fetch or a move superseded it."""
        if not self._guard.is_current(generation):
            logger.debug("Discarding stale board fetch gen=%s (current=%s)",
                         generation, self._guard.generation)
            return False
        tasks = {}
        placements = []
        for column in columns:
            for t in column.get("tasks", []):
                tasks[t["id"]] = t
                placements.append(Placement(t["id"], column["id"], t.get("position") or 0))
        self.tasks = tasks
        self.board = KanbanBoard.from_placements(placements, [c["id"] for c in columns])
        self.error = None
        return True

    def load(self) -> bool:
        generation = self.begin_fetch()
        return self.apply_fetch(generation, self.client.get_board(self.project_id))

    refresh = load

    # ── Drag protocol ────────────────────────────────────────────────────────

    def drag_over(self, task_id: int, column_id: str, index: int) -> KanbanBoard:
        return self.board.preview_move(task_id, column_id, index)

    def drag_end(self, task_id: int, column_id: str, index: int) -> dict:
        """Persist a move; returns the server's ``{task, changed}`` payload."""
        # Validates task and column locally before any I/O
        self.board.preview_move(task_id, column_id, index)
        self._guard.invalidate()
        try:
            result = self.client.move_task(task_id, column_id, index)
        except API_ERRORS as exc:
            self.error = str(exc)
            logger.warning("Move of task %s failed: %s", task_id, exc)
            raise

        tasks = {tid: dict(t) for tid, t in self.tasks.items()}
        for p in result.get("changed", []):
            if p["taskId"] in tasks:
                tasks[p["taskId"]].update(columnId=p["columnId"], position=p["position"])
        moved = result.get("task")
        if moved:
            tasks[moved["id"]] = moved

        self.tasks = tasks
        self.board = KanbanBoard.from_placements(
            [Placement(t["id"], t["columnId"], t["position"]) for t in tasks.values()],
            self.board.column_ids,
        )
        self.error = None
        return result
