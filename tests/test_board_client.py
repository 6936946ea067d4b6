"""Unit tests for app.integrations.board_client.

Test strategy
-------------
All outbound HTTP goes through a MagicMock passed to ProjectApiClient as
its ``session``; no server is started. Responses are MagicMocks exposing
``status_code`` and ``json()``.

Coverage
--------
    - HTTP status → exception mapping (400/401/404/409/5xx)
    - timeouts and refused connections → retryable ApiTimeoutError
    - bearer token captured on login and sent afterwards
    - FetchGuard stale-response discard
    - BoardSession drag_over preview, drag_end success and failure
"""

from unittest.mock import MagicMock

import pytest
import requests

from app.core.exceptions import (
    ApiTimeoutError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.integrations.board_client import (
    BoardSession,
    FetchGuard,
    ProjectApiClient,
    error_from_response,
)

BASE = "http://portfolio.test/api/v1"


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _client(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return ProjectApiClient(BASE, session=session), session


def _task(tid, column, position, title=None):
    return {"id": tid, "title": title or f"T{tid}", "columnId": column, "position": position}


def _board_payload():
    return {"success": True, "data": [
        {"id": "todo", "status": "TODO", "tasks": [_task(1, "todo", 0), _task(2, "todo", 1)]},
        {"id": "in_progress", "status": "IN_PROGRESS", "tasks": [_task(3, "in_progress", 0)]},
        {"id": "done", "status": "DONE", "tasks": []},
    ]}


# ═════════════════════════════════════════════════════════════════════════════
# ProjectApiClient
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectApiClient:
    def test_login_stores_token_for_later_calls(self):
        client, session = _client(
            _response(200, {"success": True, "token": "abc", "user": {"id": 1}}),
            _response(200, {"success": True, "data": [], "count": 0}),
        )
        assert client.login("alice", "pw") == {"id": 1}
        assert client.list_projects() == []

        method, url = session.request.call_args.args
        assert (method, url) == ("GET", f"{BASE}/projects")
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer abc"
        assert session.request.call_args.kwargs["timeout"] == 10

    def test_list_tasks_sends_project_filter(self):
        client, session = _client(_response(200, {"data": [{"id": 9}]}))
        assert client.list_tasks(project_id=4, status="TODO") == [{"id": 9}]
        assert session.request.call_args.kwargs["params"] == {"status": "TODO", "projectId": 4}

    def test_move_task_payload(self):
        client, session = _client(_response(200, {"data": {"task": {"id": 1}, "changed": []}}))
        assert client.move_task(1, "done", 2) == {"task": {"id": 1}, "changed": []}
        assert session.request.call_args.args == ("POST", f"{BASE}/tasks/1/move")
        assert session.request.call_args.kwargs["json"] == {"columnId": "done", "position": 2}

    def test_from_config(self):
        client = ProjectApiClient.from_config(
            {"API_BASE_URL": BASE + "/", "API_CLIENT_TIMEOUT": 3}, session=MagicMock(),
        )
        assert client.base_url == BASE
        assert client.timeout == 3

    def test_timeout_is_retryable(self):
        client, _ = _client(requests.Timeout("slow"))
        with pytest.raises(ApiTimeoutError) as exc_info:
            client.get_board(1)
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value, PersistenceError)

    def test_connection_refused_is_retryable(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with pytest.raises(ApiTimeoutError):
            client.get_dashboard()

    def test_validation_error_keeps_details(self):
        client, _ = _client(_response(400, {
            "success": False, "error": "Task title is required",
            "code": "ERR_VALIDATION_REQUIRED", "details": {"title": "required"},
        }))
        with pytest.raises(ValidationError) as exc_info:
            client.create_task({"projectId": 1})
        assert exc_info.value.details == {"title": "required"}
        assert exc_info.value.message == "Task title is required"

    def test_server_error_without_json(self):
        client, _ = _client(_response(500))
        with pytest.raises(PersistenceError) as exc_info:
            client.get_project(1)
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 500


class TestErrorMapping:
    def test_not_found(self):
        err = error_from_response(404, {"error": "Task id=5 not found"}, "GET /tasks/5")
        assert isinstance(err, NotFoundError)
        assert str(err) == "Task id=5 not found"
        assert (err.resource, err.resource_id) == ("Task", "5")

    def test_conflict_state(self):
        err = error_from_response(409, {"error": "Invalid transition", "code": "ERR_CONFLICT_STATE"}, "x")
        assert isinstance(err, ConflictError)
        assert err.field == "status"

    def test_unauthorized(self):
        assert isinstance(error_from_response(401, {}, "x"), AuthenticationError)

    def test_gateway_errors_retryable(self):
        assert error_from_response(503, None, "x").retryable is True
        assert error_from_response(500, None, "x").retryable is False


# ═════════════════════════════════════════════════════════════════════════════
# FetchGuard
# ═════════════════════════════════════════════════════════════════════════════

class TestFetchGuard:
    def test_newer_fetch_supersedes_older(self):
        guard = FetchGuard()
        first = guard.begin()
        second = guard.begin()
        assert not guard.is_current(first)
        assert guard.is_current(second)

    def test_invalidate(self):
        guard = FetchGuard()
        gen = guard.begin()
        guard.invalidate()
        assert not guard.is_current(gen)


# ═════════════════════════════════════════════════════════════════════════════
# BoardSession
# ═════════════════════════════════════════════════════════════════════════════

class TestBoardSession:
    def _loaded(self, *extra_responses):
        client, session = _client(_response(200, _board_payload()), *extra_responses)
        board = BoardSession(client, project_id=7)
        assert board.load() is True
        return board, session

    def test_load(self):
        board, session = self._loaded()
        assert session.request.call_args.args == ("GET", f"{BASE}/projects/7/board")
        assert board.board.to_dict() == {"todo": [1, 2], "in_progress": [3], "done": []}
        assert board.tasks[3]["title"] == "T3"

    def test_drag_over_is_preview_only(self):
        board, session = self._loaded()
        preview = board.drag_over(1, "done", 0)
        assert preview.to_dict()["done"] == [1]
        assert board.board.to_dict()["todo"] == [1, 2]
        assert session.request.call_count == 1

    def test_drag_end_adopts_server_placements(self):
        board, _ = self._loaded(_response(200, {"success": True, "data": {
            "task": _task(1, "in_progress", 0, title="T1 moved"),
            "changed": [
                {"taskId": 1, "columnId": "in_progress", "position": 0},
                {"taskId": 2, "columnId": "todo", "position": 0},
                {"taskId": 3, "columnId": "in_progress", "position": 1},
            ],
        }}))
        board.drag_end(1, "in_progress", 0)
        assert board.board.to_dict() == {"todo": [2], "in_progress": [1, 3], "done": []}
        assert board.tasks[1]["title"] == "T1 moved"
        assert board.tasks[2]["position"] == 0
        assert board.error is None

    def test_drag_end_failure_keeps_board(self):
        board, _ = self._loaded(_response(500, {"success": False, "error": "Database error"}))
        before = board.board.to_dict()
        with pytest.raises(PersistenceError):
            board.drag_end(1, "done", 0)
        assert board.board.to_dict() == before
        assert board.tasks[1]["columnId"] == "todo"
        assert board.error == "Database error"

    def test_drag_end_timeout_keeps_board(self):
        board, _ = self._loaded(requests.Timeout("slow"))
        with pytest.raises(ApiTimeoutError):
            board.drag_end(2, "done", 0)
        assert board.board.to_dict()["todo"] == [1, 2]
        assert "timed out" in board.error

    def test_drag_end_unknown_column_makes_no_call(self):
        board, session = self._loaded()
        with pytest.raises(ValidationError):
            board.drag_end(1, "archive", 0)
        assert session.request.call_count == 1

    def test_move_during_fetch_discards_fetch(self):
        board, _ = self._loaded(_response(200, {"data": {"task": _task(2, "done", 0), "changed": [
            {"taskId": 2, "columnId": "done", "position": 0},
        ]}}))
        in_flight = board.begin_fetch()
        board.drag_end(2, "done", 0)

        stale = _board_payload()["data"]
        assert board.apply_fetch(in_flight, stale) is False
        assert board.board.to_dict()["done"] == [2]

    def test_newer_fetch_wins(self):
        board, _ = self._loaded()
        older = board.begin_fetch()
        newer = board.begin_fetch()
        fresh = [{"id": "todo", "tasks": [_task(5, "todo", 0)]}]
        assert board.apply_fetch(newer, fresh) is True
        assert board.apply_fetch(older, _board_payload()["data"]) is False
        assert list(board.tasks) == [5]

    def test_load_discarded_when_move_lands_mid_fetch(self):
        client, session = _client(_response(200, _board_payload()))
        board = BoardSession(client, project_id=7)
        assert board.load() is True

        moved = _response(200, {"data": {"task": _task(1, "done", 0), "changed": [
            {"taskId": 1, "columnId": "done", "position": 0},
            {"taskId": 2, "columnId": "todo", "position": 0},
        ]}})

        def slow_board_fetch(method, url, **kwargs):
            if method == "GET":
                # The user drops a card while the refresh is still in flight
                session.request.side_effect = [moved]
                board.drag_end(1, "done", 0)
                return _response(200, _board_payload())
            raise AssertionError(f"unexpected {method} {url}")

        session.request.side_effect = slow_board_fetch
        assert board.refresh() is False
        assert board.board.to_dict() == {"todo": [2], "in_progress": [3], "done": [1]}
