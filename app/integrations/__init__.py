"""app.integrations — Outbound API client modules.

All outbound HTTP calls to the portfolio REST API go through a client in
this package, never via bare `requests` calls elsewhere.

Current clients:
  board_client.ProjectApiClient — /api/v1 client (requests.Session, 10 s timeout)
  board_client.BoardSession     — optimistic Kanban state with stale-fetch guard
"""
