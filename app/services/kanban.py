"""
Kanban reordering engine.

``KanbanBoard`` is an in-memory model of one project's board: an ordered
mapping of column id → ordered list of task ids. A task's position is its
index in that list, so after every operation the positions of each column
are exactly 0..n-1.

The engine is pure; ``task_service.move_task`` builds a board from the
database, applies a move and persists the placements it reports as changed.
The same class backs the optimistic client board in
``app.integrations.board_client``.

Drag protocol:
    drag-over  → ``preview_move``  (works on a copy, board untouched)
    drag-end   → ``move_task``     (mutates, returns changed placements)
"""

from __future__ import annotations

from typing import Iterable, NamedTuple

from app.core.exceptions import NotFoundError, ValidationError


class Placement(NamedTuple):
    task_id: int
    column_id: str
    position: int


class MoveResult(NamedTuple):
    task_id: int
    column_id: str
    position: int
    changed: list[Placement]

    @property
    def is_noop(self) -> bool:
        return not self.changed


class KanbanBoard:
    """Ordered columns of task ids.

    Args:
        columns: column ids in display order.
    """

    def __init__(self, columns: Iterable[str]):
        self._columns: dict[str, list[int]] = {}
        for column_id in columns:
            self._columns.setdefault(column_id, [])

    # ── Construction ─────────────────────────────────────────────────────

    @classmethod
    def from_placements(cls, placements: Iterable[Placement], columns: Iterable[str] = ()):
        """Build a board from (task_id, column_id, position) triples.

        Ties and gaps in stored positions are resolved by (position, task_id),
        then renumbered. Columns present in the data but not in ``columns``
        are appended so no task disappears.
        """
        board = cls(columns)
        ordered = sorted(placements, key=lambda p: (p.position, p.task_id))
        for p in ordered:
            board._columns.setdefault(p.column_id, []).append(p.task_id)
        return board

    @classmethod
    def from_tasks(cls, tasks, columns: dict[str, str] | Iterable[str], status_columns=None):
        """Build a board from task records exposing id, column_id, status and position.

        Args:
            tasks: task rows.
            columns: column ids in order, or a ``{column_id: status}`` mapping.
            status_columns: optional ``{status: column_id}`` fallback for tasks
                stored without a column.
        """
        if status_columns is None and isinstance(columns, dict):
            status_columns = {status: col for col, status in columns.items()}
        status_columns = status_columns or {}
        placements = []
        for t in tasks:
            column_id = t.column_id or status_columns.get(t.status)
            if column_id is None:
                raise ValidationError(
                    f"Task {t.id} has no column and status {t.status!r} maps to none",
                    details={"columnId": "missing"},
                )
            placements.append(Placement(t.id, column_id, t.position or 0))
        return cls.from_placements(placements, columns)

    def copy(self) -> "KanbanBoard":
        clone = KanbanBoard(())
        clone._columns = {c: list(ids) for c, ids in self._columns.items()}
        return clone

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def column_ids(self) -> list[str]:
        return list(self._columns)

    def column_task_ids(self, column_id: str) -> list[int]:
        self._require_column(column_id)
        return list(self._columns[column_id])

    def locate(self, task_id: int) -> Placement:
        for column_id, ids in self._columns.items():
            if task_id in ids:
                return Placement(task_id, column_id, ids.index(task_id))
        raise NotFoundError("Task", task_id)

    def placements(self) -> list[Placement]:
        return [
            Placement(task_id, column_id, index)
            for column_id, ids in self._columns.items()
            for index, task_id in enumerate(ids)
        ]

    def next_position(self, column_id: str) -> int:
        self._require_column(column_id)
        return len(self._columns[column_id])

    def __contains__(self, task_id) -> bool:
        return any(task_id in ids for ids in self._columns.values())

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._columns.values())

    def to_dict(self) -> dict[str, list[int]]:
        return {c: list(ids) for c, ids in self._columns.items()}

    # ── Mutations ────────────────────────────────────────────────────────

    def move_task(self, task_id: int, target_column_id: str, target_index: int) -> MoveResult:
        """Move a task and renumber the affected columns.

        ``target_index`` is the index in the destination column *after* the
        task has been removed from its source, clamped to [0, len(target)].
        Moving a task onto its current (column, index) changes nothing.

        Raises:
            NotFoundError: task not on the board (board unchanged).
            ValidationError: unknown target column (board unchanged).
        """
        self._require_column(target_column_id)
        source = self.locate(task_id)
        before = {p.task_id: p for p in self._affected(source.column_id, target_column_id)}

        self._columns[source.column_id].remove(task_id)
        target = self._columns[target_column_id]
        index = max(0, min(int(target_index), len(target)))
        target.insert(index, task_id)

        after = self._affected(source.column_id, target_column_id)
        changed = [p for p in after if before.get(p.task_id) != p]
        return MoveResult(task_id, target_column_id, index, changed)

    def preview_move(self, task_id: int, target_column_id: str, target_index: int) -> "KanbanBoard":
        """Return a copy of the board with the move applied; this board is untouched."""
        preview = self.copy()
        preview.move_task(task_id, target_column_id, target_index)
        return preview

    def append_task(self, task_id: int, column_id: str) -> Placement:
        """Place a new task at the end of ``column_id``."""
        self._require_column(column_id)
        if task_id in self:
            raise ValidationError(f"Task {task_id} is already on the board")
        ids = self._columns[column_id]
        ids.append(task_id)
        return Placement(task_id, column_id, len(ids) - 1)

    def remove_task(self, task_id: int) -> list[Placement]:
        """Remove a task; returns the placements of the column's remaining tasks that shifted."""
        source = self.locate(task_id)
        ids = self._columns[source.column_id]
        ids.remove(task_id)
        return [
            Placement(tid, source.column_id, index)
            for index, tid in enumerate(ids)
            if index >= source.position
        ]

    # ── Internals ────────────────────────────────────────────────────────

    def _require_column(self, column_id):
        if column_id not in self._columns:
            raise ValidationError(
                f"Unknown column {column_id!r}",
                details={"columnId": f"must be one of: {', '.join(self._columns)}"},
            )

    def _affected(self, *column_ids):
        seen = []
        for column_id in column_ids:
            if column_id in seen:
                continue
            seen.append(column_id)
        return [
            Placement(task_id, column_id, index)
            for column_id in seen
            for index, task_id in enumerate(self._columns[column_id])
        ]
