"""
Command pattern implementation for optimistic row updates.

Each command applies its change to a local collection first, then commits the
write to the backend. If the write fails or times out the command reverts its
local change, so callers never hand-write rollback code. Executed commands are
tracked by ``CommandManager`` for undo/redo.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..models.rows import LocalRow
from ..utils.constants import WRITE_TIMEOUT_SECONDS
from .backend import CollectionBackend, WriteResult, guarded_call
from .subscription import LocalCollection

logger = logging.getLogger(__name__)

RowFactory = Callable[[Dict[str, Any]], Any]


@dataclass
class ActionResult:
    """Outcome of a user-initiated action; ``error`` is shown inline."""
    row: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.ok, "row": self.row, "error": self.error}


class RowCommand(ABC):
    """Abstract base class for row commands - Command pattern."""

    def __init__(self, collection: LocalCollection, backend: CollectionBackend,
                 table: str, row_factory: RowFactory,
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        self.collection = collection
        self.backend = backend
        self.table = table
        self.row_factory = row_factory
        self.timeout = timeout

    @abstractmethod
    def apply(self) -> bool:
        """
        Apply the change to the local collection.

        Returns:
            True if the change could be applied, False otherwise
        """
        pass

    @abstractmethod
    def revert(self) -> None:
        """Undo the local change after a failed commit."""
        pass

    @abstractmethod
    async def commit(self) -> WriteResult:
        """Write the change through to the backend."""
        pass

    @abstractmethod
    def inverse(self) -> RowCommand:
        """Command that undoes this one once it has been executed."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Get human-readable description of the command."""
        pass

    def confirm(self, row: Optional[Dict[str, Any]]) -> None:
        """Replace the optimistic local row with the one the backend returned."""
        pass

    async def execute(self) -> ActionResult:
        """Apply locally, commit, and revert if the write does not succeed."""
        if not self.apply():
            return ActionResult(error=f"{self.description}: row not found")

        result = await guarded_call(self.commit(), self.timeout, label=self.description)
        if not result.ok:
            self.revert()
            logger.error("%s failed: %s", self.description, result.error)
            return ActionResult(error=result.error)

        self.confirm(result.row)
        return ActionResult(row=result.row)


class InsertRowCommand(RowCommand):
    """Insert a row; the server row is prepended once the insert succeeds."""

    def __init__(self, collection: LocalCollection, backend: CollectionBackend,
                 table: str, row_factory: RowFactory, payload: Dict[str, Any],
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        super().__init__(collection, backend, table, row_factory, timeout)
        self.payload = dict(payload)
        self.inserted: Optional[Dict[str, Any]] = None

    def apply(self) -> bool:
        # Nothing to show until the backend assigns the row id
        return True

    def revert(self) -> None:
        if self.inserted is not None:
            self.collection.remove(str(self.inserted["id"]))

    async def commit(self) -> WriteResult:
        return await self.backend.insert(self.table, self.payload)

    def confirm(self, row: Optional[Dict[str, Any]]) -> None:
        if row is None:
            return
        self.inserted = row
        self.collection.put(LocalRow(row=self.row_factory(row)), index=0)

    def inverse(self) -> RowCommand:
        if self.inserted is None:
            raise RuntimeError("Insert has not been executed")
        return DeleteRowCommand(self.collection, self.backend, self.table,
                                self.row_factory, str(self.inserted["id"]), self.timeout)

    @property
    def description(self) -> str:
        return f"Add {self.table} row"


class UpdateRowCommand(RowCommand):
    """Patch a row in place."""

    def __init__(self, collection: LocalCollection, backend: CollectionBackend,
                 table: str, row_factory: RowFactory, row_id: str,
                 patch: Dict[str, Any], finish_editing: bool = False,
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        super().__init__(collection, backend, table, row_factory, timeout)
        self.row_id = row_id
        self.patch = dict(patch)
        self.finish_editing = finish_editing
        self._previous: Optional[LocalRow] = None

    def apply(self) -> bool:
        local = self.collection.get(self.row_id)
        if local is None:
            return False
        self._previous = local
        data = local.row.to_dict()
        data.update(self.patch)
        self.collection.put(local.with_row(self.row_factory(data)))
        return True

    def revert(self) -> None:
        if self._previous is None:
            return
        current = self.collection.get(self.row_id)
        # Keep whatever editing state the user is in now
        is_editing = current.is_editing if current is not None else self._previous.is_editing
        self.collection.put(LocalRow(row=self._previous.row, is_editing=is_editing))

    async def commit(self) -> WriteResult:
        return await self.backend.update(self.table, self.row_id, self.patch)

    def confirm(self, row: Optional[Dict[str, Any]]) -> None:
        current = self.collection.get(self.row_id)
        if row is None or current is None:
            return
        is_editing = False if self.finish_editing else current.is_editing
        self.collection.put(LocalRow(row=self.row_factory(row), is_editing=is_editing))

    def inverse(self) -> RowCommand:
        if self._previous is None:
            raise RuntimeError("Update has not been executed")
        before = self._previous.row.to_dict()
        return UpdateRowCommand(self.collection, self.backend, self.table,
                                self.row_factory, self.row_id,
                                {key: before.get(key) for key in self.patch},
                                timeout=self.timeout)

    @property
    def description(self) -> str:
        fields = ", ".join(sorted(self.patch)) or "row"
        return f"Update {self.table} {fields}"


class ToggleActiveCommand(UpdateRowCommand):
    """Flip ``is_active`` on a row, keeping its local editing state."""

    def __init__(self, collection: LocalCollection, backend: CollectionBackend,
                 table: str, row_factory: RowFactory, row_id: str,
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        super().__init__(collection, backend, table, row_factory, row_id, {},
                         timeout=timeout)

    def apply(self) -> bool:
        local = self.collection.get(self.row_id)
        if local is None:
            return False
        self.patch = {"is_active": not local.row.is_active}
        return super().apply()

    @property
    def description(self) -> str:
        return f"Toggle {self.table} active"


class DeleteRowCommand(RowCommand):
    """Remove a row; it is put back at its old position if the delete fails."""

    def __init__(self, collection: LocalCollection, backend: CollectionBackend,
                 table: str, row_factory: RowFactory, row_id: str,
                 timeout: float = WRITE_TIMEOUT_SECONDS):
        super().__init__(collection, backend, table, row_factory, timeout)
        self.row_id = row_id
        self._previous: Optional[LocalRow] = None
        self._index = 0

    def apply(self) -> bool:
        self._index = self.collection.index_of(self.row_id)
        self._previous = self.collection.remove(self.row_id)
        return self._previous is not None

    def revert(self) -> None:
        if self._previous is not None:
            self.collection.put(self._previous, index=self._index)

    async def commit(self) -> WriteResult:
        return await self.backend.delete(self.table, self.row_id)

    def inverse(self) -> RowCommand:
        if self._previous is None:
            raise RuntimeError("Delete has not been executed")
        return InsertRowCommand(self.collection, self.backend, self.table,
                                self.row_factory, self._previous.row.to_dict(),
                                self.timeout)

    @property
    def description(self) -> str:
        return f"Delete {self.table} row"


class CommandManager:
    """
    Manager for executing and tracking row commands with undo/redo support.

    Undo runs the inverse of the last command as a new write. The history entry
    is then replaced by the inverse's own inverse so redo replays the change
    against the row as it exists after the undo.
    """

    def __init__(self, max_history: int = 50):
        """
        Initialize command manager.

        Args:
            max_history: Maximum number of commands to keep in history
        """
        self.max_history = max_history
        self._command_history: List[RowCommand] = []
        self._current_index = -1

    async def execute_command(self, command: RowCommand) -> ActionResult:
        """
        Execute a command and add it to history if it succeeded.

        Args:
            command: Command to execute

        Returns:
            ActionResult of the command's write
        """
        result = await command.execute()

        if result.ok:
            # Remove any commands after current index (for redo functionality)
            self._command_history = self._command_history[:self._current_index + 1]
            self._command_history.append(command)
            self._current_index += 1

            if len(self._command_history) > self.max_history:
                self._command_history.pop(0)
                self._current_index -= 1

        return result

    async def undo(self) -> ActionResult:
        """Undo the last command."""
        if not self.can_undo():
            return ActionResult(error="Nothing to undo")

        inverse = self._command_history[self._current_index].inverse()
        result = await inverse.execute()

        if result.ok:
            self._command_history[self._current_index] = inverse.inverse()
            self._current_index -= 1

        return result

    async def redo(self) -> ActionResult:
        """Redo the next command."""
        if not self.can_redo():
            return ActionResult(error="Nothing to redo")

        command = self._command_history[self._current_index + 1]
        result = await command.execute()

        if result.ok:
            self._current_index += 1

        return result

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self._current_index >= 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return self._current_index < len(self._command_history) - 1

    def get_command_history(self) -> List[str]:
        """Get history of command descriptions."""
        return [cmd.description for cmd in self._command_history]

    def clear_history(self) -> None:
        """Clear command history."""
        self._command_history.clear()
        self._current_index = -1
