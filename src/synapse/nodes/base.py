"""
base.py — Base class for routable processing units.

Every unit subclasses Node and is addressed by its ``node_id``. The
Router calls ``push()`` with an input record and ``pull()`` to read the
result back out.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod

INVALID_INPUT_MESSAGE = "Invalid input format to {kind} push()."


class Node(ABC):
    """Abstract base class for processing units.

    A node holds a single input/output slot: each ``push()`` overwrites
    the previous input and output (last write wins).

    To create a new node:
    1. Subclass Node
    2. Implement ``push()``, storing the result with ``_store()``
    3. Register the instance with a Router under its ``node_id``

    Example::

        class UpperNode(Node):
            def push(self, record: dict) -> bool:
                self._data_in = copy.deepcopy(record)
                text = record.get("content")
                if not isinstance(text, str):
                    return self._fail("no content")
                self._store({"success": True, "content": text.upper()})
                return True
    """

    def __init__(self, node_id: str):
        if not node_id:
            raise ValueError("Node id must be a non-empty string")
        self._node_id = node_id
        self._data_in: dict = {}
        self._data_out: dict = {}
        self.lock = threading.Lock()

    @property
    def node_id(self) -> str:
        return self._node_id

    @abstractmethod
    def push(self, record: dict) -> bool:
        """Consume a record and store the unit's output.

        Args:
            record: Input record. Implementations must not keep a
                    reference to the caller's dict.

        Returns:
            True if the work succeeded. Failures are stored as a
            response record with ``success=False`` rather than raised.
        """
        ...

    def pull(self) -> dict:
        """Return a copy of the most recent output ({} before any push)."""
        return copy.deepcopy(self._data_out)

    @property
    def last_input(self) -> dict:
        """Copy of the record given to the most recent push ({} if none)."""
        return copy.deepcopy(self._data_in)

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _store(self, record: dict) -> None:
        self._data_out = record

    def _fail(self, message: str, status_code: int | None = None) -> bool:
        """Store a failure response and return False."""
        record = {"success": False, "error_message": message}
        if status_code is not None:
            record["http_status_code"] = status_code
        self._store(record)
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._node_id!r})"


def extract_content(record: object) -> str | None:
    """Return the string ``content`` field of a record, or None."""
    if not isinstance(record, dict):
        return None
    content = record.get("content")
    return content if isinstance(content, str) else None
