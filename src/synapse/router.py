"""
router.py — Registry and dispatcher for processing units.

The Router owns every registered node and is the only way to reach one:
callers name nodes by id and the Router resolves, pushes and pulls.

Dispatch patterns:

- ``send_data``         push a literal record to one node
- ``exchange``          push to one node and return its output atomically
- ``send``              push one node's current output to another
- ``send_data_stream``  thread a record through nodes in order (fail-fast)
- ``send_data_multi``   push the same record to several nodes (best-effort)
- ``send_stream`` / ``send_multi``  as above, sourcing the record from a node

A stream stops at the first unknown id or failed push, because later
stages have nothing to consume. A broadcast always attempts every target
and reports whether all of them succeeded.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterator, Mapping, Sequence

from .nodes.base import Node


class Router:
    """Owns nodes by id and moves records between them."""

    def __init__(self, nodes: Mapping[str, Node] | None = None):
        self._nodes: dict[str, Node] = {}
        self._lock = threading.RLock()
        for node_id, node in (nodes or {}).items():
            self.register_node(node_id, node)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_node(self, node_id: str, node: Node) -> None:
        """Install ``node`` under ``node_id``, replacing any previous owner."""
        if node is None:
            logging.error("Router: refusing to register None for node '%s'", node_id)
            return
        with self._lock:
            if node_id in self._nodes:
                logging.warning(
                    "Router: node '%s' already registered, replacing %r",
                    node_id,
                    self._nodes[node_id],
                )
            self._nodes[node_id] = node
        logging.info("Router: node '%s' registered", node_id)

    def unregister_node(self, node_id: str) -> bool:
        with self._lock:
            removed = self._nodes.pop(node_id, None)
        if removed is None:
            logging.warning("Router: cannot unregister unknown node '%s'", node_id)
            return False
        logging.info("Router: node '%s' unregistered", node_id)
        return True

    def get(self, node_id: str) -> Node | None:
        with self._lock:
            return self._nodes.get(node_id)

    def node_ids(self) -> list[str]:
        with self._lock:
            return list(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.node_ids())

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def send_data(self, to_id: str, record: dict) -> bool:
        """Push ``record`` to the node ``to_id``."""
        node = self._resolve(to_id, "destination")
        if node is None:
            return False
        logging.info("Router: sending data to node '%s'", to_id)
        with node.lock:
            return self._push(node, record)

    def send(self, to_id: str, from_id: str) -> bool:
        """Push the current output of ``from_id`` to ``to_id``."""
        if self._resolve(from_id, "source") is None:
            return False
        return self.send_data(to_id, self.fetch(from_id))

    def fetch(self, node_id: str) -> dict:
        """Return the latest output of ``node_id``, or {} if it is unknown."""
        node = self._resolve(node_id, "source")
        if node is None:
            return {}
        logging.debug("Router: fetching data from node '%s'", node_id)
        return node.pull()

    def exchange(self, to_id: str, record: dict) -> dict:
        """Push ``record`` to ``to_id`` and return the output it produced.

        The push and the pull happen under the node's lock, so another
        caller cannot replace the output in between. Returns {} if the
        node is unknown.
        """
        node = self._resolve(to_id, "destination")
        if node is None:
            return {}
        logging.info("Router: exchanging data with node '%s'", to_id)
        with node.lock:
            self._push(node, record)
            return node.pull()

    def send_data_stream(self, node_ids: Sequence[str], initial_record: dict) -> bool:
        """Thread ``initial_record`` through ``node_ids`` in order.

        Each node's output becomes the next node's input. Stops at the
        first unknown id or failed push; nodes already reached keep the
        outputs they produced.
        """
        if not node_ids:
            logging.error("Router: send_data_stream called with an empty node list")
            return False

        current = initial_record
        for position, node_id in enumerate(node_ids):
            node = self._resolve(node_id, "stream")
            if node is None:
                return False

            logging.info(
                "Router: stream step %d/%d -> node '%s'",
                position + 1,
                len(node_ids),
                node_id,
            )
            with node.lock:
                if not self._push(node, current):
                    logging.error(
                        "Router: node '%s' failed to process stream input", node_id
                    )
                    return False
                current = node.pull()
        return True

    def send_stream(self, node_ids: Sequence[str], from_id: str) -> bool:
        if self._resolve(from_id, "source") is None:
            return False
        return self.send_data_stream(node_ids, self.fetch(from_id))

    def send_data_multi(self, to_ids: Sequence[str], record: dict) -> bool:
        """Push the same ``record`` to every id in ``to_ids``.

        Every target is attempted; returns True only if all succeeded.
        """
        if not to_ids:
            logging.warning("Router: send_data_multi called with no destinations")
            return True

        all_sent = True
        for to_id in to_ids:
            if not self.send_data(to_id, record):
                all_sent = False
        return all_sent

    def send_multi(self, to_ids: Sequence[str], from_id: str) -> bool:
        if self._resolve(from_id, "source") is None:
            return False
        return self.send_data_multi(to_ids, self.fetch(from_id))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve(self, node_id: str, role: str) -> Node | None:
        node = self.get(node_id)
        if node is None:
            logging.error("Router: %s node '%s' not found", role, node_id)
        return node

    @staticmethod
    def _push(node: Node, record: dict) -> bool:
        """Push a private copy of ``record``; exceptions count as failure."""
        try:
            return bool(node.push(copy.deepcopy(record)))
        except Exception:
            logging.exception("Router: node '%s' raised during push", node.node_id)
            return False
