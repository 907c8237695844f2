"""
formatter.py — Inter-agent formatter node.

An agent's output is a response record (``success``/``generated_text``),
but an agent's input must carry ``content``. Placing this node between
two agents in a stream converts one into the other::

    router.send_data_stream(["researcher", "inter_agent_formatter", "critic"], request)
"""

import copy
import logging

from .base import Node

DEFAULT_TEMPLATE = "{text}"


class InterAgentFormatter(Node):
    """Rewrites a successful response record as a request record."""

    def __init__(self, node_id: str = "inter_agent_formatter", template: str = DEFAULT_TEMPLATE):
        super().__init__(node_id)
        self.template = template

    def push(self, record: dict) -> bool:
        self._data_in = copy.deepcopy(record) if isinstance(record, dict) else {}

        if not isinstance(record, dict) or record.get("success") is not True:
            message = "Formatter received an unsuccessful or malformed response."
            if isinstance(record, dict) and record.get("error_message"):
                message = f"{message} Upstream error: {record['error_message']}"
            logging.error("Formatter '%s': %s", self.node_id, message)
            return self._fail(message)

        text = record.get("generated_text")
        if not isinstance(text, str):
            logging.error("Formatter '%s': response has no generated_text", self.node_id)
            return self._fail("Response record has no 'generated_text' string.")

        self._store({"type": "agent_output", "content": self.template.format(text=text)})
        return True
