"""
communicator.py — Routable wrapper around a generation client.

Lets raw generation requests travel through the Router like any other
record::

    router.send_data("api_communicator", {
        "content": "Summarise this...",
        "llm_params": {"model": "gemini-2.0-flash", "instructions": "Be brief."},
    })

Unlike an Agent, the communicator keeps no history: every push is a
single exchange.
"""

import copy
import dataclasses
import logging

from ..gemini import GenerationClient, GenerationResult, LLMParameters
from .agent import PRIMING_ACKNOWLEDGEMENT
from .base import INVALID_INPUT_MESSAGE, Node, extract_content

_PARAM_FIELDS = {f.name for f in dataclasses.fields(LLMParameters)}


class CommunicatorNode(Node):
    """Forwards ``{"content", "llm_params"}`` requests to a GenerationClient."""

    def __init__(
        self,
        client: GenerationClient,
        node_id: str = "api_communicator",
        defaults: LLMParameters | None = None,
    ):
        super().__init__(node_id)
        self.client = client
        self.defaults = defaults or LLMParameters()

    def push(self, record: dict) -> bool:
        self._data_in = copy.deepcopy(record) if isinstance(record, dict) else {}

        content = extract_content(record)
        if content is None:
            logging.error("Communicator '%s': request has no 'content' string", self.node_id)
            return self._fail(INVALID_INPUT_MESSAGE.format(kind="ApiCommunicator"))

        params = self._params(record.get("llm_params"))
        history = []
        if params.instructions:
            history.append({"role": "user", "text": params.instructions})
            history.append({"role": "model", "text": PRIMING_ACKNOWLEDGEMENT})
        history.append({"role": "user", "text": content})

        try:
            result = self.client.generate(history, params)
        except Exception as e:
            logging.exception("Communicator '%s': generation client raised", self.node_id)
            result = GenerationResult(error_message=f"Generation failed: {e}")

        self._store(result.to_record())
        return result.success

    def _params(self, overrides: object) -> LLMParameters:
        """Merge request ``llm_params`` over the node's defaults."""
        if not isinstance(overrides, dict):
            return self.defaults
        known = {k: v for k, v in overrides.items() if k in _PARAM_FIELDS}
        return dataclasses.replace(self.defaults, **known)
