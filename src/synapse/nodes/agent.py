"""
agent.py — Conversational agent node.

Turns an incoming ``{"content": ...}`` record into a Gemini request,
keeps a bounded exchange history, and stores the generation result as
its output record.

History layout::

    [priming user turn, priming model turn, user, model, user, model, ...]

The priming pair carries the agent's standing instructions and is never
evicted. Older user/model pairs are dropped from the front so the
history never holds more than ``(max_history_turns + 1) * 2`` turns once
a push has returned.
"""

import copy
import logging

from ..gemini import GenerationClient, GenerationResult, LLMParameters
from .base import INVALID_INPUT_MESSAGE, Node, extract_content

PRIMING_ACKNOWLEDGEMENT = "Understood."

# Turns occupied by the priming pair
_PRIMING_LEN = 2


class Agent(Node):
    """A node that answers user content with a Gemini model."""

    def __init__(
        self,
        node_id: str,
        name: str,
        params: LLMParameters,
        client: GenerationClient,
    ):
        super().__init__(node_id)
        self.name = name
        self.params = params
        self.client = client
        self._history: list[dict] = []

    @property
    def history(self) -> list[dict]:
        """Copy of the current exchange history, oldest first."""
        return copy.deepcopy(self._history)

    @property
    def history_limit(self) -> int:
        """Maximum number of turns kept between pushes."""
        return (max(self.params.max_history_turns, 0) + 1) * 2

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def push(self, record: dict) -> bool:
        """Send ``record["content"]`` to the model and store the reply."""
        self._data_in = copy.deepcopy(record) if isinstance(record, dict) else {}

        content = extract_content(record)
        if content is None:
            logging.error(
                "Agent '%s': incoming record has no 'content' string", self.node_id
            )
            return self._fail(INVALID_INPUT_MESSAGE.format(kind="Agent"))

        if not self._history:
            self._history.extend(self._priming_pair())
        self._evict()

        self._history.append({"role": "user", "text": content})
        logging.info(
            "Agent '%s': sending %d turn(s) to %s",
            self.node_id,
            len(self._history),
            self.params.model,
        )

        result = self._generate()

        if not result.success:
            # Withdraw the unanswered turn so history stays pair-aligned
            self._history.pop()
            logging.warning(
                "Agent '%s': generation failed (HTTP %d): %s",
                self.node_id,
                result.http_status_code,
                result.error_message,
            )
            self._store(result.to_record())
            return False

        self._history.append({"role": "model", "text": result.generated_text})
        self._evict()
        logging.info(
            "Agent '%s': received %d chars, history at %d/%d turns",
            self.node_id,
            len(result.generated_text),
            len(self._history),
            self.history_limit,
        )
        self._store(result.to_record())
        return True

    def reset(self) -> None:
        """Forget the conversation (the priming pair is rebuilt on next push)."""
        self._history.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _priming_pair(self) -> list[dict]:
        return [
            {"role": "user", "text": self.params.instructions},
            {"role": "model", "text": PRIMING_ACKNOWLEDGEMENT},
        ]

    def _evict(self) -> None:
        """Drop the oldest non-priming user/model pairs until under the limit."""
        while len(self._history) > self.history_limit:
            if len(self._history) < _PRIMING_LEN + 2:
                break
            del self._history[_PRIMING_LEN:_PRIMING_LEN + 2]

    def _generate(self) -> GenerationResult:
        try:
            result = self.client.generate(copy.deepcopy(self._history), self.params)
        except Exception as e:
            logging.exception("Agent '%s': generation client raised", self.node_id)
            return GenerationResult(error_message=f"Generation failed: {e}")

        if result.success and not isinstance(result.generated_text, str):
            return GenerationResult(
                error_message="Generation succeeded but returned no text.",
                http_status_code=result.http_status_code,
            )
        return result
