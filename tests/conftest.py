"""
Shared test fixtures.

No test talks to Gemini: agents are given stub generation clients that
record the histories they receive and answer from a script.
"""

import copy

import pytest

from synapse.gemini import GenerationClient, GenerationResult, LLMParameters
from synapse.nodes import Agent
from synapse.router import Router


class StubClient(GenerationClient):
    """Answers every call with ``reply #<n>`` or a scripted result."""

    def __init__(self, results=None):
        self.results = list(results or [])
        self.calls: list[tuple[list[dict], LLMParameters]] = []

    def generate(self, history, params):
        self.calls.append((copy.deepcopy(history), params))
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return GenerationResult(
            success=True,
            generated_text=f"reply #{len(self.calls)}",
            http_status_code=200,
        )


class FailingClient(GenerationClient):
    """Always fails like a rate-limited API."""

    def __init__(self):
        self.calls = 0

    def generate(self, history, params):
        self.calls += 1
        return GenerationResult(error_message="quota exceeded", http_status_code=429)


def make_params(**overrides) -> LLMParameters:
    values = {
        "model": "gemini-test",
        "temperature": 0.5,
        "top_p": 0.9,
        "top_k": 10,
        "max_output_tokens": 100,
        "max_history_turns": 3,
        "instructions": "Be terse.",
    }
    values.update(overrides)
    return LLMParameters(**values)


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


@pytest.fixture
def failing_client() -> FailingClient:
    return FailingClient()


@pytest.fixture
def make_agent(stub_client):
    """Factory: ``make_agent("a", max_history_turns=1)``."""

    def _make(node_id: str = "agent", client=None, **param_overrides) -> Agent:
        return Agent(
            node_id,
            node_id.title(),
            make_params(**param_overrides),
            client or stub_client,
        )

    return _make


@pytest.fixture
def router() -> Router:
    return Router()
