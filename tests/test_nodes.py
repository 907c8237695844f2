"""Tests for the formatter and communicator nodes."""

import pytest

from synapse.gemini import GenerationResult, LLMParameters
from synapse.nodes import CommunicatorNode, InterAgentFormatter
from synapse.nodes.agent import PRIMING_ACKNOWLEDGEMENT

from .conftest import StubClient

# ---------------------------------------------------------------------------
# InterAgentFormatter
# ---------------------------------------------------------------------------


def test_formatter_turns_response_into_request():
    formatter = InterAgentFormatter()

    ok = formatter.push({"success": True, "generated_text": "draft", "http_status_code": 200})

    assert ok is True
    assert formatter.node_id == "inter_agent_formatter"
    assert formatter.pull() == {"type": "agent_output", "content": "draft"}


def test_formatter_applies_template():
    formatter = InterAgentFormatter("fmt", template="Review this answer:\n{text}")

    formatter.push({"success": True, "generated_text": "42"})

    assert formatter.pull()["content"] == "Review this answer:\n42"


def test_formatter_rejects_failed_response_and_carries_upstream_error():
    formatter = InterAgentFormatter()

    ok = formatter.push({"success": False, "error_message": "quota exceeded"})

    assert ok is False
    out = formatter.pull()
    assert out["success"] is False
    assert "quota exceeded" in out["error_message"]


@pytest.mark.parametrize("record", [{}, {"success": True}, {"success": True, "generated_text": 3}, None])
def test_formatter_rejects_malformed_records(record):
    formatter = InterAgentFormatter()

    assert formatter.push(record) is False
    assert formatter.pull()["success"] is False


# ---------------------------------------------------------------------------
# CommunicatorNode
# ---------------------------------------------------------------------------


def test_communicator_single_exchange_with_instructions():
    client = StubClient()
    node = CommunicatorNode(client)

    ok = node.push(
        {
            "content": "Summarise photosynthesis.",
            "llm_params": {"model": "gemini-other", "instructions": "One sentence.", "temperature": 0.1},
        }
    )

    assert ok is True
    assert node.node_id == "api_communicator"
    assert node.pull() == {"success": True, "generated_text": "reply #1", "http_status_code": 200}
    history, params = client.calls[0]
    assert history == [
        {"role": "user", "text": "One sentence."},
        {"role": "model", "text": PRIMING_ACKNOWLEDGEMENT},
        {"role": "user", "text": "Summarise photosynthesis."},
    ]
    assert params.model == "gemini-other"
    assert params.temperature == 0.1


def test_communicator_uses_defaults_without_llm_params():
    client = StubClient()
    defaults = LLMParameters(model="gemini-default", max_output_tokens=10)
    node = CommunicatorNode(client, defaults=defaults)

    node.push({"content": "hi", "llm_params": {"unknown_key": 1}})
    node.push({"content": "again"})

    for history, params in client.calls:
        assert params == defaults
        assert len(history) == 1


def test_communicator_keeps_no_history_between_pushes():
    client = StubClient()
    node = CommunicatorNode(client)

    node.push({"content": "first"})
    node.push({"content": "second"})

    assert client.calls[1][0] == [{"role": "user", "text": "second"}]


def test_communicator_missing_content():
    client = StubClient()
    node = CommunicatorNode(client)

    assert node.push({"llm_params": {}}) is False
    assert node.pull()["error_message"] == "Invalid input format to ApiCommunicator push()."
    assert client.calls == []


def test_communicator_stores_failure_result():
    client = StubClient(results=[GenerationResult(error_message="bad key", http_status_code=403)])
    node = CommunicatorNode(client)

    assert node.push({"content": "hi"}) is False
    assert node.pull() == {"success": False, "error_message": "bad key", "http_status_code": 403}
