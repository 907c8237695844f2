"""
Tests for the Gemini generation clients. The SDK client and the HTTP
session are replaced with fakes; nothing leaves the process.
"""

import json
from types import SimpleNamespace

import pytest
import requests
from google.genai import errors, types

from synapse.gemini import (
    GeminiClient,
    GeminiRestClient,
    GenerationResult,
    LLMParameters,
    build_request_body,
    parse_gemini_response,
)

HISTORY = [
    {"role": "user", "text": "Be terse."},
    {"role": "model", "text": "Understood."},
    {"role": "user", "text": "What is 2+2?"},
]

PARAMS = LLMParameters(
    model="gemini-test",
    temperature=0.2,
    top_p=0.8,
    top_k=16,
    max_output_tokens=64,
    instructions="Be terse.",
)


def _candidate_body(text: str) -> str:
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]})


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


def test_success_result_record_shape():
    result = GenerationResult(success=True, generated_text="4", http_status_code=200)

    assert result.to_record() == {
        "success": True,
        "generated_text": "4",
        "http_status_code": 200,
    }


def test_failure_result_record_shape():
    result = GenerationResult(error_message="nope", http_status_code=500)

    assert result.to_record() == {
        "success": False,
        "error_message": "nope",
        "http_status_code": 500,
    }


# ---------------------------------------------------------------------------
# REST request / response handling
# ---------------------------------------------------------------------------


def test_request_body_maps_turns_and_generation_config():
    body = build_request_body(HISTORY, PARAMS, {"harassment": "BLOCK_NONE", "bogus": "X"})

    assert body["contents"][2] == {"role": "user", "parts": [{"text": "What is 2+2?"}]}
    assert body["generationConfig"] == {
        "temperature": 0.2,
        "topP": 0.8,
        "topK": 16,
        "maxOutputTokens": 64,
    }
    assert body["safetySettings"] == [
        {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"}
    ]


def test_request_body_omits_zero_top_k_and_empty_safety():
    body = build_request_body(HISTORY, LLMParameters(top_k=0))

    assert "topK" not in body["generationConfig"]
    assert "safetySettings" not in body


def test_parse_candidate_text():
    result = parse_gemini_response(_candidate_body("4"), 200)

    assert result.success is True
    assert result.generated_text == "4"
    assert result.http_status_code == 200


@pytest.mark.parametrize(
    "candidate",
    [
        {"content": {"parts": [{"text": None}]}},
        {"content": {"parts": [{"text": 42}]}},
        {"content": {"parts": ["text"]}},
        {"content": "text"},
        "text",
    ],
)
def test_parse_candidate_without_text_string_is_failure(candidate):
    raw = json.dumps({"candidates": [candidate]})

    result = parse_gemini_response(raw, 200)

    assert result.success is False
    assert result.generated_text == ""
    assert result.error_message == (
        "Response candidate does not contain valid 'content' or 'parts'."
    )


def test_rest_client_null_text_part_is_failure():
    body = json.dumps({"candidates": [{"content": {"parts": [{"text": None}]}}]})
    session = FakeSession(SimpleNamespace(text=body, status_code=200))

    result = GeminiRestClient(api_key="secret", session=session).generate(HISTORY, PARAMS)

    assert result.success is False
    assert result.http_status_code == 200


def test_parse_api_error():
    raw = json.dumps({"error": {"code": 400, "message": "API key not valid."}})

    result = parse_gemini_response(raw, 400)

    assert result.success is False
    assert result.error_message == "API key not valid."
    assert result.http_status_code == 400


def test_parse_safety_finish_reason():
    raw = json.dumps({"candidates": [{"finishReason": "SAFETY"}]})

    result = parse_gemini_response(raw, 200)

    assert result.success is False
    assert result.error_message == "Response blocked due to safety reasons."


def test_parse_prompt_block_reason():
    raw = json.dumps({"promptFeedback": {"blockReason": "OTHER"}})

    result = parse_gemini_response(raw, 200)

    assert result.error_message == "Prompt blocked due to safety reasons: OTHER"


def test_parse_unexpected_format():
    assert parse_gemini_response("{}", 200).error_message == "Unexpected API response format."


def test_parse_invalid_json():
    result = parse_gemini_response("not json", 200)

    assert result.success is False
    assert result.error_message.startswith("JSON parsing error:")


def test_parse_http_error_without_error_object_quotes_body():
    result = parse_gemini_response("<html>Bad Gateway</html>", 502)

    assert result.http_status_code == 502
    assert result.error_message.startswith("API call failed with HTTP 502.")
    assert "Bad Gateway" in result.error_message


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


def test_rest_client_posts_to_model_endpoint():
    session = FakeSession(SimpleNamespace(text=_candidate_body("4"), status_code=200))
    client = GeminiRestClient(
        api_key="secret",
        api_url="https://example.test/v1beta/models",
        timeout=5,
        session=session,
    )

    result = client.generate(HISTORY, PARAMS)

    assert result.success is True
    assert result.generated_text == "4"
    url, kwargs = session.calls[0]
    assert url == "https://example.test/v1beta/models/gemini-test:generateContent"
    assert kwargs["headers"] == {"x-goog-api-key": "secret"}
    assert kwargs["timeout"] == 5
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "Be terse."


def test_rest_client_maps_transport_error():
    session = FakeSession(exc=requests.ConnectionError("connection refused"))
    client = GeminiRestClient(api_key="secret", session=session)

    result = client.generate(HISTORY, PARAMS)

    assert result.success is False
    assert result.http_status_code == 0
    assert "connection refused" in result.error_message


# ---------------------------------------------------------------------------
# SDK client
# ---------------------------------------------------------------------------


def _fake_sdk(response=None, exc=None):
    calls = []

    def generate_content(**kwargs):
        calls.append(kwargs)
        if exc is not None:
            raise exc
        return response

    return SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)), calls


def test_sdk_client_success():
    fake, calls = _fake_sdk(SimpleNamespace(text="4", prompt_feedback=None, candidates=[]))
    client = GeminiClient(client=fake, safety={"hate_speech": "BLOCK_ONLY_HIGH"})

    result = client.generate(HISTORY, PARAMS)

    assert result == GenerationResult(success=True, generated_text="4", http_status_code=200)
    call = calls[0]
    assert call["model"] == "gemini-test"
    assert [c.role for c in call["contents"]] == ["user", "model", "user"]
    assert call["contents"][2].parts[0].text == "What is 2+2?"
    assert call["config"].temperature == 0.2
    assert call["config"].max_output_tokens == 64
    assert len(call["config"].safety_settings) == 1


def test_sdk_client_api_error_keeps_status_code():
    exc = errors.ClientError(
        429, {"error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}}
    )
    fake, _ = _fake_sdk(exc=exc)

    result = GeminiClient(client=fake).generate(HISTORY, PARAMS)

    assert result.success is False
    assert result.http_status_code == 429
    assert "Resource exhausted" in result.error_message


def test_sdk_client_unexpected_exception_is_mapped():
    fake, _ = _fake_sdk(exc=TimeoutError("timed out"))

    result = GeminiClient(client=fake).generate(HISTORY, PARAMS)

    assert result.success is False
    assert result.http_status_code == 0
    assert "timed out" in result.error_message


@pytest.mark.parametrize(
    "response, message",
    [
        (
            SimpleNamespace(
                text=None,
                prompt_feedback=SimpleNamespace(block_reason=types.BlockedReason.SAFETY),
                candidates=[],
            ),
            "Prompt blocked due to safety reasons: SAFETY",
        ),
        (
            SimpleNamespace(
                text=None,
                prompt_feedback=None,
                candidates=[SimpleNamespace(finish_reason=types.FinishReason.SAFETY)],
            ),
            "Response blocked due to safety reasons.",
        ),
        (
            SimpleNamespace(text=None, prompt_feedback=None, candidates=None),
            "Unexpected API response format.",
        ),
    ],
)
def test_sdk_client_blocked_or_empty_responses(response, message):
    fake, _ = _fake_sdk(response)

    result = GeminiClient(client=fake).generate(HISTORY, PARAMS)

    assert result.success is False
    assert result.error_message == message
