"""
gemini.py — Generation collaborators backed by Google Gemini.

Agents hand a conversation history and their LLM parameters to a
GenerationClient and get a GenerationResult back. Transport problems,
API errors and safety blocks are all folded into a failed result so
nothing raises past ``generate()``.

Two transports are available:

- ``GeminiClient`` uses the ``google-genai`` SDK.
- ``GeminiRestClient`` posts directly to the ``generateContent`` REST
  endpoint with ``requests`` and parses the JSON body itself.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests
from google import genai
from google.genai import errors, types

DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/"

# base_config.json "safety" keys -> Gemini harm categories
SAFETY_CATEGORIES: dict[str, str] = {
    "harassment": "HARM_CATEGORY_HARASSMENT",
    "hate_speech": "HARM_CATEGORY_HATE_SPEECH",
    "sexually_explicit": "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "dangerous_content": "HARM_CATEGORY_DANGEROUS_CONTENT",
}

# Truncation length for raw bodies quoted in error messages
_RAW_SNIPPET = 500


@dataclass(frozen=True)
class LLMParameters:
    """Generation settings fixed for the lifetime of an agent."""

    model: str = "gemini-2.0-flash"
    temperature: float = 0.7
    top_p: float = 1.0
    top_k: int = 0
    max_output_tokens: int = 800
    max_history_turns: int = 5
    instructions: str = ""

    def to_record(self) -> dict:
        """Render as the ``llm_params`` block of a generation request."""
        return {
            "model": self.model,
            "instructions": self.instructions,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "max_output_tokens": self.max_output_tokens,
            "max_history_turns": self.max_history_turns,
        }


@dataclass
class GenerationResult:
    """Outcome of one call to the generation service."""

    success: bool = False
    generated_text: str = ""
    error_message: str = ""
    http_status_code: int = 0

    def to_record(self) -> dict:
        """Render as a response record."""
        if self.success:
            return {
                "success": True,
                "generated_text": self.generated_text,
                "http_status_code": self.http_status_code,
            }
        return {
            "success": False,
            "error_message": self.error_message,
            "http_status_code": self.http_status_code,
        }


class GenerationClient(ABC):
    """Turns a conversation history into generated text."""

    @abstractmethod
    def generate(self, history: list[dict], params: LLMParameters) -> GenerationResult:
        """Run one blocking generation call.

        Args:
            history: Turns (``{"role": "user"|"model", "text": str}``),
                     oldest first, ending with the user turn to answer.
            params: Model and sampling parameters.

        Returns:
            GenerationResult; failures never raise.
        """
        ...


def build_generation_config(params: LLMParameters) -> dict:
    """Build the REST ``generationConfig`` block."""
    config = {
        "temperature": params.temperature,
        "topP": params.top_p,
        "maxOutputTokens": params.max_output_tokens,
    }
    # topK of 0 means "service default"
    if params.top_k > 0:
        config["topK"] = params.top_k
    return config


def build_request_body(
    history: list[dict],
    params: LLMParameters,
    safety: dict[str, str] | None = None,
) -> dict:
    """Build the JSON body for a ``generateContent`` REST call."""
    body = {
        "contents": [
            {"role": turn["role"], "parts": [{"text": turn["text"]}]}
            for turn in history
        ],
        "generationConfig": build_generation_config(params),
    }
    if safety:
        body["safetySettings"] = [
            {"category": SAFETY_CATEGORIES[key], "threshold": threshold}
            for key, threshold in safety.items()
            if key in SAFETY_CATEGORIES
        ]
    return body


def parse_gemini_response(raw: str, status_code: int = 0) -> GenerationResult:
    """Extract generated text (or the reason there is none) from a REST body.

    ``status_code`` is the HTTP status of the response; when it signals an
    error and the body carries no usable error object, the message quotes
    the start of the raw body instead.
    """
    result = GenerationResult(http_status_code=status_code)
    http_failure = (
        f"API call failed with HTTP {status_code}. "
        f"Raw response: {raw[:_RAW_SNIPPET]}..."
    )
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        result.error_message = (
            http_failure if status_code >= 400 else f"JSON parsing error: {e}"
        )
        return result

    if not isinstance(parsed, dict):
        result.error_message = (
            http_failure if status_code >= 400 else "Unexpected API response format."
        )
        return result

    if "error" in parsed:
        error = parsed["error"] if isinstance(parsed["error"], dict) else {}
        result.error_message = error.get("message") or "Unknown API error."
        if isinstance(error.get("code"), int):
            result.http_status_code = error["code"]
        return result

    candidates = parsed.get("candidates")
    if isinstance(candidates, list) and candidates:
        first = candidates[0] if isinstance(candidates[0], dict) else {}
        text = _first_part_text(first)
        if text is not None:
            result.generated_text = text
            result.success = True
        elif first.get("finishReason") == "SAFETY":
            result.error_message = "Response blocked due to safety reasons."
        else:
            result.error_message = (
                "Response candidate does not contain valid 'content' or 'parts'."
            )
        return result

    feedback = parsed.get("promptFeedback")
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    if block_reason:
        result.error_message = f"Prompt blocked due to safety reasons: {block_reason}"
        return result

    result.error_message = (
        http_failure if status_code >= 400 else "Unexpected API response format."
    )
    return result


def _first_part_text(candidate: dict) -> str | None:
    """Return the text of a candidate's first part, or None if it has none."""
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


def log_api_call(agent_id: str, request: object, response: object, result: GenerationResult) -> None:
    """Log one API round trip at DEBUG level."""
    if not logging.getLogger().isEnabledFor(logging.DEBUG):
        return
    logging.debug("--- API call for %s ---", agent_id)
    logging.debug("Request: %s", request)
    logging.debug("Response: %s", response)
    if result.success:
        logging.debug("Status: SUCCESS (HTTP %d)", result.http_status_code)
    else:
        logging.debug(
            "Status: FAILED (HTTP %d) %s", result.http_status_code, result.error_message
        )


class GeminiRestClient(GenerationClient):
    """Calls the Gemini REST endpoint with ``requests``."""

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        safety: dict[str, str] | None = None,
        timeout: float = 60,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.api_url = api_url if api_url.endswith("/") else api_url + "/"
        self.safety = safety or {}
        self.timeout = timeout
        self.session = session or requests.Session()

    def generate(self, history: list[dict], params: LLMParameters) -> GenerationResult:
        url = f"{self.api_url}{params.model}:generateContent"
        body = build_request_body(history, params, self.safety)

        try:
            resp = self.session.post(
                url,
                json=body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logging.warning("Gemini REST request failed: %s", e)
            return GenerationResult(error_message=f"Request failed: {e}")

        result = parse_gemini_response(resp.text, resp.status_code)
        log_api_call(params.model, body, resp.text, result)
        return result


class GeminiClient(GenerationClient):
    """Calls Gemini through the ``google-genai`` SDK."""

    def __init__(
        self,
        api_key: str | None = None,
        safety: dict[str, str] | None = None,
        client: genai.Client | None = None,
    ):
        self.client = client or genai.Client(api_key=api_key)
        self.safety = safety or {}

    def _config(self, params: LLMParameters) -> types.GenerateContentConfig:
        safety_settings = [
            types.SafetySetting(category=SAFETY_CATEGORIES[key], threshold=threshold)
            for key, threshold in self.safety.items()
            if key in SAFETY_CATEGORIES
        ]
        return types.GenerateContentConfig(
            temperature=params.temperature,
            top_p=params.top_p,
            top_k=params.top_k if params.top_k > 0 else None,
            max_output_tokens=params.max_output_tokens,
            safety_settings=safety_settings or None,
        )

    def generate(self, history: list[dict], params: LLMParameters) -> GenerationResult:
        contents = [
            types.Content(role=turn["role"], parts=[types.Part(text=turn["text"])])
            for turn in history
        ]

        try:
            response = self.client.models.generate_content(
                model=params.model,
                contents=contents,
                config=self._config(params),
            )
        except errors.APIError as e:
            logging.error("Gemini API error (%s): %s", e.code, e.message)
            return GenerationResult(
                error_message=e.message or str(e),
                http_status_code=e.code or 0,
            )
        except Exception as e:
            logging.error("Gemini request failed: %s", e)
            return GenerationResult(error_message=f"Request failed: {e}")

        result = self._result_from_response(response)
        log_api_call(params.model, history, response, result)
        return result

    @staticmethod
    def _result_from_response(response) -> GenerationResult:
        text = response.text
        if text:
            return GenerationResult(success=True, generated_text=text, http_status_code=200)

        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            reason = getattr(block_reason, "value", block_reason)
            return GenerationResult(
                error_message=f"Prompt blocked due to safety reasons: {reason}",
                http_status_code=200,
            )

        candidates = getattr(response, "candidates", None) or []
        if candidates and candidates[0].finish_reason == types.FinishReason.SAFETY:
            return GenerationResult(
                error_message="Response blocked due to safety reasons.",
                http_status_code=200,
            )

        return GenerationResult(
            error_message="Unexpected API response format.",
            http_status_code=200,
        )
