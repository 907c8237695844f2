"""
config.py — Environment settings and on-disk agent definitions.

Settings come from environment variables (a ``.env`` file is loaded by
the entrypoint). Agents are defined one per JSON file in the agents
directory::

    {
      "id": "general_assistant",
      "name": "General Assistant",
      "parameters": {
        "model": "gemini-2.0-flash",
        "temperature": 0.7,
        "top_p": 0.95,
        "top_k": 40,
        "max_output_tokens": 800,
        "max_history_turns": 5,
        "instructions": "You are a helpful assistant."
      }
    }

Values missing from an agent's ``parameters`` fall back to the
``defaults`` block of ``base_config.json``.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .gemini import SAFETY_CATEGORIES, LLMParameters

TRANSPORTS = ("sdk", "rest")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# agent JSON "parameters" keys, named as the LLMParameters fields
_PARAMETER_KEYS = (
    "model",
    "temperature",
    "top_p",
    "top_k",
    "max_output_tokens",
    "max_history_turns",
    "instructions",
)

_NUMERIC_TYPES = {
    "temperature": float,
    "top_p": float,
    "top_k": int,
    "max_output_tokens": int,
    "max_history_turns": int,
}


class ConfigError(Exception):
    """Raised when configuration is missing or unusable."""


@dataclass(frozen=True)
class Settings:
    """Process settings read from the environment."""

    api_key: str
    base_config_path: Path = Path("base_config.json")
    agents_dir: Path = Path("agents")
    transport: str = "sdk"
    timeout: float = 60
    default_agent: str = "general_assistant"
    log_level: str = "INFO"


@dataclass(frozen=True)
class BaseConfig:
    """Contents of ``base_config.json``."""

    api_url: str
    defaults: LLMParameters = field(default_factory=LLMParameters)
    safety: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentConfig:
    """One agent definition loaded from the agents directory."""

    id: str
    name: str
    params: LLMParameters
    source: Path | None = None


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Raises:
        ConfigError: if GEMINI_API_KEY is unset or a value is invalid.
    """
    env = os.environ if environ is None else environ

    api_key = env.get("GEMINI_API_KEY", "").strip()
    if not api_key:
        raise ConfigError(
            "GEMINI_API_KEY environment variable not set or is empty. "
            "Set it in your shell or in a .env file."
        )

    transport = env.get("GEMINI_TRANSPORT", "sdk").strip().lower() or "sdk"
    if transport not in TRANSPORTS:
        raise ConfigError(
            f"GEMINI_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got '{transport}'"
        )

    try:
        timeout = float(env.get("GEMINI_TIMEOUT", "60"))
    except ValueError as e:
        raise ConfigError(f"GEMINI_TIMEOUT is not a number: {e}") from e

    log_level = env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if log_level not in LOG_LEVELS:
        raise ConfigError(
            f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{log_level}'"
        )

    return Settings(
        api_key=api_key,
        base_config_path=Path(env.get("SYNAPSE_BASE_CONFIG", "base_config.json")),
        agents_dir=Path(env.get("SYNAPSE_AGENTS_DIR", "agents")),
        transport=transport,
        timeout=timeout,
        default_agent=env.get("SYNAPSE_DEFAULT_AGENT", "general_assistant"),
        log_level=log_level,
    )


def load_base_config(path: Path) -> BaseConfig:
    """Read the API URL, default LLM parameters and safety thresholds.

    Raises:
        ConfigError: if the file is missing, unparsable, or has no api_url.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Base configuration file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read base configuration {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("api_url"), str):
        raise ConfigError(f"'api_url' not found in base config file: {path}")

    try:
        defaults = _merge_parameters(LLMParameters(), data.get("defaults") or {})
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'defaults' in {path}: {e}") from e

    safety = data.get("safety") or {}
    if not isinstance(safety, dict):
        raise ConfigError(f"'safety' in {path} must be an object")
    unknown = set(safety) - set(SAFETY_CATEGORIES)
    if unknown:
        logging.warning(
            "Ignoring unknown safety categories in %s: %s", path, ", ".join(sorted(unknown))
        )

    return BaseConfig(
        api_url=data["api_url"],
        defaults=defaults,
        safety={k: str(v) for k, v in safety.items() if k in SAFETY_CATEGORIES},
    )


def load_agent_configs(
    agents_dir: Path, defaults: LLMParameters | None = None
) -> list[AgentConfig]:
    """Load every ``*.json`` agent definition in ``agents_dir``.

    Files that cannot be read or are missing required fields are logged
    and skipped.

    Raises:
        ConfigError: if ``agents_dir`` is not a directory.
    """
    agents_dir = Path(agents_dir)
    if not agents_dir.is_dir():
        raise ConfigError(
            f"Agent configuration directory '{agents_dir}' not found or is not a directory"
        )

    defaults = defaults or LLMParameters()
    configs: list[AgentConfig] = []
    for path in sorted(agents_dir.glob("*.json")):
        if not path.is_file():
            continue
        logging.info("Found agent config file: %s", path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            configs.append(parse_agent_config(data, defaults, source=path))
        except (OSError, json.JSONDecodeError) as e:
            logging.error("Could not read agent config %s: %s", path, e)
        except (KeyError, TypeError, ValueError) as e:
            logging.error("Missing or invalid field in agent config %s: %s", path, e)

    logging.info("Loaded %d agent definition(s) from %s", len(configs), agents_dir)
    return configs


def parse_agent_config(
    data: dict, defaults: LLMParameters, source: Path | None = None
) -> AgentConfig:
    """Validate one agent definition.

    Raises:
        KeyError: if ``id``, ``name``, ``parameters`` or
                  ``parameters.instructions`` is missing.
        TypeError / ValueError: if a value has the wrong type.
    """
    if not isinstance(data, dict):
        raise TypeError("agent definition must be a JSON object")

    agent_id = data["id"]
    name = data["name"]
    if not isinstance(agent_id, str) or not agent_id:
        raise ValueError("'id' must be a non-empty string")
    if not isinstance(name, str):
        raise TypeError("'name' must be a string")

    parameters = data["parameters"]
    if not isinstance(parameters, dict):
        raise TypeError("'parameters' must be an object")
    if not isinstance(parameters["instructions"], str):
        raise TypeError("'instructions' must be a string")

    return AgentConfig(
        id=agent_id,
        name=name,
        params=_merge_parameters(defaults, parameters),
        source=source,
    )


def _merge_parameters(base: LLMParameters, values: dict) -> LLMParameters:
    if not isinstance(values, dict):
        raise TypeError("parameters must be an object")
    updates = {}
    for key in _PARAMETER_KEYS:
        if key not in values:
            continue
        value = values[key]
        if key in _NUMERIC_TYPES:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"'{key}' must be a number")
            value = _NUMERIC_TYPES[key](value)
        elif not isinstance(value, str):
            raise TypeError(f"'{key}' must be a string")
        updates[key] = value
    return dataclasses.replace(base, **updates)
