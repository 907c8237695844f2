#!/usr/bin/env python3
"""
app.py — Application entrypoint.

Sets up logging, validates environment, loads the base config and agent
definitions, registers every node with a Router, and starts the console
conversation loop.
"""

import logging
import sys

from dotenv import load_dotenv

from .config import (
    BaseConfig,
    ConfigError,
    Settings,
    load_agent_configs,
    load_base_config,
    load_settings,
)
from .console import Console
from .gemini import GeminiClient, GeminiRestClient, GenerationClient
from .nodes import Agent, CommunicatorNode, InterAgentFormatter
from .router import Router

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def build_client(settings: Settings, base: BaseConfig) -> GenerationClient:
    """Create the generation client for the configured transport."""
    if settings.transport == "rest":
        return GeminiRestClient(
            api_key=settings.api_key,
            api_url=base.api_url,
            safety=base.safety,
            timeout=settings.timeout,
        )
    return GeminiClient(api_key=settings.api_key, safety=base.safety)


def build_router(settings: Settings, base: BaseConfig, client: GenerationClient) -> Router:
    """Register the communicator, the formatter and every configured agent."""
    router = Router()

    communicator = CommunicatorNode(client, defaults=base.defaults)
    router.register_node(communicator.node_id, communicator)

    formatter = InterAgentFormatter()
    router.register_node(formatter.node_id, formatter)

    for agent_config in load_agent_configs(settings.agents_dir, base.defaults):
        agent = Agent(agent_config.id, agent_config.name, agent_config.params, client)
        router.register_node(agent.node_id, agent)
        logging.info(
            "Loaded agent '%s' (ID: %s) from %s",
            agent_config.name,
            agent_config.id,
            agent_config.source.name if agent_config.source else "<inline>",
        )

    return router


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        base = load_base_config(settings.base_config_path)
        router = build_router(settings, base, build_client(settings, base))
    except ConfigError as e:
        logging.critical("%s", e)
        sys.exit(1)

    agent_id = settings.default_agent
    if not isinstance(router.get(agent_id), Agent):
        agents = [i for i in router.node_ids() if isinstance(router.get(i), Agent)]
        if not agents:
            logging.critical("No agents loaded from %s", settings.agents_dir)
            sys.exit(1)
        logging.warning("Default agent '%s' not found, using '%s'", agent_id, agents[0])
        agent_id = agents[0]

    logging.info("⚡️ Synapse starting up with %d node(s)...", len(router))
    Console(router, agent_id).run()


if __name__ == "__main__":
    main()
