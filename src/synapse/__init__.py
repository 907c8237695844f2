"""
synapse — Route structured records between processing units.

Nodes register with a Router under string ids; the Router pushes
records into them one at a time, through ordered pipelines, or to many
at once. Agents are nodes that hold a bounded Gemini conversation.
"""

from .gemini import GenerationClient, GenerationResult, LLMParameters
from .nodes import Agent, CommunicatorNode, InterAgentFormatter, Node
from .router import Router

__all__ = [
    "Agent",
    "CommunicatorNode",
    "GenerationClient",
    "GenerationResult",
    "InterAgentFormatter",
    "LLMParameters",
    "Node",
    "Router",
]
