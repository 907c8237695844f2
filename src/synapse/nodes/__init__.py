"""
nodes — Routable processing units.

To add a new node:
1. Create a new module in this package
2. Subclass Node and implement push()
3. Register the instance with the Router in app.py

Every node is addressed only by its id; records travel between nodes as
plain dicts, copied at each hop.
"""

from .agent import Agent
from .base import Node
from .communicator import CommunicatorNode
from .formatter import InterAgentFormatter

__all__ = ["Agent", "CommunicatorNode", "InterAgentFormatter", "Node"]
