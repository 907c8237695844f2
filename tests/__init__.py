"""Test suite for synapse."""
