"""
Testing suite for the fleet agent.

This package contains tests for all components:
- Unit tests for individual modules
- Integration tests for agent runtime and supervisor behavior
- Fixture documents and fake processes for testing without a world server
"""
