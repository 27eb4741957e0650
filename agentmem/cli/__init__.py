"""CLI module for agentmem."""
