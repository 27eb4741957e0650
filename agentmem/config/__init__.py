"""Configuration module for agentmem."""
