"""LLM-facing tool layer."""

from janus.agent.tools import create_calendar_mcp, register_calendar_tools

__all__ = ["create_calendar_mcp", "register_calendar_tools"]
