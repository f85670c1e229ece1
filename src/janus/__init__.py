"""Janus: one calendar interface over Google Calendar and Microsoft Graph."""

__version__ = "0.1.0"
