"""REST API over the calendar provider layer."""

from janus.api.app import create_app

__all__ = ["create_app"]
