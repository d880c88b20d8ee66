"""ntfy-compatible broadcast relay for local play."""

from .api import ChannelHub, RelayEvent, create_app

__all__ = ["ChannelHub", "create_app", "RelayEvent"]
