"""API helper utilities."""
from api.helpers.event_stream import bookmark_event_stream, format_sse

__all__ = [
    "bookmark_event_stream",
    "format_sse",
]
