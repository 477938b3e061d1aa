from .healthchecks import (
    CheckPayload,
    CheckResponse,
    ChecksListResponse,
    ChannelResponse,
    ChannelsListResponse,
)

__all__ = [
    "CheckPayload",
    "CheckResponse",
    "ChecksListResponse",
    "ChannelResponse",
    "ChannelsListResponse",
]
