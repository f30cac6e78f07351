from .client import ReconnectingChannelClient
from .hub import ChannelHub, resolve_role
from .protocol import ChannelMessage, decode_frame, encode_message, make_message

__all__ = [
    "ReconnectingChannelClient",
    "ChannelHub",
    "resolve_role",
    "ChannelMessage",
    "decode_frame",
    "encode_message",
    "make_message",
]
