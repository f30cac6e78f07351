from .stream import EventStream, StreamEvent

__all__ = ["EventStream", "StreamEvent"]
