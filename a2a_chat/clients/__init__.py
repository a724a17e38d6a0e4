"""Gateway client modules.

Contains the ProtocolClient, the stream block decoder and the stream event
types it yields.
"""
from .events import PartsReceived, StreamDone, StreamEvent, StreamFailed, Working
from .protocol import ProtocolClient, SendResult, StreamCallbacks, StreamHandle
from .sse import SSEBlockDecoder

__all__ = [
    "PartsReceived",
    "StreamDone",
    "StreamEvent",
    "StreamFailed",
    "Working",
    "ProtocolClient",
    "SendResult",
    "StreamCallbacks",
    "StreamHandle",
    "SSEBlockDecoder",
]
