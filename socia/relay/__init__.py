"""Real-time relay: connection registry, frame codec and relay engine."""

from .connection import CLOSE_POLICY_VIOLATION, CLOSE_REPLACED, ClientConnection
from .engine import RelayEngine
from .frames import (
    ConnectFrame,
    DisconnectFrame,
    MessageFrame,
    ReadFrame,
    TypingFrame,
    decode_frame,
)
from .registry import ConnectionRegistry

__all__ = [
    "CLOSE_POLICY_VIOLATION",
    "CLOSE_REPLACED",
    "ClientConnection",
    "ConnectFrame",
    "ConnectionRegistry",
    "DisconnectFrame",
    "MessageFrame",
    "ReadFrame",
    "RelayEngine",
    "TypingFrame",
    "decode_frame",
]
