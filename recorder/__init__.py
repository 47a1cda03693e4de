"""Recording module for browser interaction captures.

This module provides:
- Recording: Immutable value holding one captured session
- Action / Target / CapturedInput: The events and fields inside a recording
- reconstruct_typed_text: Keystroke-level text reconstruction
"""

from .recording import (
    Action,
    ActionKind,
    CapturedInput,
    ConsoleLogEntry,
    DomSnapshot,
    NetworkEvent,
    Recording,
    Target,
    VALUE_KINDS,
)
from .keystrokes import reconstruct_typed_text

__all__ = [
    "Action",
    "ActionKind",
    "CapturedInput",
    "ConsoleLogEntry",
    "DomSnapshot",
    "NetworkEvent",
    "Recording",
    "Target",
    "VALUE_KINDS",
    "reconstruct_typed_text",
]
