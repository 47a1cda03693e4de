"""Reconstruct typed text from raw keystroke events.

Reconstruction is lossy (paste events, IME composition, selection edits are
invisible at this level), so its output is only used for fields that have no
captured or observed value.
"""

from collections.abc import Iterable

from .recording import Action, ActionKind


# Keys that delete the character before the caret
_DELETE_KEYS = frozenset({"Backspace"})


def reconstruct_typed_text(actions: Iterable[Action]) -> dict[str, str]:
    """Rebuild the text typed into each field from focus/keydown/blur events.

    Args:
        actions: Actions in recording order.

    Returns:
        Mapping from field key to the reconstructed text. Fields that were
        focused but never typed into are omitted.
    """
    typed: dict[str, list[str]] = {}
    current: str | None = None

    for action in actions:
        if action.kind == ActionKind.FOCUS:
            key = action.target.field_key if action.target else ""
            current = key or None
            if current is not None:
                typed.setdefault(current, [])
        elif action.kind == ActionKind.KEYDOWN and current is not None and action.key:
            if len(action.key) == 1:
                typed[current].append(action.key)
            elif action.key in _DELETE_KEYS and typed[current]:
                typed[current].pop()
        elif action.kind in (ActionKind.BLUR, ActionKind.NAVIGATE):
            current = None

    return {key: "".join(chars) for key, chars in typed.items() if chars}
