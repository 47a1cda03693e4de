"""Essential-data reduction of a Recording.

Turns a possibly multi-megabyte Recording into a small, bounded summary that
is safe to embed in a prompt and cheap to run rules over. The reduction is a
pure function of its input.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, TYPE_CHECKING
from urllib.parse import urlsplit

from recorder import ActionKind, CapturedInput, Recording, reconstruct_typed_text
from recorder.recording import Action

if TYPE_CHECKING:
    from utils.logger import CompileLogger


# Action kinds that describe what the user did (everything else is noise)
KEPT_KINDS = frozenset({
    ActionKind.CLICK,
    ActionKind.INPUT,
    ActionKind.TYPE,
    ActionKind.FILL,
    ActionKind.NAVIGATE,
    ActionKind.SUBMIT,
    ActionKind.SELECT,
})

DEFAULT_BUDGET = 40_000  # bytes of JSON
MAX_API_PATTERNS = 10
MAX_ERRORS = 5
ERROR_CHARS = 200
API_MARKERS = ("/api/", "/v1/", "/v2/", "/graphql")


@dataclass(frozen=True)
class ReductionLimits:
    """Per-field truncation caps for one reduction pass."""

    max_actions: int = 100
    selector_chars: int = 200
    attr_chars: int = 100  # id, name, placeholder
    url_chars: int = 300
    text_chars: int = 50
    value_chars: int = 100
    max_inputs: int = 50  # entries per captured / extracted / reconstructed map


DEFAULT_LIMITS = ReductionLimits()
RETRY_LIMITS = ReductionLimits(
    max_actions=50, selector_chars=80, attr_chars=60, url_chars=120, value_chars=60, max_inputs=10,
)


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value if len(value) <= limit else value[:limit]


def _json_size(data: Any) -> int:
    return len(json.dumps(data, ensure_ascii=False).encode("utf-8"))


@dataclass(frozen=True)
class ReducedAction:
    """A kept action with only the fields a reader of the workflow needs."""

    kind: str
    timestamp: float
    url: str | None = None
    selector: str | None = None
    text: str | None = None
    id: str | None = None
    name: str | None = None
    placeholder: str | None = None
    input_type: str | None = None
    tag_name: str | None = None
    value: str | None = None

    @property
    def field_key(self) -> str:
        return self.id or self.name or self.selector or self.placeholder or ""

    @property
    def fallback_key(self) -> str:
        """Key for a target with no locator: its visible label, else its tag."""
        label = " ".join((self.text or "").split())
        return label or (self.tag_name or "field").lower()

    def to_dict(self) -> dict:
        d = {
            "type": self.kind,
            "timestamp": self.timestamp,
            "url": self.url,
            "selector": self.selector,
            "text": self.text,
            "id": self.id,
            "name": self.name,
            "placeholder": self.placeholder,
            "inputType": self.input_type,
            "tagName": self.tag_name,
            "value": self.value,
        }
        return {k: v for k, v in d.items() if v is not None}

    @classmethod
    def from_action(cls, action: Action, limits: ReductionLimits) -> "ReducedAction":
        target = action.target
        return cls(
            kind=action.kind,
            timestamp=action.timestamp,
            url=_truncate(action.url, limits.url_chars),
            selector=_truncate(target.selector if target else None, limits.selector_chars),
            text=_truncate(target.text if target else None, limits.text_chars),
            id=_truncate(target.id if target else None, limits.attr_chars),
            name=_truncate(target.name if target else None, limits.attr_chars),
            placeholder=_truncate(target.placeholder if target else None, limits.attr_chars),
            input_type=target.input_type if target else None,
            tag_name=target.tag_name if target else None,
            value=_truncate(action.observed_value, limits.value_chars),
        )


@dataclass(frozen=True)
class SnapshotMeta:
    """DOM snapshot metadata. The HTML itself is never kept."""

    timestamp: float
    url: str | None = None
    title: str | None = None

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "url": self.url, "title": self.title}


@dataclass(frozen=True)
class ReducedRecording:
    """Bounded summary of a Recording plus a small size report."""

    session_id: str
    url: str
    title: str = ""
    duration: float = 0.0
    viewport: dict[str, Any] = field(default_factory=dict)
    user_agent: str | None = None
    actions: tuple[ReducedAction, ...] = ()
    captured_inputs: dict[str, CapturedInput] = field(default_factory=dict)
    extracted_inputs: dict[str, str] = field(default_factory=dict)
    reconstructed_inputs: dict[str, str] = field(default_factory=dict)
    snapshots: tuple[SnapshotMeta, ...] = ()
    api_patterns: tuple[str, ...] = ()
    errors: tuple[dict[str, str], ...] = ()
    total_actions: int = 0

    # Report (not part of the payload)
    original_bytes: int = 0
    reduced_bytes: int = 0
    overflow: bool = False

    @property
    def ratio(self) -> float:
        """Reduced size as a fraction of the original size."""
        if not self.original_bytes:
            return 1.0
        return self.reduced_bytes / self.original_bytes

    def to_dict(self) -> dict:
        """The payload sent to the analysis service. Empty sections are omitted."""
        d: dict[str, Any] = {
            "sessionId": self.session_id,
            "url": self.url,
            "title": self.title,
            "duration": self.duration,
            "totalActions": self.total_actions,
            "actions": [a.to_dict() for a in self.actions],
        }
        if self.viewport:
            d["viewport"] = self.viewport
        if self.user_agent:
            d["userAgent"] = self.user_agent
        if self.captured_inputs:
            d["capturedInputs"] = {k: c.to_dict() for k, c in self.captured_inputs.items()}
        if self.extracted_inputs:
            d["extractedInputs"] = dict(self.extracted_inputs)
        if self.reconstructed_inputs:
            d["reconstructedInputs"] = dict(self.reconstructed_inputs)
        if self.snapshots:
            d["domSnapshots"] = [s.to_dict() for s in self.snapshots]
        if self.api_patterns:
            d["apiPatterns"] = list(self.api_patterns)
        if self.errors:
            d["errors"] = list(self.errors)
        return d

    def report(self) -> dict[str, Any]:
        return {
            "total_actions": self.total_actions,
            "kept_actions": len(self.actions),
            "original_bytes": self.original_bytes,
            "reduced_bytes": self.reduced_bytes,
            "ratio": round(self.ratio, 4),
            "overflow": self.overflow,
        }


def _viewport(raw: dict[str, Any]) -> dict[str, Any]:
    return {k: raw[k] for k in ("width", "height") if isinstance(raw.get(k), (int, float))}


def _api_patterns(recording: Recording) -> tuple[str, ...]:
    """Distinct ``host/first/segments`` strings for API-looking requests."""
    patterns: list[str] = []
    for event in recording.network.values():
        if not any(marker in event.url for marker in API_MARKERS):
            continue
        parts = urlsplit(event.url)
        if not parts.hostname:
            continue
        prefix = "/".join(parts.path.split("/")[:3])
        pattern = f"{parts.hostname}{prefix}"
        if pattern not in patterns:
            patterns.append(pattern)
            if len(patterns) == MAX_API_PATTERNS:
                break
    return tuple(patterns)


def _errors(recording: Recording) -> tuple[dict[str, str], ...]:
    errors = []
    for entries in recording.console.values():
        for entry in entries:
            if entry.level in ("error", "warning"):
                errors.append({"level": entry.level, "message": entry.text[:ERROR_CHARS]})
                if len(errors) == MAX_ERRORS:
                    return tuple(errors)
    return tuple(errors)


def _snapshots(recording: Recording, limits: ReductionLimits) -> tuple[SnapshotMeta, ...]:
    snaps = recording.dom_snapshots
    if not snaps:
        return ()
    chosen = (snaps[0],) if len(snaps) == 1 else (snaps[0], snaps[-1])
    return tuple(
        SnapshotMeta(
            timestamp=s.timestamp,
            url=_truncate(s.url, limits.url_chars),
            title=_truncate(s.title, limits.selector_chars),
        )
        for s in chosen
    )


def _cap_inputs(
    entries: dict[str, Any],
    touched: set[str],
    limits: ReductionLimits,
) -> list[tuple[str, Any]]:
    """At most ``max_inputs`` entries, fields of kept actions first, recording order otherwise."""
    first = [(k, v) for k, v in entries.items() if k in touched or f"#{k}" in touched]
    if len(first) >= limits.max_inputs:
        return first[:limits.max_inputs]
    rest = [(k, v) for k, v in entries.items() if not (k in touched or f"#{k}" in touched)]
    return first + rest[:limits.max_inputs - len(first)]


def _reduce_pass(recording: Recording, limits: ReductionLimits) -> ReducedRecording:
    kept = []
    for action in recording.actions:
        if action.kind in KEPT_KINDS:
            kept.append(ReducedAction.from_action(action, limits))
            if len(kept) == limits.max_actions:
                break

    touched = {a for action in kept for a in (action.id, action.name, action.selector, action.placeholder) if a}

    captured = {
        _truncate(key, limits.selector_chars): replace(
            entry,
            value=entry.value[:limits.value_chars],
            url=_truncate(entry.url, limits.url_chars),
        )
        for key, entry in _cap_inputs(recording.captured_inputs, touched, limits)
    }
    extracted = {
        _truncate(key, limits.selector_chars): value[:limits.value_chars]
        for key, value in _cap_inputs(recording.extracted_inputs, touched, limits)
    }
    reconstructed = {
        _truncate(key, limits.selector_chars): text[:limits.value_chars]
        for key, text in _cap_inputs(reconstruct_typed_text(recording.actions), touched, limits)
    }

    return ReducedRecording(
        session_id=recording.session_id,
        url=_truncate(recording.url, limits.url_chars) or "",
        title=_truncate(recording.title, limits.selector_chars) or "",
        duration=recording.duration,
        viewport=_viewport(recording.viewport),
        user_agent=_truncate(recording.user_agent, limits.selector_chars),
        actions=tuple(kept),
        captured_inputs=captured,
        extracted_inputs=extracted,
        reconstructed_inputs=reconstructed,
        snapshots=_snapshots(recording, limits),
        api_patterns=_api_patterns(recording),
        errors=_errors(recording),
        total_actions=len(recording.actions),
    )


def reduce(
    recording: Recording | dict,
    budget: int = DEFAULT_BUDGET,
    limits: ReductionLimits = DEFAULT_LIMITS,
    retry_limits: ReductionLimits = RETRY_LIMITS,
    logger: "CompileLogger | None" = None,
) -> ReducedRecording:
    """Reduce a recording to a bounded summary.

    If the first pass is over ``budget`` a second, tighter pass is made. If
    that is still over budget the result is returned with ``overflow`` set;
    callers that need a bounded payload must check it.

    Args:
        recording: Recording value or its raw JSON object.
        budget: Maximum size of the reduced payload in bytes of JSON.
        limits: Caps for the first pass.
        retry_limits: Caps for the second pass.
        logger: Optional logger for the reduction ratio.

    Returns:
        The reduced recording, with its size report filled in.
    """
    if not isinstance(recording, Recording):
        recording = Recording.from_dict(recording)

    original_bytes = _json_size(recording.to_dict())

    reduced = _reduce_pass(recording, limits)
    size = _json_size(reduced.to_dict())

    if size > budget:
        if logger:
            logger.warning(
                f"Reduction is {size:,} bytes (budget {budget:,}), retrying with tighter caps"
            )
        reduced = _reduce_pass(recording, retry_limits)
        size = _json_size(reduced.to_dict())

    overflow = size > budget
    if overflow and logger:
        logger.warning(f"Reduction still over budget after retry: {size:,} bytes")

    reduced = replace(reduced, original_bytes=original_bytes, reduced_bytes=size, overflow=overflow)

    if logger:
        logger.info(
            f"Reduced recording from {original_bytes / 1024:.1f}KB to {size / 1024:.1f}KB "
            f"({reduced.ratio * 100:.1f}%)"
        )

    return reduced
