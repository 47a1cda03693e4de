"""Data model for a captured browser session.

A Recording is produced once by the in-page capture script and handed to the
compiler read-only. All types here are frozen; downstream code treats a
Recording as a value.
"""

import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


# Console entries carrying this tag hold a JSON payload describing a captured input
RECORDER_DATA_TAG = "[RECORDER-DATA]"


class ActionKind(StrEnum):
    """Kinds of user events the capture script reports."""

    CLICK = "click"
    INPUT = "input"
    TYPE = "type"
    FILL = "fill"
    CHANGE = "change"
    SELECT = "select"
    SUBMIT = "submit"
    FOCUS = "focus"
    BLUR = "blur"
    NAVIGATE = "navigate"
    KEYDOWN = "keydown"
    KEYUP = "keyup"


# Kinds that carry a value typed or chosen by the user
VALUE_KINDS = frozenset({ActionKind.INPUT, ActionKind.TYPE, ActionKind.FILL, ActionKind.SELECT})


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Target:
    """The element an action was performed on."""

    tag_name: str | None = None
    id: str | None = None
    name: str | None = None
    selector: str | None = None
    placeholder: str | None = None
    input_type: str | None = None  # the element's ``type`` attribute
    text: str | None = None  # visible text, already truncated by the capture script
    value: str | None = None

    @property
    def field_key(self) -> str:
        """Stable key identifying the field this target represents."""
        return self.id or self.name or self.selector or self.placeholder or ""

    def to_dict(self) -> dict:
        return {
            "tagName": self.tag_name,
            "id": self.id,
            "name": self.name,
            "selector": self.selector,
            "placeholder": self.placeholder,
            "type": self.input_type,
            "text": self.text,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Target":
        attributes = d.get("attributes")
        if not isinstance(attributes, dict):
            attributes = {}
        return cls(
            tag_name=_str_or_none(d.get("tagName") or d.get("tag")),
            id=_str_or_none(d.get("id") or attributes.get("id")) or None,
            name=_str_or_none(d.get("name") or attributes.get("name")) or None,
            selector=_str_or_none(d.get("selector") or d.get("cssSelector")) or None,
            placeholder=_str_or_none(d.get("placeholder") or attributes.get("placeholder")) or None,
            input_type=_str_or_none(d.get("type") or attributes.get("type")) or None,
            text=_str_or_none(d.get("text") or d.get("innerText")),
            value=_str_or_none(d.get("value")),
        )


@dataclass(frozen=True)
class Action:
    """One observed user event."""

    kind: str
    timestamp: float
    url: str | None = None
    target: Target | None = None
    value: str | None = None
    key: str | None = None  # for keydown / keyup
    form_data: dict[str, Any] = field(default_factory=dict)  # for submit

    @property
    def observed_value(self) -> str | None:
        """The value carried by the event itself, else the target's current value."""
        if self.value is not None:
            return self.value
        if self.target is not None:
            return self.target.value
        return None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "type": self.kind,
            "timestamp": self.timestamp,
            "url": self.url,
            "target": self.target.to_dict() if self.target else None,
            "value": self.value,
        }
        if self.key is not None:
            d["key"] = self.key
        if self.form_data:
            d["formData"] = self.form_data
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Action":
        target = d.get("target") or d.get("element") or d.get("elementInfo")
        form_data = d.get("formData") or d.get("fields") or {}
        return cls(
            kind=str(d.get("type") or d.get("action") or "unknown").lower(),
            timestamp=_float(d.get("timestamp")),
            url=_str_or_none(d.get("url")),
            target=Target.from_dict(target) if isinstance(target, dict) else None,
            value=_str_or_none(d.get("value")),
            key=_str_or_none(d.get("key")),
            form_data=dict(form_data) if isinstance(form_data, dict) else {},
        )


@dataclass(frozen=True)
class CapturedInput:
    """A field the capture layer explicitly tagged as holding a value of interest.

    This is the authoritative source for a field's value. It wins over any
    value reconstructed from individual keystroke actions.
    """

    field: str
    value: str
    input_type: str | None = None
    is_login_field: bool = False
    url: str | None = None

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "value": self.value,
            "type": self.input_type,
            "isLoginField": self.is_login_field,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, key: str, d: Any) -> "CapturedInput":
        # Some capture versions store the bare value
        if not isinstance(d, dict):
            return cls(field=key, value="" if d is None else str(d))
        return cls(
            field=_str_or_none(d.get("field")) or key,
            value=_str_or_none(d.get("value")) or "",
            input_type=_str_or_none(d.get("type") or d.get("inputType")),
            is_login_field=bool(d.get("isLoginField", False)),
            url=_str_or_none(d.get("url")),
        )


@dataclass(frozen=True)
class DomSnapshot:
    """A DOM snapshot. ``html`` is never forwarded past the reducer."""

    timestamp: float
    url: str | None = None
    title: str | None = None
    html: str | None = None

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "url": self.url, "title": self.title, "html": self.html}

    @classmethod
    def from_dict(cls, d: dict) -> "DomSnapshot":
        return cls(
            timestamp=_float(d.get("timestamp")),
            url=_str_or_none(d.get("url")),
            title=_str_or_none(d.get("title")),
            html=_str_or_none(d.get("html")),
        )


@dataclass(frozen=True)
class ConsoleLogEntry:
    """One console message emitted by a page."""

    level: str
    text: str
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {"level": self.level, "text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, d: dict) -> "ConsoleLogEntry":
        text = d.get("text")
        if text is None and isinstance(d.get("args"), list):
            # CDP-style payload: join the stringified argument values
            text = " ".join(
                str(arg.get("value", "")) if isinstance(arg, dict) else str(arg)
                for arg in d["args"]
            )
        return cls(
            level=str(d.get("level") or d.get("type") or "log"),
            text="" if text is None else str(text),
            timestamp=_float(d.get("timestamp")),
        )


@dataclass(frozen=True)
class NetworkEvent:
    """A network request observed during the session. Bodies are not kept."""

    request_id: str
    url: str
    method: str = "GET"
    status: int | None = None
    resource_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "requestId": self.request_id,
            "url": self.url,
            "method": self.method,
            "status": self.status,
            "resourceType": self.resource_type,
        }

    @classmethod
    def from_dict(cls, request_id: str, d: dict) -> "NetworkEvent":
        status = d.get("status")
        return cls(
            request_id=str(d.get("requestId") or request_id),
            url=str(d.get("url") or ""),
            method=str(d.get("method") or "GET"),
            status=int(status) if isinstance(status, (int, float)) else None,
            resource_type=_str_or_none(d.get("resourceType") or d.get("type")),
        )


@dataclass(frozen=True)
class Recording:
    """One completed capture session."""

    session_id: str
    url: str
    title: str = ""
    start_time: float | None = None
    end_time: float | None = None
    explicit_duration: float | None = None
    viewport: dict[str, Any] = field(default_factory=dict)
    user_agent: str | None = None
    actions: tuple[Action, ...] = ()
    dom_snapshots: tuple[DomSnapshot, ...] = ()
    console: dict[str, tuple[ConsoleLogEntry, ...]] = field(default_factory=dict)
    network: dict[str, NetworkEvent] = field(default_factory=dict)
    captured_inputs: dict[str, CapturedInput] = field(default_factory=dict)
    extracted_inputs: dict[str, str] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Session duration, derived from start/end when both are known."""
        if self.start_time is not None and self.end_time is not None:
            return max(0.0, self.end_time - self.start_time)
        return self.explicit_duration or 0.0

    def to_dict(self) -> dict:
        """Convert to the capture script's JSON shape."""
        return {
            "sessionId": self.session_id,
            "url": self.url,
            "title": self.title,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "viewport": self.viewport,
            "userAgent": self.user_agent,
            "actions": [a.to_dict() for a in self.actions],
            "domSnapshots": [s.to_dict() for s in self.dom_snapshots],
            "console": {
                origin: [e.to_dict() for e in entries]
                for origin, entries in self.console.items()
            },
            "network": {rid: e.to_dict() for rid, e in self.network.items()},
            "capturedInputs": {k: c.to_dict() for k, c in self.captured_inputs.items()},
            "extractedInputs": dict(self.extracted_inputs),
        }

    @classmethod
    def from_dict(cls, d: Any) -> "Recording":
        """Build a Recording from the capture script's JSON object.

        Absent optional fields are treated as empty.

        Raises:
            MalformedRecordingError: If ``d`` is not an object, ``actions`` is
                not a list, or none of ``sessionId``, ``url``, ``actions`` exist.
        """
        # Import here to avoid circular imports
        from compiler.errors import MalformedRecordingError

        if not isinstance(d, dict):
            raise MalformedRecordingError(
                f"Recording must be a JSON object, got {type(d).__name__}"
            )
        if not any(k in d for k in ("sessionId", "url", "actions")):
            raise MalformedRecordingError(
                "Recording has none of 'sessionId', 'url' or 'actions'"
            )

        raw_actions = d.get("actions")
        if raw_actions is None:
            raw_actions = []
        if not isinstance(raw_actions, list):
            raise MalformedRecordingError(
                f"'actions' must be a list, got {type(raw_actions).__name__}"
            )
        actions = tuple(Action.from_dict(a) for a in raw_actions if isinstance(a, dict))

        snapshots = tuple(
            DomSnapshot.from_dict(s)
            for s in (d.get("domSnapshots") or [])
            if isinstance(s, dict)
        )

        console: dict[str, tuple[ConsoleLogEntry, ...]] = {}
        raw_console = d.get("console") or {}
        if isinstance(raw_console, dict):
            for origin, entries in raw_console.items():
                if isinstance(entries, list):
                    console[origin] = tuple(
                        ConsoleLogEntry.from_dict(e) for e in entries if isinstance(e, dict)
                    )

        raw_captured = d.get("capturedInputs")
        captured = {
            str(key): CapturedInput.from_dict(str(key), value)
            for key, value in (raw_captured.items() if isinstance(raw_captured, dict) else [])
        }
        # Tagged console messages are a second channel for the same data
        for key, value in _captured_from_console(console).items():
            captured.setdefault(key, value)

        raw_extracted = d.get("extractedInputs")
        extracted = {
            str(k): "" if v is None else str(v)
            for k, v in (raw_extracted.items() if isinstance(raw_extracted, dict) else [])
        }

        start_time = d.get("startTime")
        end_time = d.get("endTime")
        duration = d.get("duration")
        viewport = d.get("viewport")

        return cls(
            session_id=str(d.get("sessionId") or ""),
            url=str(d.get("url") or ""),
            title=str(d.get("title") or ""),
            start_time=_float(start_time) if start_time is not None else None,
            end_time=_float(end_time) if end_time is not None else None,
            explicit_duration=_float(duration) if duration is not None else None,
            viewport=dict(viewport) if isinstance(viewport, dict) else {},
            user_agent=_str_or_none(d.get("userAgent")),
            actions=actions,
            dom_snapshots=snapshots,
            console=console,
            network=_parse_network(d),
            captured_inputs=captured,
            extracted_inputs=extracted,
        )

    @classmethod
    def load(cls, path: Path) -> "Recording":
        """Load a recording from a JSON file."""
        from compiler.errors import MalformedRecordingError

        path = Path(path)
        with open(path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise MalformedRecordingError(f"{path} is not valid JSON: {e}") from e
        return cls.from_dict(data)


def _parse_network(d: dict) -> dict[str, NetworkEvent]:
    """Collect network events from either capture format.

    ``network`` is normally keyed by request id. Older captures key it by URL
    with a list of requests, and some ship a flat ``networkRequests`` list.
    """
    events: dict[str, NetworkEvent] = {}
    raw = d.get("network") or {}
    if isinstance(raw, dict):
        for key, value in raw.items():
            if isinstance(value, dict):
                events[str(key)] = NetworkEvent.from_dict(str(key), value)
            elif isinstance(value, list):
                for i, req in enumerate(value):
                    if isinstance(req, dict):
                        req = {"url": key, **req}
                        rid = f"{key}#{i}"
                        events[rid] = NetworkEvent.from_dict(rid, req)

    for i, req in enumerate(d.get("networkRequests") or []):
        if isinstance(req, dict):
            rid = str(req.get("requestId") or f"request-{i}")
            events.setdefault(rid, NetworkEvent.from_dict(rid, req))

    return events


def _captured_from_console(
    console: dict[str, tuple[ConsoleLogEntry, ...]],
) -> dict[str, CapturedInput]:
    """Extract captured inputs the page script logged with ``[RECORDER-DATA]``."""
    captured: dict[str, CapturedInput] = {}
    for entries in console.values():
        for entry in entries:
            pos = entry.text.find(RECORDER_DATA_TAG)
            if pos == -1:
                continue
            payload = entry.text[pos + len(RECORDER_DATA_TAG):].strip()
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and data.get("field"):
                key = str(data["field"])
                captured[key] = CapturedInput.from_dict(key, data)
    return captured
