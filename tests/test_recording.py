"""Tests for the Recording data model and keystroke reconstruction."""

import json

import pytest

from compiler import MalformedRecordingError
from recorder import Action, ActionKind, Recording, Target, reconstruct_typed_text


class TestRecordingFromDict:
    def test_login_recording(self, login_recording):
        rec = Recording.from_dict(login_recording)

        assert rec.session_id == "sess-login"
        assert rec.duration == pytest.approx(12.5)
        assert len(rec.actions) == 7
        assert rec.actions[0].kind == ActionKind.NAVIGATE
        assert rec.actions[3].target.field_key == "username"
        assert rec.actions[3].observed_value == "alice"
        assert rec.captured_inputs["password"].is_login_field
        assert rec.network["r1"].method == "POST"

    def test_absent_optional_fields_are_empty(self):
        rec = Recording.from_dict({"sessionId": "s1"})

        assert rec.url == ""
        assert rec.actions == ()
        assert rec.captured_inputs == {}
        assert rec.duration == 0.0

    def test_recorder_data_console_entries_become_captured_inputs(self):
        payload = {"field": "email", "value": "bob@example.com", "type": "email", "isLoginField": True}
        rec = Recording.from_dict({
            "sessionId": "s1",
            "url": "https://example.com",
            "console": {
                "https://example.com": [
                    {"level": "log", "text": "page ready"},
                    {"level": "log", "text": "[RECORDER-DATA] " + json.dumps(payload)},
                    {"level": "log", "text": "[RECORDER-DATA] not json"},
                ],
            },
        })

        captured = rec.captured_inputs["email"]
        assert captured.value == "bob@example.com"
        assert captured.input_type == "email"
        assert captured.is_login_field

    def test_explicit_captured_inputs_win_over_console(self):
        rec = Recording.from_dict({
            "sessionId": "s1",
            "capturedInputs": {"q": {"field": "q", "value": "shoes"}},
            "console": {"o": [{"level": "log", "text": '[RECORDER-DATA] {"field": "q", "value": "hats"}'}]},
        })

        assert rec.captured_inputs["q"].value == "shoes"

    def test_bare_captured_value(self):
        rec = Recording.from_dict({"sessionId": "s1", "capturedInputs": {"city": "Lisbon"}})

        assert rec.captured_inputs["city"].value == "Lisbon"

    def test_network_keyed_by_url(self):
        rec = Recording.from_dict({
            "sessionId": "s1",
            "network": {"https://api.example.com/v1/items": [{"method": "GET"}, {"method": "POST"}]},
        })

        assert len(rec.network) == 2
        assert {e.method for e in rec.network.values()} == {"GET", "POST"}

    @pytest.mark.parametrize("raw", [
        [],
        "recording",
        {"title": "no identifying fields"},
        {"sessionId": "s1", "actions": {"0": {}}},
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedRecordingError):
            Recording.from_dict(raw)

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedRecordingError):
            Recording.load(path)

    def test_load(self, recording_file):
        rec = Recording.load(recording_file)

        assert rec.url == "https://app.example.com/login"


def _key(kind: str, key: str | None = None, field: str | None = None) -> Action:
    target = Target(id=field) if field else None
    return Action(kind=kind, timestamp=0.0, target=target, key=key)


class TestReconstructTypedText:
    def test_keystrokes_with_backspace(self):
        actions = [
            _key("focus", field="q"),
            _key("keydown", "h"),
            _key("keydown", "i"),
            _key("keydown", "x"),
            _key("keydown", "Backspace"),
            _key("keydown", "Shift"),
            _key("keydown", "!"),
            _key("blur", field="q"),
            _key("keydown", "z"),
        ]

        assert reconstruct_typed_text(actions) == {"q": "hi!"}

    def test_focused_but_untyped_fields_are_omitted(self):
        actions = [_key("focus", field="a"), _key("blur", field="a")]

        assert reconstruct_typed_text(actions) == {}

    def test_navigation_ends_the_field(self):
        actions = [
            _key("focus", field="a"),
            _key("keydown", "1"),
            Action(kind="navigate", timestamp=0.0, url="https://example.com/next"),
            _key("keydown", "2"),
        ]

        assert reconstruct_typed_text(actions) == {"a": "1"}
