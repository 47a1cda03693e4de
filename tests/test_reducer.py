"""Tests for recording reduction."""

import json

import pytest

from compiler import ReductionOverflowError, classify, reduce
from compiler.reducer import DEFAULT_BUDGET, ReductionLimits
from prompts.intent_prompts import PROMPT_CEILING, build_prompt


def _payload_size(reduced) -> int:
    return len(json.dumps(reduced.to_dict(), ensure_ascii=False).encode("utf-8"))


def test_noise_is_dropped(login_recording):
    reduced = reduce(login_recording)

    assert reduced.total_actions == 7
    assert [a.kind for a in reduced.actions] == ["navigate", "click", "input", "input", "click"]
    assert reduced.report()["kept_actions"] == 5


def test_payload_shape(login_recording):
    reduced = reduce(login_recording)
    payload = reduced.to_dict()

    assert payload["viewport"] == {"width": 1280, "height": 800}
    assert payload["totalActions"] == 7
    assert [s["title"] for s in payload["domSnapshots"]] == ["Sign in", "Home"]
    assert payload["apiPatterns"] == ["app.example.com/api/v1"]
    assert "html" not in json.dumps(payload)
    assert "errors" not in payload


def test_only_first_and_last_snapshot_are_kept():
    reduced = reduce({
        "sessionId": "s1",
        "domSnapshots": [{"timestamp": float(i), "title": f"page {i}"} for i in range(5)],
    })

    assert [s.title for s in reduced.snapshots] == ["page 0", "page 4"]


def test_errors_are_capped_and_truncated():
    reduced = reduce({
        "sessionId": "s1",
        "console": {"page": [
            *({"level": "error", "text": "x" * 500} for _ in range(8)),
            {"level": "log", "text": "fine"},
        ]},
    })

    assert len(reduced.errors) == 5
    assert all(len(e["message"]) == 200 for e in reduced.errors)


def test_report_fields(login_recording):
    reduced = reduce(login_recording)

    assert reduced.reduced_bytes == _payload_size(reduced)
    assert 0 < reduced.ratio < 1
    assert not reduced.overflow


def test_huge_action_count_is_bounded():
    actions = [
        {"type": "click", "timestamp": float(i),
         "target": {"tagName": "DIV", "selector": f"#row-{i}", "text": f"Row {i}"}}
        for i in range(100_000)
    ]
    reduced = reduce({"sessionId": "big", "url": "https://example.com", "actions": actions})

    assert reduced.total_actions == 100_000
    assert len(reduced.actions) <= 100
    assert reduced.reduced_bytes <= DEFAULT_BUDGET
    assert not reduced.overflow


def test_multi_megabyte_recording_fits_the_prompt():
    long_url = "https://example.com/" + "segment/" * 40
    actions = [
        {"type": "click", "timestamp": float(i), "url": long_url,
         "target": {"tagName": "A", "selector": "div > " * 100 + f"a:nth-child({i})", "text": "t" * 1000}}
        for i in range(400)
    ]
    snapshots = [{"timestamp": float(i), "title": "Page", "html": "<div>" + "x" * 500_000 + "</div>"}
                 for i in range(10)]
    recording = {"sessionId": "huge", "url": long_url, "actions": actions, "domSnapshots": snapshots}

    reduced = reduce(recording)
    prompt = build_prompt(reduced, classify(reduced))

    assert reduced.original_bytes > 5_000_000
    assert not reduced.overflow
    assert len(prompt.encode("utf-8")) < PROMPT_CEILING
    # The first pass was over budget, so the tighter caps were used
    assert len(reduced.actions) == 50


def test_overflow_is_flagged_and_refused_by_the_prompt_builder(login_recording):
    reduced = reduce(login_recording, budget=100)

    assert reduced.overflow
    with pytest.raises(ReductionOverflowError):
        build_prompt(reduced)


def test_prompt_ceiling_is_enforced(login_recording):
    reduced = reduce(login_recording)

    with pytest.raises(ReductionOverflowError) as exc_info:
        build_prompt(reduced, ceiling=500)
    assert exc_info.value.budget == 500
    assert exc_info.value.size > 500


def test_custom_limits_truncate_fields():
    limits = ReductionLimits(max_actions=1, selector_chars=5)
    reduced = reduce(
        {"sessionId": "s1", "actions": [
            {"type": "click", "timestamp": 1.0, "target": {"selector": "#a-very-long-selector"}},
            {"type": "click", "timestamp": 2.0, "target": {"selector": "#b"}},
        ]},
        limits=limits,
    )

    assert len(reduced.actions) == 1
    assert reduced.actions[0].selector == "#a-ve"


def test_reduction_is_deterministic(login_recording):
    assert reduce(login_recording).to_dict() == reduce(login_recording).to_dict()


def test_keystroke_heavy_recording_is_bounded():
    actions = []
    for i in range(50_000):
        actions.append({"type": "focus", "timestamp": float(2 * i), "target": {"tagName": "INPUT", "id": f"f{i}"}})
        actions.append({"type": "keydown", "timestamp": float(2 * i + 1), "key": "x"})
    captured = {f"c{i}": {"field": f"c{i}", "value": "v" * 500} for i in range(5_000)}
    extracted = {f"e{i}": "w" * 500 for i in range(5_000)}
    recording = {
        "sessionId": "keys", "url": "https://example.com", "actions": actions,
        "capturedInputs": captured, "extractedInputs": extracted,
    }

    reduced = reduce(recording)

    assert reduced.total_actions == 100_000
    assert reduced.reduced_bytes <= DEFAULT_BUDGET
    assert not reduced.overflow
    for inputs in (reduced.captured_inputs, reduced.extracted_inputs, reduced.reconstructed_inputs):
        assert 0 < len(inputs) <= 50
    assert all(len(c.value) <= 100 for c in reduced.captured_inputs.values())


def test_input_caps_prefer_fields_of_kept_actions():
    actions = [
        *({"type": "focus", "timestamp": float(i), "target": {"id": f"f{i}"}} for i in range(60)),
        {"type": "input", "timestamp": 100.0, "value": "kept", "target": {"id": "f59"}},
    ]
    extracted = {f"f{i}": f"value {i}" for i in range(60)}

    reduced = reduce({"sessionId": "s1", "actions": actions, "extractedInputs": extracted},
                     limits=ReductionLimits(max_inputs=3))

    assert list(reduced.extracted_inputs) == ["f59", "f0", "f1"]
