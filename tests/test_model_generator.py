"""Tests for the model-assisted generator and the service message protocol."""

import pytest

from compiler import (
    InvalidSpecError,
    MessageType,
    ModelAssistedGenerator,
    Provenance,
    ReductionOverflowError,
    ServiceMessage,
    ServiceProtocolError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    UnparseableResponseError,
    classify,
    reduce,
)
from compiler.model_generator import spec_from_response

from conftest import ScriptedService, model_response, result


def _assistant(text: str = "thinking") -> ServiceMessage:
    return ServiceMessage(MessageType.ASSISTANT, text)


@pytest.fixture
def reduced(login_recording):
    return reduce(login_recording)


@pytest.mark.asyncio
async def test_success(reduced, good_service):
    generator = ModelAssistedGenerator(good_service)

    spec = await generator.agenerate(reduced, classify(reduced))

    assert spec.provenance == Provenance.MODEL_ASSISTED
    assert spec.name == "Log in to the example app"
    assert spec.steps[1].snippet == "await page.fill('#username', '{{USERNAME}}');"
    assert spec.steps[1].instruction == "Type {{USERNAME}} into the username field"
    # Placeholder names are canonicalized
    assert spec.steps[2].snippet == "await page.fill('#password', '{{PASSWORD}}');"
    assert spec.steps[2].instruction == "Type the password"
    assert good_service.closed
    assert len(good_service.prompts) == 1
    assert "USERNAME" in good_service.prompts[0]


@pytest.mark.asyncio
async def test_eight_informational_messages_are_allowed(reduced):
    service = ScriptedService([*(_assistant() for _ in range(8)), result(model_response())])

    spec = await ModelAssistedGenerator(service).agenerate(reduced)

    assert len(spec.steps) == 4


@pytest.mark.asyncio
async def test_too_many_messages(reduced):
    service = ScriptedService([*(_assistant() for _ in range(9)), result(model_response())])

    with pytest.raises(ServiceProtocolError):
        await ModelAssistedGenerator(service).agenerate(reduced)
    assert service.closed


@pytest.mark.asyncio
async def test_user_turn_is_a_protocol_error(reduced, failing_service):
    with pytest.raises(ServiceProtocolError):
        await ModelAssistedGenerator(failing_service).agenerate(reduced)


@pytest.mark.asyncio
async def test_stream_without_result(reduced):
    service = ScriptedService([_assistant(), _assistant()])

    with pytest.raises(ServiceProtocolError):
        await ModelAssistedGenerator(service).agenerate(reduced)


@pytest.mark.asyncio
async def test_error_result(reduced):
    service = ScriptedService([result("rate limited", subtype="error_during_execution")])

    with pytest.raises(ServiceUnavailableError):
        await ModelAssistedGenerator(service).agenerate(reduced)


@pytest.mark.asyncio
async def test_provider_exception_is_wrapped(reduced):
    service = ScriptedService([_assistant()], error=ConnectionError("connection reset"))

    with pytest.raises(ServiceUnavailableError) as exc_info:
        await ModelAssistedGenerator(service).agenerate(reduced)
    assert isinstance(exc_info.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_timeout(reduced):
    service = ScriptedService([_assistant(), result(model_response())], delay=1.0)

    with pytest.raises(ServiceTimeoutError):
        await ModelAssistedGenerator(service, timeout=0.05).agenerate(reduced)


@pytest.mark.asyncio
async def test_unparseable_response(reduced):
    service = ScriptedService([result("Sorry, I can't help with that.")])

    with pytest.raises(UnparseableResponseError):
        await ModelAssistedGenerator(service).agenerate(reduced)


@pytest.mark.asyncio
async def test_json_that_is_not_a_spec(reduced):
    service = ScriptedService([result('{"name": "no steps here"}')])

    with pytest.raises(InvalidSpecError):
        await ModelAssistedGenerator(service).agenerate(reduced)


@pytest.mark.asyncio
async def test_overflow_never_reaches_the_service(login_recording):
    reduced = reduce(login_recording, budget=100)
    service = ScriptedService([result(model_response())])

    with pytest.raises(ReductionOverflowError):
        await ModelAssistedGenerator(service).agenerate(reduced)
    assert service.prompts == []


class TestSpecFromResponse:
    def test_string_steps_and_params(self, reduced):
        spec = spec_from_response(
            {"steps": ["Open the page", {"name": "Click", "type": "click"}], "params": ["userName"]},
            reduced,
        )

        assert spec.steps[0].instruction == "Open the page"
        assert spec.steps[1].action == "click"
        assert spec.param_names == ["USER_NAME"]
        assert spec.url == reduced.url
        assert spec.name == "Untitled Intent Spec"

    def test_duplicate_params_are_dropped(self, reduced):
        spec = spec_from_response(
            {"steps": [], "params": [{"name": "EMAIL", "description": "first"}, {"name": "email"}]},
            reduced,
        )

        assert [(p.name, p.description) for p in spec.params] == [("EMAIL", "first")]

    @pytest.mark.parametrize("data", [
        [],
        {"steps": "click things"},
        {"steps": [], "params": "EMAIL"},
        {"steps": [42]},
    ])
    def test_invalid(self, reduced, data):
        with pytest.raises(InvalidSpecError):
            spec_from_response(data, reduced)
