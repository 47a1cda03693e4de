"""Intent Spec generation through the external analysis service."""

import asyncio
from typing import Any, TYPE_CHECKING

from prompts.intent_prompts import PROMPT_CEILING, build_prompt
from .errors import (
    GenerationError,
    InvalidSpecError,
    ServiceProtocolError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    UnparseableResponseError,
)
from .json_utils import extract_json_from_response
from .patterns import Classification, classify, generic_param_name
from .redaction import PLACEHOLDER_RE, Redactor, known_values, placeholder, redact_spec
from .reducer import ReducedRecording
from .schema import IntentSpec, Param, Provenance, Step
from .service import AnalysisService, MessageType, ServiceMessage

if TYPE_CHECKING:
    from utils.logger import CompileLogger


DEFAULT_TIMEOUT = 90.0  # seconds
DEFAULT_MAX_MESSAGES = 8


def _canonical_placeholders(text: str | None) -> str | None:
    """Rewrite ``{{userName}}`` style placeholders to ``{{USER_NAME}}``."""
    if not text:
        return text
    return PLACEHOLDER_RE.sub(lambda m: placeholder(generic_param_name(m.group(1))), text)


def _parse_param(raw: Any) -> Param | None:
    if isinstance(raw, str):
        return Param(name=generic_param_name(raw)) if raw.strip() else None
    if isinstance(raw, dict) and raw.get("name"):
        param = Param.from_dict(raw)
        return Param(
            name=generic_param_name(param.name),
            description=param.description,
            default=param.default,
        )
    return None


def _parse_step(raw: Any, index: int) -> Step:
    if isinstance(raw, str):
        return Step(name=raw, action="", selector=None, instruction=raw, snippet="")
    if not isinstance(raw, dict):
        raise InvalidSpecError(f"Step {index} is a {type(raw).__name__}, expected an object")
    step = Step.from_dict(raw)
    return Step(
        name=_canonical_placeholders(step.name) or f"Step {index + 1}",
        action=step.action,
        selector=_canonical_placeholders(step.selector),
        instruction=_canonical_placeholders(step.instruction) or "",
        snippet=_canonical_placeholders(step.snippet) or "",
    )


def spec_from_response(data: Any, reduced: ReducedRecording) -> IntentSpec:
    """Normalize a parsed service response into an IntentSpec.

    Raises:
        InvalidSpecError: If ``data`` does not describe a spec.
    """
    if not isinstance(data, dict):
        raise InvalidSpecError(f"Expected a JSON object, got {type(data).__name__}")
    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list):
        raise InvalidSpecError("Response has no 'steps' list")

    raw_params = data.get("params") or []
    if not isinstance(raw_params, list):
        raise InvalidSpecError("'params' must be a list")

    params: dict[str, Param] = {}
    for raw in raw_params:
        param = _parse_param(raw)
        if param is not None:
            params.setdefault(param.name, param)

    return IntentSpec(
        name=str(data.get("name") or "Untitled Intent Spec"),
        description=str(data.get("description") or ""),
        url=str(data.get("url") or reduced.url),
        steps=tuple(_parse_step(raw, i) for i, raw in enumerate(raw_steps)),
        params=tuple(params.values()),
        provenance=Provenance.MODEL_ASSISTED,
    )


class ModelAssistedGenerator:
    """Asks the analysis service for a spec and checks what comes back.

    One request per call. Failures surface as GenerationError subclasses so
    the coordinator can fall back; nothing is retried here.
    """

    name = "model"

    def __init__(
        self,
        service: AnalysisService,
        timeout: float = DEFAULT_TIMEOUT,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        prompt_ceiling: int = PROMPT_CEILING,
        logger: "CompileLogger | None" = None,
    ):
        """Initialize the generator.

        Args:
            service: The external analysis service.
            timeout: Seconds to wait for a terminal result.
            max_messages: Informational messages tolerated before a result.
            prompt_ceiling: Maximum prompt size in bytes.
            logger: Optional logger.
        """
        self.service = service
        self.timeout = timeout
        self.max_messages = max_messages
        self.prompt_ceiling = prompt_ceiling
        self.logger = logger

    async def agenerate(
        self,
        reduced: ReducedRecording,
        classification: Classification | None = None,
    ) -> IntentSpec:
        """Generate a spec via the analysis service.

        Raises:
            ReductionOverflowError: The reduction or prompt is over budget.
            ServiceTimeoutError: No result within ``timeout``.
            ServiceProtocolError: The message stream broke the contract.
            ServiceUnavailableError: The service failed or reported an error.
            UnparseableResponseError: No JSON object in the result text.
            InvalidSpecError: The JSON object is not a spec.
        """
        if classification is None:
            classification = classify(reduced)

        prompt = build_prompt(reduced, classification, ceiling=self.prompt_ceiling)
        text = await self._exchange(prompt)

        data = extract_json_from_response(text)
        if data is None:
            raise UnparseableResponseError(
                f"No JSON object in service response ({len(text)} chars)"
            )
        spec = spec_from_response(data, reduced)

        # Re-substitute any literal the service left in place
        return redact_spec(spec, Redactor(known_values(classification.fields, spec.params)))

    async def _exchange(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(self._consume(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ServiceTimeoutError(
                f"No result from analysis service within {self.timeout:g}s"
            ) from e

    async def _consume(self, prompt: str) -> str:
        """Read the stream up to the first result message."""
        stream = self.service.query(prompt)
        informational = 0
        try:
            async for message in stream:
                text = self._check(message, informational)
                if text is not None:
                    return text
                informational += 1
        except GenerationError:
            raise
        except Exception as e:
            raise ServiceUnavailableError(f"Analysis service failed: {e}") from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        raise ServiceProtocolError(
            f"Stream ended after {informational} message(s) without a result"
        )

    def _check(self, message: ServiceMessage, informational: int) -> str | None:
        """Return the result text, None to keep reading, or raise."""
        if message.type == MessageType.USER:
            raise ServiceProtocolError("Service sent a 'user' turn; multi-turn exchanges are not supported")
        if message.is_result:
            if message.is_error:
                raise ServiceUnavailableError(
                    f"Service returned an error result ({message.subtype}): {message.text[:200]}"
                )
            return message.text
        if informational + 1 > self.max_messages:
            raise ServiceProtocolError(
                f"More than {self.max_messages} messages without a result"
            )
        if self.logger and message.type == MessageType.SYSTEM:
            self.logger.info(f"Analysis service: {message.text}")
        return None
