"""Generation coordinator: strategy selection, fallback, final validation.

``compile`` is the single entry point of the compiler. It reduces and
classifies the recording once, runs an ordered list of generators until one
succeeds, and enforces the no-literal invariant on whatever comes back.
"""

import asyncio
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Protocol, TYPE_CHECKING

from recorder import Recording
from prompts.intent_prompts import PROMPT_CEILING
from .errors import FallbackExhaustedError, GenerationError, ServiceUnavailableError
from .model_generator import DEFAULT_MAX_MESSAGES, DEFAULT_TIMEOUT, ModelAssistedGenerator
from .patterns import Classification, classify
from .redaction import enforce, known_values, order_params, rename_params
from .reducer import DEFAULT_BUDGET, DEFAULT_LIMITS, RETRY_LIMITS, ReducedRecording, reduce
from .rule_generator import RuleBasedGenerator
from .schema import IntentSpec, Param
from .service import AnalysisService

if TYPE_CHECKING:
    from config import Config
    from utils.logger import CompileLogger


class Strategy(StrEnum):
    """Which generators to run, in order."""

    MODEL = "model"
    RULE_BASED = "rule_based"
    MODEL_WITH_FALLBACK = "model_with_fallback"


class SpecGenerator(Protocol):
    """One way of turning a reduction into an Intent Spec."""

    name: str

    async def agenerate(self, reduced: ReducedRecording, classification: Classification) -> IntentSpec:
        ...


@dataclass
class CompileOptions:
    """Per-call compile settings."""

    strategy: Strategy = Strategy.MODEL_WITH_FALLBACK
    service: AnalysisService | None = None
    timeout: float = DEFAULT_TIMEOUT
    max_messages: int = DEFAULT_MAX_MESSAGES
    max_actions: int = DEFAULT_LIMITS.max_actions
    reduction_budget: int = DEFAULT_BUDGET
    prompt_ceiling: int = PROMPT_CEILING

    @classmethod
    def from_config(cls, cfg: "Config", **overrides: Any) -> "CompileOptions":
        """Build options from the global config; keyword arguments win."""
        options = {
            "strategy": Strategy(cfg.strategy),
            "timeout": cfg.service_timeout,
            "max_messages": cfg.max_service_messages,
            "max_actions": cfg.max_actions,
            "reduction_budget": cfg.reduction_budget,
            "prompt_ceiling": cfg.prompt_ceiling,
        }
        options.update(overrides)
        return cls(**options)


def build_chain(
    options: CompileOptions,
    logger: "CompileLogger | None" = None,
) -> list[SpecGenerator]:
    """The ordered generator list for a strategy."""
    rule_based = RuleBasedGenerator(logger=logger)
    if options.strategy == Strategy.RULE_BASED:
        return [rule_based]

    if options.service is None:
        if options.strategy == Strategy.MODEL:
            return []
        # Nothing to ask; the fallback is all there is
        return [rule_based]

    model = ModelAssistedGenerator(
        options.service,
        timeout=options.timeout,
        max_messages=options.max_messages,
        prompt_ceiling=options.prompt_ceiling,
        logger=logger,
    )
    if options.strategy == Strategy.MODEL:
        return [model]
    return [model, rule_based]


def finalize(
    spec: IntentSpec,
    classification: Classification,
    logger: "CompileLogger | None" = None,
) -> IntentSpec:
    """Enforce the Intent Spec invariants on a generator's output.

    A Param whose default is a classified field's value is merged into that
    field's Param. Every classified field is declared as a Param, credential
    defaults are dropped, literals are replaced by placeholders, and Params
    are ordered by first use. Running it on an already-final spec returns an
    equal spec.

    Raises:
        RedactionViolationError: If a placeholder cannot be traced to a Param.
    """
    classified = classification.by_param()
    by_value: dict[str, str] = {}
    for f in classification.fields:
        if f.value.strip():
            by_value.setdefault(f.value, f.param_name)
    renames = {
        p.name: by_value[p.default]
        for p in spec.params
        if p.name not in classified and p.default in by_value
    }
    if renames:
        if logger:
            logger.warning(
                "Merged Params into classified fields: "
                + ", ".join(f"{old} -> {new}" for old, new in renames.items())
            )
        spec = rename_params(spec, renames)

    params = list(spec.params)
    declared = {p.name for p in params}
    for f in classification.fields:
        if f.param_name not in declared:
            params.append(Param(
                name=f.param_name,
                description=f.description,
                default=None if f.field_class.is_credential else f.value,
            ))
            declared.add(f.param_name)

    credentials = {f.param_name for f in classification.fields if f.field_class.is_credential}
    params = [
        Param(name=p.name, description=p.description, default=None) if p.name in credentials else p
        for p in params
    ]

    values = known_values(classification.fields, spec.params)

    spec, corrections = enforce(spec.replace(params=tuple(params)), values)
    if corrections and logger:
        logger.warning(f"Replaced literal Param values in {corrections} field(s)")

    return spec.replace(params=order_params(spec.params, spec.steps))


async def compile(
    recording: Recording | dict,
    options: CompileOptions | None = None,
    logger: "CompileLogger | None" = None,
) -> IntentSpec:
    """Compile a recording into an Intent Spec.

    Args:
        recording: A Recording or the capture script's raw JSON object.
        options: Strategy and limits. Defaults to model-with-fallback with no
            service configured, which resolves to the rule-based generator.
        logger: Optional logger.

    Returns:
        The final Intent Spec. ``provenance`` names the generator that
        produced it, and ``fallback_reason`` is set when an earlier
        generator failed.

    Raises:
        MalformedRecordingError: The recording cannot be read at all.
        FallbackExhaustedError: Every generator in the chain failed.
    """
    options = options or CompileOptions()
    if not isinstance(recording, Recording):
        recording = Recording.from_dict(recording)

    reduced = reduce(
        recording,
        budget=options.reduction_budget,
        limits=replace(DEFAULT_LIMITS, max_actions=options.max_actions),
        retry_limits=replace(RETRY_LIMITS, max_actions=min(RETRY_LIMITS.max_actions, options.max_actions)),
        logger=logger,
    )
    classification = classify(reduced, logger=logger)

    chain = build_chain(options, logger=logger)
    if not chain:
        raise FallbackExhaustedError([ServiceUnavailableError("No analysis service configured")])

    errors: list[GenerationError] = []
    for generator in chain:
        if logger:
            logger.step(f"Generating with {generator.name} strategy...")
        try:
            spec = await generator.agenerate(reduced, classification)
            spec = finalize(spec, classification, logger=logger)
        except GenerationError as e:
            errors.append(e)
            if logger:
                logger.warning(f"{generator.name} generation failed: {type(e).__name__}: {e.message}")
            continue

        if errors:
            reason = "; ".join(f"{type(e).__name__}: {e.message}" for e in errors)
            spec = spec.replace(fallback_reason=reason)
        if logger:
            logger.success(
                f"Intent Spec '{spec.name}' ({spec.provenance.value}): "
                f"{len(spec.steps)} step(s), {len(spec.params)} param(s)"
            )
        return spec

    raise FallbackExhaustedError(errors)


def compile_recording(
    recording: Recording | dict,
    options: CompileOptions | None = None,
    logger: "CompileLogger | None" = None,
) -> IntentSpec:
    """Synchronous wrapper around ``compile`` for callers without a loop."""
    return asyncio.run(compile(recording, options, logger=logger))

