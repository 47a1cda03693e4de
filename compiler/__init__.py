"""Recording to Intent Spec compiler.

This module provides:
- reduce: Bounded, redacted summary of a Recording
- classify: Field classification and workflow template matching
- RuleBasedGenerator / ModelAssistedGenerator: The two generation paths
- compile: Strategy selection, fallback and final validation
- IntentSpec / Step / Param: The compiled output
"""

from .errors import (
    CompileError,
    FallbackExhaustedError,
    GenerationError,
    InvalidSpecError,
    MalformedRecordingError,
    RedactionViolationError,
    ReductionOverflowError,
    ServiceProtocolError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    UnparseableResponseError,
)
from .schema import IntentSpec, Param, Provenance, Step
from .reducer import ReducedAction, ReducedRecording, ReductionLimits, reduce
from .patterns import Classification, FieldClass, FieldClassification, WorkflowMatch, classify
from .rule_generator import RuleBasedGenerator, generate
from .service import AnalysisService, LLMAnalysisService, MessageType, ServiceMessage
from .model_generator import ModelAssistedGenerator
from .coordinator import CompileOptions, Strategy, compile, compile_recording, finalize

__all__ = [
    # Errors
    "CompileError",
    "FallbackExhaustedError",
    "GenerationError",
    "InvalidSpecError",
    "MalformedRecordingError",
    "RedactionViolationError",
    "ReductionOverflowError",
    "ServiceProtocolError",
    "ServiceTimeoutError",
    "ServiceUnavailableError",
    "UnparseableResponseError",
    # Output
    "IntentSpec",
    "Param",
    "Provenance",
    "Step",
    # Pipeline
    "ReducedAction",
    "ReducedRecording",
    "ReductionLimits",
    "reduce",
    "Classification",
    "FieldClass",
    "FieldClassification",
    "WorkflowMatch",
    "classify",
    "RuleBasedGenerator",
    "generate",
    "AnalysisService",
    "LLMAnalysisService",
    "MessageType",
    "ServiceMessage",
    "ModelAssistedGenerator",
    "CompileOptions",
    "Strategy",
    "compile",
    "compile_recording",
    "finalize",
]
