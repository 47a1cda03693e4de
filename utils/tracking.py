"""Cost and time tracking utilities."""

import time
from dataclasses import dataclass, field
from typing import Any


# Model pricing per million tokens (input, output)
# From: https://platform.claude.com/docs/en/about-claude/pricing
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "claude-opus-4-5-20250929": (5.0, 25.0),
    "claude-opus-4-5": (5.0, 25.0),
    "claude-sonnet-4-5-20250929": (3.0, 15.0),
    "claude-sonnet-4-5": (3.0, 15.0),
    "claude-sonnet-4-20250514": (3.0, 15.0),
    "claude-sonnet-4": (3.0, 15.0),
    "claude-haiku-4-5-20250929": (1.0, 5.0),
    "claude-haiku-4-5": (1.0, 5.0),
}

# OpenAI model pricing (approximate)
OPENAI_PRICING: dict[str, tuple[float, float]] = {
    "gpt-5-mini-2025-08-07": (0.15, 0.60),
    "gpt-5-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.0),
    "gpt-4o-2024-08-06": (2.50, 10.0),
}

# Gemini model pricing per million tokens (input, output)
# From: https://ai.google.dev/gemini-api/docs/pricing
GEMINI_PRICING: dict[str, tuple[float, float]] = {
    "gemini-3-flash-preview": (0.5, 3.0),
    "gemini-2.0-flash": (0.10, 0.40),
}

# Default pricing (Claude Sonnet 4.5)
DEFAULT_PRICING = (3.0, 15.0)


def get_model_pricing(model: str) -> tuple[float, float]:
    """Get pricing for a model. Returns (input_price_per_mtok, output_price_per_mtok)."""
    for table in (MODEL_PRICING, OPENAI_PRICING, GEMINI_PRICING):
        if model in table:
            return table[model]
    return DEFAULT_PRICING


def detect_provider(model: str) -> str:
    """Detect the provider based on model name.

    Returns: "anthropic", "openai", or "gemini"
    """
    if model.startswith("claude"):
        return "anthropic"
    if model.startswith(("gpt", "o1", "o3")):
        return "openai"
    if model.startswith("gemini"):
        return "gemini"
    # Default to anthropic
    return "anthropic"


@dataclass
class UsageStats:
    """Token and cost totals for one model or one phase."""

    input: int = 0
    output: int = 0
    calls: int = 0
    cost: float = 0.0
    model: str | None = None

    def add(self, input_tokens: int, output_tokens: int, cost: float) -> None:
        self.input += input_tokens
        self.output += output_tokens
        self.calls += 1
        self.cost += cost

    def row(self) -> list[str]:
        return [str(self.calls), f"{self.input:,}", f"{self.output:,}", f"${self.cost:.4f}"]


@dataclass
class CostTracker:
    """Tracks API costs and token usage across analysis service calls.

    A compile makes at most one paid call, but a CLI run over several
    recordings shares one tracker.
    """

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    api_calls: int = 0
    total_cost_dollars: float = 0.0

    # Per-phase tracking (e.g. 'intent_spec')
    phase_stats: dict[str, UsageStats] = field(default_factory=dict)

    # Per-model tracking
    model_stats: dict[str, UsageStats] = field(default_factory=dict)

    def add_usage(
        self,
        input_tokens: int,
        output_tokens: int,
        model: str,
        phase: str | None = None,
    ) -> float:
        """Record token usage from an API call.

        Args:
            input_tokens: Number of input tokens.
            output_tokens: Number of output tokens.
            model: The model used for this API call.
            phase: Optional phase name.

        Returns:
            The cost of this API call in dollars.
        """
        input_price, output_price = get_model_pricing(model)
        call_cost = (
            (input_tokens / 1_000_000) * input_price +
            (output_tokens / 1_000_000) * output_price
        )

        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.api_calls += 1
        self.total_cost_dollars += call_cost

        self.model_stats.setdefault(model, UsageStats(model=model)).add(
            input_tokens, output_tokens, call_cost
        )
        if phase:
            self.phase_stats.setdefault(phase, UsageStats(model=model)).add(
                input_tokens, output_tokens, call_cost
            )

        return call_cost

    @property
    def total_cost(self) -> float:
        """Get total cost in dollars."""
        return self.total_cost_dollars

    def get_summary(self) -> dict[str, str]:
        """Get a summary dictionary for display."""
        models_used = list(self.model_stats.keys())
        return {
            "Models Used": ", ".join(models_used) if models_used else "None",
            "API Calls": str(self.api_calls),
            "Input Tokens": f"{self.total_input_tokens:,}",
            "Output Tokens": f"{self.total_output_tokens:,}",
            "Total Cost": f"${self.total_cost:.4f}",
        }

    def get_model_summary(self) -> list[list[str]]:
        """Get per-model breakdown for table display."""
        return [[model, *stats.row()] for model, stats in self.model_stats.items()]

    def get_phase_summary(self) -> list[list[str]]:
        """Get per-phase breakdown for table display."""
        return [
            [phase, stats.model or "unknown", *stats.row()]
            for phase, stats in self.phase_stats.items()
        ]


class Timer:
    """Context manager for timing operations."""

    def __init__(self, name: str = "Operation"):
        self.name = name
        self.start_time: float | None = None
        self.end_time: float | None = None

    def __enter__(self) -> "Timer":
        self.start_time = time.time()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.time()

    @property
    def elapsed(self) -> float:
        """Get elapsed time in seconds."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return end - self.start_time

    @property
    def elapsed_str(self) -> str:
        """Get elapsed time as a formatted string."""
        seconds = self.elapsed
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes = int(seconds // 60)
        return f"{minutes}m {seconds % 60:.0f}s"

    def start(self) -> None:
        """Manually start the timer."""
        self.start_time = time.time()

    def stop(self) -> None:
        """Manually stop the timer."""
        self.end_time = time.time()
