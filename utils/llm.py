"""Unified LLM client with provider abstraction and cost tracking."""

import os
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from .tracking import CostTracker, detect_provider

if TYPE_CHECKING:
    from .logger import CompileLogger


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""

    text: str
    input_tokens: int
    output_tokens: int
    model: str


class LLMClient:
    """Unified LLM client with provider abstraction and built-in cost tracking.

    Supports Anthropic, OpenAI, and Gemini providers with automatic detection
    based on model name. A single call is a single request: this client never
    retries, so a failed call costs at most one request.

    Example:
        >>> client = LLMClient(cost_tracker)
        >>> response = client.generate(
        ...     model="claude-sonnet-4-5-20250929",
        ...     system_prompt="You convert recordings to specs.",
        ...     prompt="...",
        ...     phase="intent_spec",
        ... )
        >>> print(response.text)
    """

    def __init__(
        self,
        cost_tracker: CostTracker,
        logger: "CompileLogger | None" = None,
    ):
        """Initialize the LLM client.

        Args:
            cost_tracker: CostTracker instance for tracking usage and costs.
            logger: Optional CompileLogger for logging API calls.
        """
        self.cost_tracker = cost_tracker
        self.logger = logger

        # Lazy-loaded provider clients
        self._anthropic_client: Any = None
        self._openai_client: Any = None
        self._gemini_client: Any = None

    def _get_anthropic_client(self) -> Any:
        """Get or create Anthropic client."""
        if self._anthropic_client is None:
            from anthropic import Anthropic
            self._anthropic_client = Anthropic()
        return self._anthropic_client

    def _get_openai_client(self) -> Any:
        """Get or create OpenAI client."""
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI()
        return self._openai_client

    def _get_gemini_client(self) -> Any:
        """Get or create Gemini client using the google-genai package."""
        if self._gemini_client is None:
            from google import genai

            api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
            self._gemini_client = genai.Client(api_key=api_key)
        return self._gemini_client

    def generate(
        self,
        model: str,
        system_prompt: str,
        prompt: str,
        max_tokens: int = 4096,
        phase: str | None = None,
    ) -> LLMResponse:
        """Generate a response from an LLM.

        Args:
            model: Model name (e.g., "claude-sonnet-4-5-20250929", "gemini-2.0-flash").
            system_prompt: System prompt for the model.
            prompt: The user message.
            max_tokens: Maximum tokens for response.
            phase: Optional phase name for cost tracking.

        Returns:
            The provider's response, normalized.
        """
        provider = detect_provider(model)

        if provider == "anthropic":
            response = self._call_anthropic(model, system_prompt, prompt, max_tokens)
        elif provider == "openai":
            response = self._call_openai(model, system_prompt, prompt, max_tokens)
        elif provider == "gemini":
            response = self._call_gemini(model, system_prompt, prompt, max_tokens)
        else:
            raise ValueError(f"Unknown provider for model: {model}")

        # Track cost
        self.cost_tracker.add_usage(
            response.input_tokens,
            response.output_tokens,
            model=model,
            phase=phase,
        )

        if self.logger:
            self.logger.api(response.input_tokens, response.output_tokens)

        return response

    def _call_anthropic(
        self,
        model: str,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
    ) -> LLMResponse:
        """Call Anthropic API."""
        client = self._get_anthropic_client()

        response = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": [{"type": "text", "text": prompt}]}],
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
        )

    def _call_openai(
        self,
        model: str,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
    ) -> LLMResponse:
        """Call OpenAI API."""
        client = self._get_openai_client()

        response = client.chat.completions.create(
            model=model,
            max_completion_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        )

        return LLMResponse(
            text=response.choices[0].message.content or "",
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            model=model,
        )

    def _call_gemini(
        self,
        model: str,
        system_prompt: str,
        prompt: str,
        max_tokens: int,
    ) -> LLMResponse:
        """Call Gemini API using the google-genai package."""
        from google.genai import types

        client = self._get_gemini_client()

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=max_tokens,
        )

        response = client.models.generate_content(
            model=model,
            contents=[types.Part.from_text(text=prompt)],
            config=config,
        )

        # Extract token counts from usage metadata
        usage = response.usage_metadata
        return LLMResponse(
            text=response.text or "",
            input_tokens=usage.prompt_token_count if usage else 0,
            output_tokens=usage.candidates_token_count if usage else 0,
            model=model,
        )
