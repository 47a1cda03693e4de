"""Boundary to the external analysis service.

The service takes one prompt and answers with an ordered stream of typed
messages. Informational messages may come first; a ``result`` message carries
the final text and ends the exchange.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TYPE_CHECKING

from prompts.intent_prompts import INTENT_SPEC_SYSTEM_PROMPT

if TYPE_CHECKING:
    from utils.llm import LLMClient
    from utils.logger import CompileLogger


class MessageType(StrEnum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    RESULT = "result"


@dataclass(frozen=True)
class ServiceMessage:
    """One message in the service's response stream."""

    type: str
    text: str = ""
    subtype: str | None = None  # for results: "success" or an error kind

    @property
    def is_result(self) -> bool:
        return self.type == MessageType.RESULT

    @property
    def is_error(self) -> bool:
        return self.is_result and self.subtype not in (None, "success")


class AnalysisService(Protocol):
    """Anything that answers a prompt with a stream of ServiceMessages."""

    def query(self, prompt: str) -> AsyncIterator[ServiceMessage]:
        ...


class LLMAnalysisService:
    """Analysis service backed by a single LLMClient request.

    The blocking provider call runs in a worker thread so the caller's
    timeout can abandon it.
    """

    def __init__(
        self,
        client: "LLMClient",
        model: str,
        max_tokens: int = 4096,
        system_prompt: str = INTENT_SPEC_SYSTEM_PROMPT,
        logger: "CompileLogger | None" = None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self.logger = logger

    async def query(self, prompt: str) -> AsyncIterator[ServiceMessage]:
        yield ServiceMessage(MessageType.SYSTEM, f"model={self.model}", subtype="init")

        if self.logger:
            self.logger.step(f"Requesting Intent Spec from {self.model}...")

        response = await asyncio.to_thread(
            self.client.generate,
            model=self.model,
            system_prompt=self.system_prompt,
            prompt=prompt,
            max_tokens=self.max_tokens,
            phase="intent_spec",
        )

        yield ServiceMessage(MessageType.ASSISTANT, response.text)
        yield ServiceMessage(MessageType.RESULT, response.text, subtype="success")
