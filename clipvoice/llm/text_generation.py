"""Text-generation capability consumed by narration, translation and summary.

Responsibilities:
- Define the asynchronous `TextGeneration` contract.
- Adapt the blocking OpenAI chat client to it, running each call in a worker
  thread and wrapping it with the shared retry executor.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from ..retry import RetryExecutor, RetryPolicy
from .openai_client import OpenAIChatClient


class TextGeneration(Protocol):
    """Protocol for providers that answer a system/user prompt pair."""

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        structured: bool = False,
    ) -> str | dict[str, Any]:
        """Return generated text, or a JSON object when `structured` is set."""


class OpenAITextGeneration:
    """OpenAI chat-completions backed `TextGeneration` implementation."""

    def __init__(
        self,
        *,
        client: OpenAIChatClient,
        model: str,
        retry_executor: RetryExecutor | None = None,
        retry_policy: RetryPolicy | None = None,
        temperature: float = 0.0,
    ) -> None:
        """Initialize model, client and retry collaborators."""

        self.client = client
        self.model = model
        self.temperature = temperature
        self._retry_executor = retry_executor if retry_executor is not None else RetryExecutor()
        self._retry_policy = retry_policy

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        structured: bool = False,
    ) -> str | dict[str, Any]:
        """Run one chat completion with retries without blocking the event loop."""

        def _call() -> str | dict[str, Any]:
            if structured:
                return self.client.chat_completion_json(
                    model=self.model,
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                )
            return self.client.chat_completion_text(
                model=self.model,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=self.temperature,
            )

        return await self._retry_executor.execute(
            lambda: asyncio.to_thread(_call),
            self._retry_policy,
            operation_name="text_generation",
        )
