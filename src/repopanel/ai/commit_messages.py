"""Commit message generators.

:class:`MessageGenerator` is the boundary the orchestration layer talks to.
:class:`OpenAICommitMessageGenerator` implements it on top of
:class:`~repopanel.ai.client.AIClient`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, runtime_checkable

from openai import AuthenticationError, NotFoundError, PermissionDeniedError

from ..git.models import StatusSnapshot
from .cancellation import CancellationHandle, GenerationCancelled
from .client import AIClient, ClientSettings
from .fallback import fallback_message
from .prompts import build_commit_prompt, clean_message

LOGGER = logging.getLogger(__name__)


class GenerationError(Exception):
    """Generation failed for a reason other than cancellation."""


class GenerationUnavailableError(GenerationError):
    """The AI capability is not available (no key, no access, unknown model)."""


@runtime_checkable
class MessageGenerator(Protocol):
    async def generate(self, snapshot: StatusSnapshot, cancellation: CancellationHandle) -> str:
        ...

    def fallback(self, snapshot: StatusSnapshot) -> str:
        ...


class OpenAICommitMessageGenerator:
    """Generates commit messages through an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client_factory: Callable[[ClientSettings], AIClient] = AIClient,
        max_tokens: int = 200,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._client: AIClient | None = None
        self._max_tokens = max_tokens

    @property
    def available(self) -> bool:
        return bool((self._settings.api_key or "").strip() and (self._settings.model or "").strip())

    def fallback(self, snapshot: StatusSnapshot) -> str:
        return fallback_message(snapshot)

    async def generate(self, snapshot: StatusSnapshot, cancellation: CancellationHandle) -> str:
        if not self.available:
            raise GenerationUnavailableError("No AI model is configured for commit message generation.")
        cancellation.raise_if_cancelled()

        task = asyncio.ensure_future(self._stream_message(snapshot, cancellation))
        cancellation.on_cancel(task.cancel)
        try:
            text = await task
        except asyncio.CancelledError:
            if cancellation.cancelled:
                raise GenerationCancelled("generation was cancelled") from None
            raise
        except (AuthenticationError, PermissionDeniedError, NotFoundError) as exc:
            LOGGER.info("Commit message model unavailable: %s", exc)
            raise GenerationUnavailableError(str(exc)) from exc

        message = clean_message(text)
        if not message:
            raise GenerationError("The model returned an empty commit message.")
        return message

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _stream_message(self, snapshot: StatusSnapshot, cancellation: CancellationHandle) -> str:
        client = self._ensure_client()
        chunks: list[str] = []
        final: str | None = None
        async for event in client.stream_chat(build_commit_prompt(snapshot), max_tokens=self._max_tokens):
            cancellation.raise_if_cancelled()
            if event.type == "content.delta" and event.content:
                chunks.append(event.content)
            elif event.type == "content.done" and event.content:
                final = event.content
            elif event.type == "refusal.done":
                raise GenerationError(event.content or "The model refused to write a commit message.")
        return final if final is not None else "".join(chunks)

    def _ensure_client(self) -> AIClient:
        if self._client is None:
            self._client = self._client_factory(self._settings)
        return self._client


__all__ = [
    "GenerationError",
    "GenerationUnavailableError",
    "MessageGenerator",
    "OpenAICommitMessageGenerator",
]
