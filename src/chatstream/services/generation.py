from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence

import openai

from chatstream.ai.configuration import GenerationConfig
from chatstream.ai.utils import Turn, build_prompt_messages, chunk_text, load_chat_model
from chatstream.core.cancellation import CancellationToken
from chatstream.core.errors import (
    Cancelled,
    ProviderError,
    ProviderErrorKind,
    TransportError,
)
from chatstream.dto.events import StreamEvent, TokenEvent

logger = logging.getLogger(__name__)

Emit = Callable[[StreamEvent], Awaitable[None]]


class GenerationProvider(Protocol):
    def open_stream(self, messages: List[Turn]) -> AsyncIterator[str]: ...


class ChatModelProvider:
    """Streams text increments from a LangChain chat model."""

    def __init__(self, config: GenerationConfig):
        self.config = config

    async def open_stream(self, messages: List[Turn]) -> AsyncIterator[str]:
        model = load_chat_model(self.config)
        async for chunk in model.astream(messages):
            text = chunk_text(chunk.content)
            if text:
                yield text


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_provider_error(exc: BaseException) -> ProviderError:
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, (ConnectionError, openai.APIConnectionError)):
        return ProviderError(ProviderErrorKind.CONNECTION, str(exc))

    status = _status_of(exc)
    if status == 429:
        kind = ProviderErrorKind.RATE_LIMITED
    elif status is not None and status >= 500:
        kind = ProviderErrorKind.UNAVAILABLE
    else:
        kind = ProviderErrorKind.UNKNOWN
    return ProviderError(kind, str(exc) or type(exc).__name__)


class GenerationAdapter:
    """Runs one generation call and forwards each increment as a token event.

    ``generate`` returns the full text only when the provider finished and the
    token was never cancelled; every other outcome raises. Client
    notification for provider failures is left to the caller.
    """

    def __init__(self, provider: GenerationProvider, config: GenerationConfig):
        self.provider = provider
        self.config = config

    async def generate(
        self,
        prompt: str,
        history: Optional[Sequence[Turn]],
        token: CancellationToken,
        emit: Emit,
    ) -> str:
        self.config.require_api_key()
        token.raise_if_cancelled(before_start=True)

        messages = build_prompt_messages(prompt, history, self.config.system_prompt)
        parts: List[str] = []
        stream: Optional[AsyncIterator[str]] = None
        try:
            stream = self.provider.open_stream(messages)
            async for piece in stream:
                token.raise_if_cancelled()
                if not piece:
                    continue
                parts.append(piece)
                await emit(TokenEvent(content=piece))
        except (Cancelled, TransportError, ProviderError):
            raise
        except Exception as e:
            raise classify_provider_error(e) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        token.raise_if_cancelled()
        logger.debug("generation finished: %d increments", len(parts))
        return "".join(parts)
