import logging
from typing import Any, List, Optional, Sequence, Tuple

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel

from chatstream.ai.configuration import GenerationConfig

logger = logging.getLogger(__name__)

Turn = Tuple[str, str]


def load_chat_model(config: GenerationConfig) -> BaseChatModel:
    provider, model = config.provider_and_model()
    api_key = config.require_api_key()

    kwargs: dict[str, Any] = {"temperature": config.temperature, "api_key": api_key}
    if config.max_tokens:
        kwargs["max_tokens"] = config.max_tokens

    logger.debug("loading chat model provider=%r model=%r", provider, model)
    return init_chat_model(model, model_provider=provider, **kwargs)


def build_prompt_messages(
    prompt: str,
    history: Optional[Sequence[Turn]] = None,
    system_prompt: Optional[str] = None,
) -> List[Turn]:
    """Role-labelled turns: system prompt, prior turns oldest first, then the new prompt."""
    messages: List[Turn] = []
    if system_prompt:
        messages.append(("system", system_prompt))
    for role, content in history or ():
        if content:
            messages.append((role, content))
    messages.append(("user", prompt))
    return messages


def chunk_text(content: Any) -> str:
    # some providers stream a list of content blocks instead of a plain string
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text") or "")
        return "".join(parts)
    return ""
