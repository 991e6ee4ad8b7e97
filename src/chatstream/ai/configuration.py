"""Define the configurable parameters for the generation provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from pydantic import SecretStr

from chatstream.core.config import Settings
from chatstream.core.errors import ProviderNotConfigured

# provider prefix in CHAT_MODEL -> (langchain model_provider, settings key name)
_PROVIDERS = {
    "": ("openai", "OPENAI_API_KEY"),
    "openai": ("openai", "OPENAI_API_KEY"),
    "google": ("google_genai", "GOOGLE_API_KEY"),
    "gemini": ("google_genai", "GOOGLE_API_KEY"),
}


@dataclass(kw_only=True)
class GenerationConfig:

    model: str = field(
        default="openai/gpt-4o-mini",
        metadata={
            "description": "Chat model as 'provider/model'. Providers: openai, google."
        },
    )

    temperature: float = field(default=0.7)

    max_tokens: Optional[int] = field(default=None)

    system_prompt: Optional[str] = field(
        default=None,
        metadata={"description": "Prepended to every prompt when set."},
    )

    openai_api_key: Optional[SecretStr] = field(default=None, repr=False)
    google_api_key: Optional[SecretStr] = field(default=None, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        return cls(
            model=settings.chat_model,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
            system_prompt=settings.system_prompt,
            openai_api_key=settings.openai_api_key,
            google_api_key=settings.google_api_key,
        )

    def _split_model(self) -> Tuple[str, str]:
        if "/" in self.model:
            prefix, name = self.model.split("/", maxsplit=1)
        else:
            prefix, name = "", self.model
        if prefix not in _PROVIDERS:
            raise ProviderNotConfigured(f"Unsupported chat model provider {prefix!r}")
        return prefix, name

    def provider_and_model(self) -> Tuple[str, str]:
        prefix, name = self._split_model()
        return _PROVIDERS[prefix][0], name

    def require_api_key(self) -> str:
        prefix, _ = self._split_model()
        provider, env_name = _PROVIDERS[prefix]
        key = self.google_api_key if provider == "google_genai" else self.openai_api_key
        if key is None or not key.get_secret_value():
            raise ProviderNotConfigured(f"{env_name} not configured")
        return key.get_secret_value()
