
"""Model registry and chat-model construction — single place to swap providers.

Most registered models are reached through an OpenAI-compatible API and
served by ``ChatOpenAI``; Gemini models use ``ChatGoogleGenerativeAI``:

1. **OpenAI cloud** — set ``OPENAI_API_KEY``.
2. **OpenRouter** — set ``OPENROUTER_API_KEY``; requests go to
   ``OPENROUTER_BASE_URL`` with an ``X-Title`` header.
3. **vLLM** — set ``LLM_BASE_URL`` to an OpenAI-compatible server
   (e.g. ``http://llm-server:8000/v1``).
4. **Google** — set ``GEMINI_API_KEY``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from docchat.config import settings
from docchat.errors import ModelBackendError, UnknownModel

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    VLLM = "vllm"
    GOOGLE = "google"


@dataclass(frozen=True)
class ModelBinding:
    """A selectable model and how to reach it.

    Attributes
    ----------
    id:
        Identifier clients send in chat requests.
    name / description:
        Human-readable catalogue entries.
    provider:
        Which API serves the model.
    upstream_model:
        Model name sent to the provider; defaults to :attr:`id`.
    """

    id: str
    name: str
    description: str
    provider: ProviderKind
    upstream_model: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["provider"] = self.provider.value
        data.pop("upstream_model")
        return data


MODEL_REGISTRY: dict[str, ModelBinding] = {
    b.id: b
    for b in (
        ModelBinding("gemini-1.5-flash", "Gemini 1.5 Flash", "Fast and efficient Google AI model", ProviderKind.GOOGLE),
        ModelBinding("gemini-1.5-pro", "Gemini 1.5 Pro", "Advanced Google AI model with enhanced capabilities", ProviderKind.GOOGLE),
        ModelBinding("gpt-4o-mini", "GPT-4o Mini (OpenAI)", "Efficient OpenAI model for everyday tasks", ProviderKind.OPENAI),
        ModelBinding("openai/gpt-4o-mini", "GPT-4o Mini", "Efficient OpenAI model for everyday tasks", ProviderKind.OPENROUTER),
        ModelBinding("openai/gpt-4.1-mini", "GPT-4.1 Mini", "Capable, cost-efficient OpenAI model", ProviderKind.OPENROUTER),
        ModelBinding("openai/gpt-4.1-nano", "GPT-4.1 Nano", "Fastest GPT-4.1 variant", ProviderKind.OPENROUTER),
        ModelBinding("deepseek/deepseek-chat-v3-0324:free", "DeepSeek V3 Free", "Free DeepSeek V3 model", ProviderKind.OPENROUTER),
        ModelBinding("deepseek/deepseek-chat-v3-0324", "DeepSeek V3", "Most capable DeepSeek V3 model", ProviderKind.OPENROUTER),
        ModelBinding("vllm/local", "Self-hosted", "Model served by the in-cluster vLLM endpoint", ProviderKind.VLLM),
    )
}


def resolve_model(model_id: str) -> ModelBinding:
    """Look up *model_id* in :data:`MODEL_REGISTRY`.

    Raises
    ------
    UnknownModel
        If the id is not registered.
    """
    try:
        return MODEL_REGISTRY[model_id]
    except KeyError:
        raise UnknownModel(model_id) from None


def list_models() -> list[dict[str, str]]:
    return [b.to_dict() for b in MODEL_REGISTRY.values()]


def get_chat_model(binding: ModelBinding) -> BaseChatModel:
    """Return a streaming chat model client for *binding*."""
    if binding.provider is ProviderKind.GOOGLE:
        return ChatGoogleGenerativeAI(
            model=binding.upstream_model or binding.id,
            google_api_key=settings.gemini_api_key,
            temperature=settings.llm_temperature,
            max_output_tokens=settings.llm_max_tokens,
        )

    kwargs: dict = {
        "model": binding.upstream_model or binding.id,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_tokens,
        "streaming": True,
    }

    if binding.provider is ProviderKind.OPENROUTER:
        kwargs["base_url"] = settings.openrouter_base_url
        kwargs["api_key"] = settings.openrouter_api_key
        kwargs["default_headers"] = {"X-Title": settings.openrouter_app_title}
    elif binding.provider is ProviderKind.VLLM:
        if not settings.llm_base_url:
            raise ModelBackendError(f"Model {binding.id!r} needs LLM_BASE_URL to be set")
        logger.info("Using vLLM endpoint: %s", settings.llm_base_url)
        kwargs["model"] = binding.upstream_model or settings.llm_model_name
        kwargs["base_url"] = settings.llm_base_url
        # vLLM doesn't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Multi-part content blocks
        return "".join(
            part if isinstance(part, str) else part.get("text", "")
            for part in content
            if isinstance(part, (str, dict))
        )
    return ""


class ModelBackend:
    """Uniform streaming contract over any LangChain chat model."""

    def __init__(self, binding: ModelBinding, chat_model: BaseChatModel) -> None:
        self.binding = binding
        self._chat_model = chat_model

    async def stream(self, messages: list[BaseMessage]) -> AsyncIterator[str]:
        """Yield non-empty text fragments as the model produces them.

        Closing this iterator closes the provider stream. Provider
        failures surface as :class:`ModelBackendError`.
        """
        upstream = self._chat_model.astream(messages)
        try:
            async for chunk in upstream:
                text = _content_text(chunk.content)
                if text:
                    yield text
        except Exception as exc:
            raise ModelBackendError(f"Model {self.binding.id!r} failed: {exc}") from exc
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()


class ModelBackendFactory:
    """Resolves a model id to a :class:`ModelBackend` once and caches it.

    Parameters
    ----------
    chat_model_builder:
        Builds the LangChain chat model for a binding; defaults to
        :func:`get_chat_model`.
    """

    def __init__(self, chat_model_builder: Callable[[ModelBinding], BaseChatModel] = get_chat_model) -> None:
        self._builder = chat_model_builder
        self._backends: dict[str, ModelBackend] = {}

    def get(self, model_id: str) -> ModelBackend:
        backend = self._backends.get(model_id)
        if backend is None:
            binding = resolve_model(model_id)
            backend = ModelBackend(binding, self._builder(binding))
            self._backends[model_id] = backend
            logger.info("Bound model %s via %s", model_id, binding.provider.value)
        return backend
