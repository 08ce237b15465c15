"""Builds the provider rotation from settings."""

import logging
from collections.abc import Callable

from streamgate.config.settings import Settings
from streamgate.core.errors import ConfigurationError
from streamgate.providers.base import ChatProvider
from streamgate.providers.chat_completions import ChatCompletionsProvider
from streamgate.providers.responses import ResponsesProvider
from streamgate.rotation.rotator import Rotator

logger = logging.getLogger("streamgate.providers")


def _openai(settings: Settings) -> ChatProvider:
    return ResponsesProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        temperature=settings.openai_temperature,
        max_output_tokens=settings.openai_max_output_tokens,
        top_p=settings.top_p,
        store=settings.openai_store,
    )


def _groq(settings: Settings) -> ChatProvider:
    return ChatCompletionsProvider(
        provider_name="groq",
        api_key=settings.groq_api_key,
        base_url=settings.groq_base_url,
        model=settings.groq_model,
        temperature=settings.groq_temperature,
        max_tokens=settings.groq_max_tokens,
        top_p=settings.top_p,
    )


def _cerebras(settings: Settings) -> ChatProvider:
    return ChatCompletionsProvider(
        provider_name="cerebras",
        api_key=settings.cerebras_api_key,
        base_url=settings.cerebras_base_url,
        model=settings.cerebras_model,
        temperature=settings.cerebras_temperature,
        max_tokens=settings.cerebras_max_tokens,
        top_p=settings.top_p,
    )


PROVIDER_FACTORIES: dict[str, Callable[[Settings], ChatProvider]] = {
    "openai": _openai,
    "groq": _groq,
    "cerebras": _cerebras,
}


def build_providers(settings: Settings) -> list[ChatProvider]:
    providers: list[ChatProvider] = []
    for name in settings.provider_names:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            raise ConfigurationError(f"Unsupported provider in SG_PROVIDERS: {name}")
        providers.append(factory(settings))
        logger.info("provider_registered", extra={"provider": name})
    return providers


def build_rotator(settings: Settings) -> Rotator[ChatProvider]:
    return Rotator(build_providers(settings), state_file=settings.rotation_state_file)
