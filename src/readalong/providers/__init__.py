# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Speech provider factory and registry.

This module provides a factory pattern for creating speech providers and
managing the registry of available providers and their models.
"""

from collections.abc import Callable
from functools import partial
from typing import Any

from ..speech_provider import ModelInfo, SpeechProvider
from .vosk_provider import VoskSpeechProvider

# Registry of available providers
PROVIDER_REGISTRY: dict[str, type[VoskSpeechProvider]] = {
    "vosk": VoskSpeechProvider,
}


def _provider_class(provider_name: str) -> type[VoskSpeechProvider]:
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if not provider_class:
        available = ", ".join(PROVIDER_REGISTRY.keys())
        raise ValueError(
            f"Unknown provider: {provider_name}. Available providers: {available}"
        )
    return provider_class


def create_provider(provider_name: str, model_id: str, **options: Any) -> SpeechProvider:
    """
    Factory function to create a speech provider.

    Args:
        provider_name: Name of the provider ("vosk")
        model_id: Model identifier to use
        **options: Provider specific options (model_path, device, chunk_ms, ...)

    Returns:
        Provider instance, not yet started

    Raises:
        ValueError: If provider_name is not registered
    """
    return _provider_class(provider_name)(model_id, **options)


def provider_factory(provider_name: str, model_id: str, **options: Any) -> Callable[[], SpeechProvider]:
    """A zero-argument factory producing a fresh provider on every call."""
    _provider_class(provider_name)
    return partial(create_provider, provider_name, model_id, **options)


def get_all_available_models() -> list[ModelInfo]:
    """
    Get all available models from all registered providers.

    Returns:
        List of ModelInfo objects from all providers
    """
    models: list[ModelInfo] = []
    for provider_class in PROVIDER_REGISTRY.values():
        models.extend(provider_class.get_available_models())
    return models


def is_model_downloaded(provider_name: str, model_id: str) -> bool:
    """Check if a model is already downloaded."""
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if not provider_class:
        return False
    return provider_class.is_downloaded(model_id)


def download_model_with_progress(
    provider_name: str,
    model_id: str,
    progress_callback: Callable[[str, int], None] | None = None
) -> str:
    """
    Download a model with progress tracking.

    Args:
        provider_name: Name of the provider ("vosk")
        model_id: Model identifier
        progress_callback: Optional callback(stage, percent) for progress updates

    Returns:
        Path to the downloaded model

    Raises:
        ValueError: If provider or model is not recognized
    """
    return _provider_class(provider_name).download_model(model_id, progress_callback=progress_callback)


__all__ = [
    "create_provider",
    "provider_factory",
    "get_all_available_models",
    "is_model_downloaded",
    "download_model_with_progress",
    "PROVIDER_REGISTRY",
    "VoskSpeechProvider",
]
