"""
Base adapter module for Icebreaker.

This module defines the interface shared by all language model adapters and
the factory that creates them by provider name.
"""

from icebreaker.adapters.base.adapter import (
    AdapterConfig,
    AdapterFactory,
    GenerationParams,
    ModelAdapter,
    ProviderUnavailable,
)

__all__ = ["AdapterConfig", "AdapterFactory", "GenerationParams", "ModelAdapter", "ProviderUnavailable"]
