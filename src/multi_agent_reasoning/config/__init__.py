"""Configuration layer: environment settings, provider profiles, run knobs."""

from multi_agent_reasoning.config.providers import (
    PROVIDER_PROFILES,
    SUPPORTED_PROVIDERS,
    ProviderProfile,
    get_profile,
)
from multi_agent_reasoning.config.settings import (
    RunConfig,
    Settings,
    get_settings,
    validate_credentials,
)

__all__ = [
    "PROVIDER_PROFILES",
    "ProviderProfile",
    "RunConfig",
    "SUPPORTED_PROVIDERS",
    "Settings",
    "get_profile",
    "get_settings",
    "validate_credentials",
]
