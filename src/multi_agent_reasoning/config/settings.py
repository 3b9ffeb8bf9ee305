"""Application settings."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from multi_agent_reasoning.config.providers import ProviderProfile, get_profile
from multi_agent_reasoning.errors import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parents[3]
MIN_API_KEY_LENGTH = 20

SearchMode = Literal["always", "never", "auto"]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "multi-agent-reasoning"
    app_env: str = "dev"
    llm_provider: str = "openai"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    llm_timeout_s: float = Field(default=60.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=1.0, ge=0.0)
    search_mode: SearchMode = "auto"
    max_retries: int = Field(default=2, ge=0)
    proposal_fanout: int = Field(default=3, ge=1)
    reasoning_effort_enabled: bool = False
    source_cap: int = Field(default=5, ge=1)
    min_source_relevance: float = Field(default=0.3, ge=0.0, le=1.0)
    per_domain_cap: int = Field(default=2, ge=1)
    save_evidence: bool = False
    evidence_dir: str = "."

    model_config = SettingsConfigDict(
        env_prefix="REASONING_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def profile(self) -> ProviderProfile:
        try:
            return get_profile(self.llm_provider)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    def resolved_api_key(self) -> str:
        provider = self.profile().name
        if provider == "groq":
            return self.groq_api_key or os.getenv("GROQ_API_KEY", "")
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_base_url(self) -> str:
        if self.profile().name == "groq":
            return self.groq_base_url
        return self.openai_base_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def validate_credentials(settings: Settings) -> None:
    """Fail fast when the selected provider has no usable API key."""
    profile = settings.profile()
    env_name = f"{profile.name.upper()}_API_KEY"
    api_key = settings.resolved_api_key()
    if not api_key:
        raise ConfigurationError(
            f"{env_name} environment variable is not set. "
            f"Set it with: export {env_name}=your_key_here"
        )
    if len(api_key) < MIN_API_KEY_LENGTH:
        raise ConfigurationError(f"{env_name} appears to be invalid (too short)")


@dataclass(frozen=True)
class RunConfig:
    """Immutable knobs threaded through the core for one run."""

    provider: str = "openai"
    search_mode: SearchMode = "auto"
    max_retries: int = 2
    proposal_fanout: int = 3
    reasoning_effort_enabled: bool = False
    source_cap: int = 5
    min_source_relevance: float = 0.3
    per_domain_cap: int = 2

    @classmethod
    def from_settings(cls, settings: Settings) -> RunConfig:
        profile = settings.profile()
        return cls(
            provider=profile.name,
            search_mode=settings.search_mode,
            max_retries=settings.max_retries,
            proposal_fanout=max(1, min(settings.proposal_fanout, profile.max_fanout)),
            reasoning_effort_enabled=(
                settings.reasoning_effort_enabled and profile.supports_reasoning_effort
            ),
            source_cap=settings.source_cap,
            min_source_relevance=settings.min_source_relevance,
            per_domain_cap=settings.per_domain_cap,
        )

    def fanout_for(self, kind: str) -> int:
        if kind == "verify":
            return min(2, self.proposal_fanout)
        return self.proposal_fanout
