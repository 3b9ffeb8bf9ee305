"""Model wiring per provider."""

from __future__ import annotations

from dataclasses import dataclass

SUPPORTED_PROVIDERS = ("openai", "groq")


@dataclass(frozen=True)
class ProviderProfile:
    name: str
    display_name: str
    planner_model: str
    solver_model: str
    judge_model: str
    # Model that can run the live-search tool; None when the provider has none.
    search_model: str | None
    max_fanout: int
    supports_reasoning_effort: bool

    def models(self) -> dict[str, str | None]:
        return {
            "planner": self.planner_model,
            "solver": self.solver_model,
            "judge": self.judge_model,
            "search": self.search_model,
        }


PROVIDER_PROFILES: dict[str, ProviderProfile] = {
    "openai": ProviderProfile(
        name="openai",
        display_name="OpenAI",
        planner_model="gpt-4o-mini",
        solver_model="gpt-4o-mini",
        judge_model="gpt-4o",
        search_model="gpt-4o-mini-search-preview",
        max_fanout=3,
        supports_reasoning_effort=False,
    ),
    "groq": ProviderProfile(
        name="groq",
        display_name="Groq",
        planner_model="llama-3.3-70b-versatile",
        solver_model="llama-3.3-70b-versatile",
        judge_model="llama-3.3-70b-versatile",
        search_model=None,
        max_fanout=2,
        supports_reasoning_effort=False,
    ),
}


def get_profile(provider: str) -> ProviderProfile:
    key = provider.lower().strip()
    profile = PROVIDER_PROFILES.get(key)
    if profile is None:
        raise ValueError(
            f"Unsupported provider: {provider!r}. Use one of {', '.join(SUPPORTED_PROVIDERS)}."
        )
    return profile
