from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Literal, Protocol
from urllib import error, request

from pydantic import BaseModel, Field

from multi_agent_reasoning.config.providers import ProviderProfile
from multi_agent_reasoning.config.settings import Settings
from multi_agent_reasoning.errors import BackendRequestError
from multi_agent_reasoning.retry import RetryPolicy, is_transient_error

logger = logging.getLogger(__name__)

ReasoningEffort = Literal["low", "medium", "high"]


class UrlCitation(BaseModel):
    url: str
    title: str = ""
    start_index: int | None = None
    end_index: int | None = None


class Generation(BaseModel):
    """Text returned by one backend call plus any native url citations."""

    text: str
    citations: list[UrlCitation] = Field(default_factory=list)


class TextGenerator(Protocol):
    """Interface for plain-text completions."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        reasoning_effort: ReasoningEffort | None = None,
        require_search: bool = False,
    ) -> Generation: ...


class OpenAIChatCompletionsAdapter:
    """Small adapter for OpenAI-compatible chat completions REST APIs (OpenAI, Groq)."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        search_model: str | None = None,
        supports_reasoning_effort: bool = False,
        timeout_s: float = 60.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.search_model = search_model
        self.supports_reasoning_effort = supports_reasoning_effort
        self.timeout_s = timeout_s
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=2, base_delay_s=1.0, retryable=is_transient_error
        )

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        reasoning_effort: ReasoningEffort | None = None,
        require_search: bool = False,
    ) -> Generation:
        payload = self._build_payload(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            reasoning_effort=reasoning_effort,
            require_search=require_search,
        )
        response_json = self.retry_policy.call(
            lambda: self._request(payload), label=f"chat:{payload['model']}"
        )
        return self._parse_generation(response_json)

    def _build_payload(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        reasoning_effort: ReasoningEffort | None,
        require_search: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if require_search and self.search_model:
            # Search-preview models reject sampling parameters.
            payload["model"] = self.search_model
            payload["web_search_options"] = {}
        else:
            if require_search:
                logger.debug(
                    "llm event=search_unavailable model=%s action=plain_completion", self.model
                )
            payload["temperature"] = temperature
            if reasoning_effort and self.supports_reasoning_effort:
                payload["reasoning_effort"] = reasoning_effort
        return payload

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        if _trace_enabled():
            logger.warning(
                "LLM trace request model=%s url=%s timeout_s=%s",
                payload["model"],
                url,
                self.timeout_s,
            )
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise BackendRequestError(
                f"Chat completion request failed with status {exc.code}: {raw_error[:400]}",
                status=exc.code,
            ) from exc
        except error.URLError as exc:
            raise BackendRequestError(f"Chat completion request failed: {exc.reason}") from exc

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise BackendRequestError("Chat completion returned non-JSON response") from exc

    @staticmethod
    def _parse_generation(response_json: dict[str, Any]) -> Generation:
        choices = response_json.get("choices", [])
        if not choices:
            raise BackendRequestError("Chat completion response did not contain choices")

        message = choices[0].get("message", {})
        content = message.get("content", "")
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict) and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            text = "".join(parts).strip()
        elif isinstance(content, str):
            text = content.strip()
        else:
            text = ""
        if not text:
            raise BackendRequestError("Chat completion response content is empty")

        citations: list[UrlCitation] = []
        for annotation in message.get("annotations") or []:
            if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
                continue
            payload = annotation.get("url_citation")
            if isinstance(payload, dict) and isinstance(payload.get("url"), str):
                citations.append(UrlCitation.model_validate(payload))
        return Generation(text=text, citations=citations)


@dataclass(frozen=True)
class Backends:
    """Per-role generators for one run."""

    planner: TextGenerator
    solver: TextGenerator
    judge: TextGenerator
    search: TextGenerator


def build_backends(settings: Settings) -> Backends:
    profile: ProviderProfile = settings.profile()
    retry_policy = RetryPolicy(
        max_attempts=settings.llm_max_retries + 1,
        base_delay_s=settings.llm_backoff_s,
        retryable=is_transient_error,
    )

    def _adapter(model: str, *, search_model: str | None = None) -> OpenAIChatCompletionsAdapter:
        return OpenAIChatCompletionsAdapter(
            api_key=settings.resolved_api_key(),
            model=model,
            base_url=settings.resolved_base_url(),
            search_model=search_model,
            supports_reasoning_effort=(
                profile.supports_reasoning_effort and settings.reasoning_effort_enabled
            ),
            timeout_s=settings.llm_timeout_s,
            retry_policy=retry_policy,
        )

    return Backends(
        planner=_adapter(profile.planner_model),
        solver=_adapter(profile.solver_model),
        judge=_adapter(profile.judge_model),
        search=_adapter(profile.solver_model, search_model=profile.search_model),
    )


def _trace_enabled() -> bool:
    return os.getenv("REASONING_LLM_TRACE", "0").strip() == "1"
