"""Per-run choice between the live and the simulated backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ops_pilot.backends.base import ReasoningBackend
from ops_pilot.backends.llm import OpenAIReasoningBackend
from ops_pilot.backends.simulated import SimulatedReasoningBackend
from ops_pilot.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendSelection:
    backend: ReasoningBackend
    mode: str
    reason: str


class BackendSelector:
    """Chooses the backend once per run from credential availability.

    A key supplied at runtime wins over the environment default.
    """

    def __init__(self, settings: Settings, *, user_api_key: str | None = None) -> None:
        self.settings = settings
        self._user_api_key = (user_api_key or "").strip()

    def set_user_api_key(self, api_key: str | None) -> None:
        self._user_api_key = (api_key or "").strip()

    def credential(self) -> tuple[str, str]:
        if self._user_api_key:
            return self._user_api_key, "user"
        env_key = self.settings.resolved_openai_api_key().strip()
        if env_key:
            return env_key, "environment"
        return "", "none"

    def describe(self) -> tuple[str, str]:
        """Mode the next run would use and where its credential comes from."""
        api_key, origin = self.credential()
        if api_key and self._provider_supported():
            return "live", origin
        return "simulation", origin

    def select(self) -> BackendSelection:
        api_key, origin = self.credential()
        if not api_key:
            return BackendSelection(
                backend=SimulatedReasoningBackend(delay_s=self.settings.simulated_stage_delay_s),
                mode="simulation",
                reason="no API key configured",
            )

        if not self._provider_supported():
            logger.warning(
                "backend_select event=fallback reason=unsupported_provider provider=%s",
                self.settings.llm_provider,
            )
            return BackendSelection(
                backend=SimulatedReasoningBackend(delay_s=self.settings.simulated_stage_delay_s),
                mode="simulation",
                reason=f"unsupported LLM provider: {self.settings.llm_provider}",
            )

        return BackendSelection(
            backend=OpenAIReasoningBackend(
                api_key=api_key,
                model=self.settings.llm_model,
                base_url=self.settings.llm_base_url,
                timeout_s=self.settings.llm_timeout_s,
                max_retries=self.settings.llm_max_retries,
                backoff_s=self.settings.llm_backoff_s,
            ),
            mode="live",
            reason=f"API key from {origin}",
        )

    def _provider_supported(self) -> bool:
        return self.settings.llm_provider.lower().strip() == "openai"
