"""OpenAI-backed reasoning backend.

Blocking ``urllib`` requests run in a worker thread so the event loop stays
free while a stage waits on the network. Every failure on the way (HTTP
status, transport, JSON, schema validation) surfaces as ``BackendError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, TypeVar
from urllib import error, request

from pydantic import BaseModel, ValidationError

from ops_pilot.backends.base import DecisionRequest, ExecutionRequest
from ops_pilot.errors import BackendError
from ops_pilot.models import Classification, Decision, OutputType

TModel = TypeVar("TModel", bound=BaseModel)
logger = logging.getLogger(__name__)

CLASSIFIER_SYSTEM_PROMPT = (
    "You are the Task Classifier Agent for OpsPilot. Classify the incoming message into a "
    "type (ACTION_ITEM, QUESTION, INFORMATIONAL), determine its priority (HIGH, MEDIUM, LOW), "
    "extract key entities and write a one-sentence summary. Return JSON only."
)

DECISION_SYSTEM_PROMPT = (
    "You are the Decision Agent for OpsPilot. Decide the next best action. "
    "If the message asks for a document, software feature or specs, the action is "
    "'Generate PRD' with outputType PRD. If it requires a reply, the action is 'Draft Email' "
    "with outputType EMAIL. If it is informational, the action is 'Update Knowledge Base' "
    "with outputType NONE. Use outputType SUMMARY when a digest is the most useful artifact. "
    "Return JSON only."
)

EXECUTION_SYSTEM_PROMPT = "You are the Execution Agent for OpsPilot. Write the requested artifact."


class OpenAIReasoningBackend:
    """Live backend using the chat completions REST API."""

    name = "live"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 20.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
    ) -> None:
        if not api_key:
            raise BackendError("OpenAI API key is missing")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    async def classify(self, raw_content: str, sender: str) -> Classification:
        user_prompt = (
            f"Analyze the following incoming message from {sender}.\n\n"
            f'Message: "{raw_content}"'
        )
        return await self._generate_structured(
            system_prompt=CLASSIFIER_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            response_model=Classification,
        )

    async def decide(self, request: DecisionRequest) -> Decision:
        user_prompt = (
            "Context:\n"
            f"- Task Summary: {request.summary}\n"
            f"- Type: {request.type.value}\n"
            f"- Priority: {request.priority.value}\n"
            f"- Sender: {request.sender}\n"
            f'- Original Message: "{request.raw_content}"'
        )
        return await self._generate_structured(
            system_prompt=DECISION_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            response_model=Decision,
        )

    async def execute(self, request: ExecutionRequest) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": EXECUTION_SYSTEM_PROMPT},
                {"role": "user", "content": execution_prompt(request)},
            ],
        }
        response_json = await asyncio.to_thread(self._request_with_retry, payload)
        text = self._extract_content(response_json).strip()
        return text or "No content generated."

    async def _generate_structured(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        response_model: type[TModel],
    ) -> TModel:
        payload = {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": response_model.__name__.lower(),
                    "strict": False,
                    "schema": response_model.model_json_schema(by_alias=True),
                },
            },
        }
        response_json = await asyncio.to_thread(self._request_with_retry, payload)
        content = self._extract_content(response_json)
        try:
            parsed = json.loads(content)
            return response_model.model_validate(parsed)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise BackendError(
                f"LLM {response_model.__name__} response failed validation: {exc}"
            ) from exc

    def _request_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._request(payload)
            except BackendError as exc:
                last_error = exc
                logger.warning(
                    "OpenAI request failed attempt=%d/%d model=%s reason=%s",
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)
        if last_error is None:
            raise BackendError("LLM request failed with unknown error")
        raise last_error

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
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
            message = exc.read().decode("utf-8", errors="replace")
            raise BackendError(
                f"LLM request failed with status {exc.code}: {message[:400]}"
            ) from exc
        except (error.URLError, TimeoutError) as exc:
            reason = getattr(exc, "reason", exc)
            raise BackendError(f"LLM request failed: {reason}") from exc

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            raise BackendError("LLM returned non-JSON response") from exc
        if not isinstance(payload, dict):
            raise BackendError("LLM response must be a JSON object")
        return payload

    @staticmethod
    def _extract_content(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices") if isinstance(response_json, dict) else None
        if not isinstance(choices, list) or not choices:
            raise BackendError("LLM response did not contain choices")

        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise BackendError("LLM response choice has no message object")
        content = message.get("content", "")
        if isinstance(content, str) and content.strip():
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict) and isinstance(item.get("text"), str):
                    parts.append(item["text"])
            merged = "".join(parts).strip()
            if merged:
                return merged
        raise BackendError("LLM response content is empty")


def execution_prompt(request: ExecutionRequest) -> str:
    """Kind-specific generation prompt for the execution stage."""
    if request.output_type == OutputType.PRD:
        return (
            "Generate a structured Product Requirement Document (PRD) in Markdown based on this "
            f'request: "{request.raw_content}". Include Problem, Goals, User Stories, and Tech Stack.'
        )
    if request.output_type == OutputType.EMAIL:
        return (
            f"Draft a professional, concise follow-up email to {request.sender} regarding: "
            f'"{request.summary}". Use a helpful tone.'
        )
    return (
        "Generate a detailed summary and actionable bullet points for this content: "
        f'"{request.raw_content}"'
    )
