"""Gmail inbox adapter and the poller that turns new mail into tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Callable

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error
from pydantic import BaseModel, ConfigDict, Field

from ops_pilot.connectors import ConnectorRegistry
from ops_pilot.errors import MailboxAuthError, MailboxError
from ops_pilot.ingestion.dedup import admit_unseen, derive_task_id
from ops_pilot.ingestion.dispatch import build_task
from ops_pilot.ingestion.scheduling import PeriodicJob
from ops_pilot.models import PipelineStage, SourceChannel, Task, TraceStep
from ops_pilot.storage.base import TaskStorage
from ops_pilot.trace import TraceRecorder

logger = logging.getLogger(__name__)


class MailItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remote_id: str
    thread_id: str = ""
    snippet: str = ""
    subject: str = "(No Subject)"
    sender: str = Field(default="Unknown Sender", alias="from")
    received_at: datetime | None = None


class GmailClient:
    """Read-only Gmail API client authenticated with an OAuth access token.

    ``service_factory`` turns a token into a Gmail API resource. The default
    builds one with ``googleapiclient``; tests hand in a stub.
    """

    def __init__(self, *, service_factory: Callable[[str], Any] | None = None) -> None:
        self.service_factory = service_factory or build_gmail_service

    async def fetch_recent(self, access_token: str, max_results: int = 8) -> list[MailItem]:
        return await asyncio.to_thread(self._fetch_recent, access_token, max_results)

    def _fetch_recent(self, access_token: str, max_results: int) -> list[MailItem]:
        service = self.service_factory(access_token)
        listing = _execute(
            service.users().messages().list(userId="me", maxResults=max_results, q="label:inbox")
        )
        messages = listing.get("messages") or []

        items: list[MailItem] = []
        for message in messages:
            message_id = message.get("id") if isinstance(message, dict) else None
            if not message_id:
                continue
            try:
                detail = _execute(service.users().messages().get(userId="me", id=message_id))
            except MailboxAuthError:
                raise
            except MailboxError as exc:
                logger.warning("gmail event=detail_failed message_id=%s reason=%s", message_id, exc)
                continue
            items.append(parse_message(detail))
        return items


def build_gmail_service(access_token: str) -> Any:
    credentials = Credentials(token=access_token)
    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


def _execute(api_request: Any) -> dict[str, Any]:
    try:
        payload = api_request.execute()
    except HttpError as exc:
        if exc.resp.status == 401:
            raise MailboxAuthError("Gmail rejected the access token (401)") from exc
        raise MailboxError(f"Gmail request failed with status {exc.resp.status}") from exc
    except (HttpLib2Error, OSError) as exc:
        raise MailboxError(f"Gmail request failed: {exc}") from exc
    if not isinstance(payload, dict):
        raise MailboxError("Gmail response must be a JSON object")
    return payload


def parse_message(detail: dict[str, Any]) -> MailItem:
    payload = detail.get("payload") or {}
    headers = payload.get("headers") or []
    subject = _header(headers, "Subject") or "(No Subject)"
    sender = _header(headers, "From") or "Unknown Sender"
    return MailItem(
        remote_id=str(detail.get("id", "")),
        thread_id=str(detail.get("threadId", "")),
        snippet=str(detail.get("snippet", "")),
        subject=subject,
        sender=sender,
        received_at=_parse_internal_date(detail.get("internalDate")),
    )


def mail_item_to_task(item: MailItem) -> Task:
    return build_task(
        task_id=derive_task_id("gmail", item.remote_id),
        source=SourceChannel.GMAIL,
        content=f"Subject: {item.subject}\n\n{item.snippet}...",
        sender=item.sender,
        created_at=item.received_at,
    )


class MailboxPoller(PeriodicJob):
    """Polls the live Gmail connector and admits mail not yet seen."""

    name = "gmail_poller"

    def __init__(
        self,
        *,
        store: TaskStorage,
        registry: ConnectorRegistry,
        trace: TraceRecorder,
        client: GmailClient,
        interval_s: float = 60.0,
        max_results: int = 8,
    ) -> None:
        super().__init__(interval_s=interval_s, run_immediately=True)
        self.store = store
        self.registry = registry
        self.trace = trace
        self.client = client
        self.max_results = max_results

    async def run_once(self) -> None:
        await self.poll_once()

    async def poll_once(self) -> list[Task]:
        connector = self.registry.get(SourceChannel.GMAIL)
        if not connector.polls_live or not connector.credential:
            return []

        try:
            items = await self.client.fetch_recent(connector.credential, self.max_results)
        except MailboxAuthError:
            logger.warning("gmail event=auth_expired action=disconnect")
            self.registry.disconnect(SourceChannel.GMAIL)
            self.trace.record(
                PipelineStage.INGESTION,
                "Gmail Auth expired. Please reconnect.",
                TraceStep.RESULT,
            )
            self.stop()
            return []
        except MailboxError as exc:
            logger.warning("gmail event=poll_failed reason=%s", exc)
            return []

        # The connector may have been disconnected while the fetch was in flight.
        if not self.registry.get(SourceChannel.GMAIL).polls_live:
            logger.info("gmail event=poll_discarded reason=disconnected fetched=%d", len(items))
            return []

        admitted = admit_unseen(
            self.store, (mail_item_to_task(item) for item in items if item.remote_id)
        )
        self.registry.mark_synced(SourceChannel.GMAIL)
        if admitted:
            logger.info("gmail event=poll admitted=%d fetched=%d", len(admitted), len(items))
            self.trace.record(
                PipelineStage.INGESTION,
                f"Gmail API: Fetched {len(admitted)} new real emails",
                TraceStep.ACTION,
                {"task_ids": [task.task_id for task in admitted]},
            )
        return admitted


def _header(headers: list[Any], name: str) -> str | None:
    for header in headers:
        if isinstance(header, dict) and header.get("name") == name:
            value = header.get("value")
            return str(value) if value is not None else None
    return None


def _parse_internal_date(value: Any) -> datetime | None:
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000.0, tz=UTC)
