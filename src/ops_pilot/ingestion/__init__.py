"""Producers of inbound signals."""

from ops_pilot.ingestion.dedup import admit_unseen, derive_task_id
from ops_pilot.ingestion.dispatch import DEFAULT_SENDERS, build_task, dispatch_signal, new_task_id
from ops_pilot.ingestion.gmail import GmailClient, MailboxPoller, MailItem, mail_item_to_task
from ops_pilot.ingestion.simulator import MESSAGE_TEMPLATES, TrafficSimulator
from ops_pilot.ingestion.supervisor import IngestionSupervisor

__all__ = [
    "DEFAULT_SENDERS",
    "GmailClient",
    "IngestionSupervisor",
    "MESSAGE_TEMPLATES",
    "MailItem",
    "MailboxPoller",
    "TrafficSimulator",
    "admit_unseen",
    "build_task",
    "derive_task_id",
    "dispatch_signal",
    "mail_item_to_task",
    "new_task_id",
]
