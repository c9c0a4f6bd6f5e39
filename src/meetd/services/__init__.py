"""Meetd services: proposal lifecycle, availability, accounts and maintenance."""

from .accounts import WebhookTestResult, register_user, register_webhook, remove_webhook, send_test_webhook
from .availability import query_availability
from .maintenance import MaintenanceLoop, MaintenanceStats
from .proposals import CalendarFactory, ProposalService, new_proposal_id

__all__ = [
    "CalendarFactory",
    "MaintenanceLoop",
    "MaintenanceStats",
    "ProposalService",
    "WebhookTestResult",
    "new_proposal_id",
    "query_availability",
    "register_user",
    "register_webhook",
    "remove_webhook",
    "send_test_webhook",
]
