"""Ticket domain models and services."""

from .audit import AuditAction, AuditEntry, AuditRecorder, format_message
from .lifecycle import TicketLifecycle, UpdateOutcome
from .models import Comment, KnowledgeSuggestion, Ticket, TicketSummary, TicketUpdateRequest
from .repository import TicketRepository
from .service import CommentView, TicketScope, TicketService
from .sla import due_instant
from .state import SLAStatus, TicketPriority, TicketStateMachine, TicketStatus
from .sweeper import SLABreachScheduler, SLABreachSweeper
from .timeline import TimelineEvent, compose_timeline
from .triage import GeminiTriageClassifier, TriageAdapter, TriageResult

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditRecorder",
    "Comment",
    "CommentView",
    "GeminiTriageClassifier",
    "KnowledgeSuggestion",
    "SLABreachScheduler",
    "SLABreachSweeper",
    "SLAStatus",
    "Ticket",
    "TicketLifecycle",
    "TicketPriority",
    "TicketRepository",
    "TicketScope",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "TicketSummary",
    "TicketUpdateRequest",
    "TimelineEvent",
    "TriageAdapter",
    "TriageResult",
    "compose_timeline",
    "due_instant",
    "format_message",
]
