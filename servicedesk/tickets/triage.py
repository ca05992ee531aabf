"""Boundary around the external AI triage classifier.

The classifier is consulted exactly once per ticket creation. Whatever it
returns (or fails to return) is passed through :func:`normalize_triage`, which
owns the defaulting policy, so ticket creation never observes a classifier
failure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

import httpx

from servicedesk.core.errors import ClassifierFailure

from .models import KnowledgeSuggestion, TicketSummary
from .state import RequestedTimeline, TicketPriority

logger = logging.getLogger(__name__)

DEFAULT_TEAM = "Other / General"
DEFAULT_PRIORITY = TicketPriority.MEDIUM
MAX_KNOWLEDGE_SUGGESTIONS = 2

SUGGESTED_TEAMS: tuple[str, ...] = (
    "IT Support",
    "HR / People Ops",
    "Engineering",
    "Operations",
    "Finance",
    "Facilities",
    "Security / Compliance",
    "Procurement",
    "Legal",
    DEFAULT_TEAM,
)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class TicketDraft:
    """Ticket fields shown to the classifier."""

    email: str
    title: str
    description: str
    name: str | None = None
    department: str | None = None
    affected_system: str | None = None
    is_blocking: bool = False
    requested_timeline: RequestedTimeline | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "name": self.name,
            "department": self.department,
            "title": self.title,
            "description": self.description,
            "affectedSystem": self.affected_system,
            "isBlocking": bool(self.is_blocking),
            "requestedTimeline": self.requested_timeline.value if self.requested_timeline else None,
        }


@dataclass(slots=True, frozen=True)
class TriageResult:
    assigned_team: str = DEFAULT_TEAM
    priority: TicketPriority = DEFAULT_PRIORITY
    summary: TicketSummary = field(default_factory=TicketSummary)
    knowledge_suggestions: tuple[KnowledgeSuggestion, ...] = ()
    fallback: bool = False


class TriageClassifier(Protocol):
    async def classify(self, draft: TicketDraft) -> Mapping[str, Any]:
        """Return the classifier's raw structured answer or raise ``ClassifierFailure``."""
        ...


def build_triage_prompt(draft: TicketDraft) -> str:
    teams = ", ".join(SUGGESTED_TEAMS)
    request_json = json.dumps(draft.as_payload(), ensure_ascii=False)
    return f"""
Return ONLY valid JSON. No markdown. No explanation.

You are an AI request triage assistant for an internal company service desk.

Task:
Given the request details, produce:
- assignedTeam (FREE TEXT, one owning team)
- priority (HIGH|MEDIUM|LOW)
- summary {{ problem, impact, requestedAction }}
- knowledgeSuggestions: array of 0-{MAX_KNOWLEDGE_SUGGESTIONS} items {{ title, reason }}

Teams available (you may choose one or a close variant as free text):
{teams}.

Priority rules:
- HIGH if work is blocked OR timeline is ASAP OR major business impact.
- MEDIUM for normal operational issues.
- LOW for informational / non-urgent requests.

Request JSON:
{request_json}

Output JSON schema:
{{
  "assignedTeam": "string",
  "priority": "HIGH|MEDIUM|LOW",
  "summary": {{
    "problem": "string",
    "impact": "string",
    "requestedAction": "string"
  }},
  "knowledgeSuggestions": [
    {{ "title": "string", "reason": "string" }}
  ]
}}
""".strip()


def parse_classifier_output(text: str | None) -> Mapping[str, Any]:
    """Parse the classifier's text as JSON, tolerating one layer of code fences."""

    raw = text or ""
    try:
        parsed = json.loads(raw)
    except ValueError:
        cleaned = _FENCE_RE.sub("", raw).strip()
        try:
            parsed = json.loads(cleaned)
        except ValueError as exc:
            raise ClassifierFailure(f"Classifier returned unparseable output: {exc}") from exc
    if not isinstance(parsed, Mapping):
        raise ClassifierFailure("Classifier output is not a JSON object")
    return parsed


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _normalize_suggestions(value: Any) -> tuple[KnowledgeSuggestion, ...]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    suggestions: list[KnowledgeSuggestion] = []
    for item in value:
        if len(suggestions) == MAX_KNOWLEDGE_SUGGESTIONS:
            break
        if not isinstance(item, Mapping):
            continue
        title = _optional_text(item.get("title"))
        if title is None:
            continue
        suggestions.append(KnowledgeSuggestion(title=title, reason=_optional_text(item.get("reason"))))
    return tuple(suggestions)


def normalize_triage(payload: Mapping[str, Any] | None) -> TriageResult:
    """Apply the defaulting and truncation policy to a classifier answer."""

    if not payload:
        return TriageResult(fallback=True)

    team = payload.get("assignedTeam")
    assigned_team = team.strip() if isinstance(team, str) and team.strip() else DEFAULT_TEAM

    try:
        priority = TicketPriority(payload.get("priority"))
    except ValueError:
        priority = DEFAULT_PRIORITY

    summary_raw = payload.get("summary")
    if not isinstance(summary_raw, Mapping):
        summary_raw = {}
    summary = TicketSummary(
        problem=_optional_text(summary_raw.get("problem")),
        impact=_optional_text(summary_raw.get("impact")),
        requested_action=_optional_text(summary_raw.get("requestedAction")),
    )

    return TriageResult(
        assigned_team=assigned_team,
        priority=priority,
        summary=summary,
        knowledge_suggestions=_normalize_suggestions(payload.get("knowledgeSuggestions")),
    )


class GeminiTriageClassifier:
    """Classifier backed by the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # asyncio.wait_for in TriageAdapter bounds the whole call.
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def classify(self, draft: TicketDraft) -> Mapping[str, Any]:
        if not self._api_key:
            raise ClassifierFailure("Gemini API key is not configured")

        url = f"{self._base_url}/models/{self._model}:generateContent"
        body = {"contents": [{"parts": [{"text": build_triage_prompt(draft)}]}]}
        try:
            response = await self._get_client().post(
                url,
                json=body,
                headers={"x-goog-api-key": self._api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ClassifierFailure(f"Gemini request failed: {exc}") from exc

        return parse_classifier_output(self._extract_text(data))

    @staticmethod
    def _extract_text(data: Any) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ClassifierFailure("Gemini response has no candidate content") from exc
        return "".join(str(part.get("text", "")) for part in parts if isinstance(part, Mapping))


class TriageAdapter:
    """Consult the classifier once and always produce a usable triage result."""

    def __init__(self, classifier: TriageClassifier, *, timeout: float = 20.0) -> None:
        self._classifier = classifier
        self._timeout = timeout

    async def classify(self, draft: TicketDraft) -> TriageResult:
        try:
            payload = await asyncio.wait_for(self._classifier.classify(draft), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Triage classifier timed out after %.1fs; using default routing", self._timeout)
            return normalize_triage(None)
        except ClassifierFailure as exc:
            logger.warning("Triage classifier failed: %s; using default routing", exc)
            return normalize_triage(None)
        except Exception:  # any classifier defect falls back to default routing
            logger.exception("Triage classifier raised unexpectedly; using default routing")
            return normalize_triage(None)

        result = normalize_triage(payload)
        logger.info(
            "Triage classified ticket %r as team=%s priority=%s",
            draft.title,
            result.assigned_team,
            result.priority.value,
        )
        return result
