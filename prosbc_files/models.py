"""
prosbc_files.models
===================
Plain data records shared by the extractor, builder, transport and
orchestration layers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ResourceKind(enum.Enum):
    """The two file resources the appliance keeps per file database."""

    DEFINITION_FILE = "routesets_definitions"
    DIGIT_MAP_FILE = "routesets_digitmaps"

    @property
    def collection(self) -> str:
        return self.value

    @property
    def namespace(self) -> str:
        """Rails form-object prefix used for every field of this kind."""
        if self is ResourceKind.DIGIT_MAP_FILE:
            return "tbgw_routesets_digitmap"
        return "tbgw_routesets_definition"

    @property
    def section_label(self) -> str:
        """Legend text of this kind's fieldset on the listing page."""
        if self is ResourceKind.DIGIT_MAP_FILE:
            return "Routesets Digitmap:"
        return "Routesets Definition:"

    @property
    def short_name(self) -> str:
        return "DM" if self is ResourceKind.DIGIT_MAP_FILE else "DF"

    @classmethod
    def parse(cls, value: "str | ResourceKind") -> "ResourceKind":
        """Accept an enum member, a collection name, or a df/dm alias."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "df": cls.DEFINITION_FILE,
            "definition": cls.DEFINITION_FILE,
            "dm": cls.DIGIT_MAP_FILE,
            "digitmap": cls.DIGIT_MAP_FILE,
        }
        if key in aliases:
            return aliases[key]
        return cls(key)


class Operation(enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Outcome(enum.Enum):
    """How a write's result was established."""

    CONFIRMED = "confirmed"              # 2xx with a positive marker
    REDIRECT = "redirect"                # 3xx back to the listing
    OPAQUE_REDIRECT = "opaque_redirect"  # network error assumed to hide a redirect
    UNVERIFIED = "unverified"            # 2xx, no marker and no error text
    FAILED = "failed"


class Confidence(enum.Enum):
    CONFIRMED = "confirmed"
    HEURISTIC = "heuristic"


class ErrorKind(enum.Enum):
    SESSION = "session"
    TOKEN_NOT_FOUND = "token_not_found"
    VALIDATION = "validation"
    SERVER = "server"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    NETWORK = "network"
    HTTP = "http"
    INVALID_PAYLOAD = "invalid_payload"
    BUSY = "busy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ResourceDescriptor:
    """One appliance-side file record as scraped from the listing page."""

    kind: ResourceKind
    remote_id: str
    display_name: str
    edit_path: str
    export_path: str
    delete_path: str
    file_db_id: int = 1


@dataclass
class SessionState:
    token: str | None = None
    last_validated_at: datetime | None = None
    presumed_expired: bool = False


@dataclass(frozen=True)
class Payload:
    """Input to one logical write operation."""

    operation: Operation
    filename: str | None = None
    content: bytes | None = None
    record_id: str | None = None

    @property
    def size(self) -> int:
        return len(self.content) if self.content is not None else 0


@dataclass(frozen=True)
class ExtractedToken:
    token: str
    record_id: str | None = None
    strategy: str = ""


@dataclass(frozen=True)
class FormRequest:
    """A fully specified form submission, ready for the transport."""

    method: str
    path: str
    fields: dict[str, str]
    files: dict[str, tuple[str, bytes, str]] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    kind: ResourceKind | None = None
    operation: Operation | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OperationResult:
    success: bool
    http_status: int
    message: str
    attempts: int = 1
    raw_response_excerpt: str | None = None
    outcome: Outcome = Outcome.FAILED
    confidence: Confidence = Confidence.CONFIRMED
    note: str | None = None
    error_kind: ErrorKind | None = None
    details: str | None = None
    redirect_url: str | None = None
    kind: ResourceKind | None = None
    operation: Operation | None = None
    filename: str | None = None
    finished_at: datetime = field(default_factory=_utcnow)

    @property
    def is_heuristic(self) -> bool:
        return self.confidence is Confidence.HEURISTIC

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "http_status": self.http_status,
            "message": self.message,
            "attempts": self.attempts,
            "outcome": self.outcome.value,
            "confidence": self.confidence.value,
            "note": self.note,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "details": self.details,
            "redirect_url": self.redirect_url,
            "kind": self.kind.value if self.kind else None,
            "operation": self.operation.value if self.operation else None,
            "filename": self.filename,
            "finished_at": self.finished_at.isoformat(),
        }


@dataclass
class BatchResult:
    total_files: int
    results: list[OperationResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return not self.aborted and self.failure_count == 0
