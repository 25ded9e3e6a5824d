"""Domain models used throughout the recruiter chat assistant."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Iterable, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def utc_now_iso() -> str:
    return _utc_now().isoformat()


def new_message_id(prefix: str = "msg") -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


def dedupe_case_insensitive(values: Iterable[str]) -> List[str]:
    """Trim values, drop blanks and case-insensitive duplicates, keep first casing."""

    seen = set()
    ordered: List[str] = []
    for item in values:
        text = str(item).strip()
        if not text:
            continue
        lower = text.lower()
        if lower in seen:
            continue
        seen.add(lower)
        ordered.append(text)
    return ordered


def parse_skills(value: Union[str, Iterable[str], None]) -> List[str]:
    """Split a comma separated skill list into discrete, de-duplicated tokens.

    ``"IV Insertion, iv insertion, Patient Care"`` becomes
    ``["IV Insertion", "Patient Care"]``.
    """

    if value is None:
        return []
    if isinstance(value, str):
        return dedupe_case_insensitive(value.split(","))
    tokens: List[str] = []
    for item in value:
        tokens.extend(str(item).split(","))
    return dedupe_case_insensitive(tokens)


class MessageAuthor(str, Enum):
    user = "user"
    assistant = "assistant"
    participant = "participant"


class UserType(str, Enum):
    guest = "guest"
    candidate = "candidate"
    recruiter = "recruiter"


class PanelType(str, Enum):
    none = "none"
    auth = "auth"
    onboarding_profile = "onboarding_profile"
    documents_upload = "documents_upload"
    job_preferences = "job_preferences"
    skills_assessment = "skills_assessment"
    availability = "availability"
    recruiter_requests = "recruiter_requests"
    suggested_jobs = "suggested_jobs"
    public_profile = "public_profile"
    recruiter_messages = "recruiter_messages"
    found_candidates = "found_candidates"
    connect_request = "connect_request"
    candidate_messages = "candidate_messages"
    find_candidates = "find_candidates"


class OpenPanelAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["open_panel"] = "open_panel"
    label: Optional[str] = None
    panel: PanelType


class StartFlowAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["start_flow"] = "start_flow"
    label: Optional[str] = None
    flow: Literal["find_candidates"] = "find_candidates"


class LogOutAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["log_out"] = "log_out"
    label: Optional[str] = None


Action = Annotated[
    Union[OpenPanelAction, StartFlowAction, LogOutAction],
    Field(discriminator="kind"),
]

ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)


class ChatMessage(BaseModel):
    """A single transcript entry. Frozen once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    author: MessageAuthor
    text: str = ""
    actions: List[Action] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)


class Skill(BaseModel):
    name: str
    level: int = Field(default=1, ge=1, le=4)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> str:
        text = (value or "").strip()
        if not text:
            raise ValueError("skill name is required")
        return text


class DocumentVisibility(str, Enum):
    public = "public"
    gated = "gated"
    private = "private"


class UploadedFile(BaseModel):
    id: str
    user_id: Optional[str] = None
    file_path: str
    name: str
    size: int = 0
    type: str = "file"
    visibility: DocumentVisibility = DocumentVisibility.gated
    created_at: Optional[str] = None
    url: str = ""


class Profile(BaseModel):
    """The authenticated user's attributes joined with skills and documents."""

    id: str
    email: Optional[str] = None
    user_type: UserType = UserType.candidate
    name: Optional[str] = None
    title: Optional[str] = None
    profile_photo_url: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    shift: Optional[str] = None
    location: Optional[str] = None
    pay_expectations: Optional[str] = None
    contact_methods: List[Literal["call", "text"]] = Field(default_factory=list)
    time_zone: Optional[str] = None
    working_hours: Optional[str] = None
    call_available_hours: Optional[str] = None
    updated_at: Optional[str] = None
    skills: List[Skill] = Field(default_factory=list)
    documents: List[UploadedFile] = Field(default_factory=list)

    @field_validator("roles", "contact_methods", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Optional[Any]) -> Any:
        return [] if value is None else value

    @property
    def needs_onboarding(self) -> bool:
        return not self.name or not self.title


# Columns of the profile record itself; skills and documents live in their own collections.
PROFILE_RECORD_FIELDS = tuple(
    name for name in Profile.model_fields if name not in {"skills", "documents"}
)

# Columns a user may change through update_profile.
EDITABLE_PROFILE_FIELDS = tuple(
    name for name in PROFILE_RECORD_FIELDS if name not in {"id", "email", "user_type", "updated_at"}
)


class ParticipantSummary(BaseModel):
    id: str
    name: Optional[str] = None
    profile_photo_url: Optional[str] = None


class ConversationStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    denied = "denied"


class Conversation(BaseModel):
    id: str
    status: ConversationStatus = ConversationStatus.pending
    created_at: str
    other_participant: Optional[ParticipantSummary] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    last_message_at: str


class CandidateSummary(BaseModel):
    """Profile projection a recruiter sees in search results."""

    id: str
    name: Optional[str] = None
    title: Optional[str] = None
    profile_photo_url: Optional[str] = None
    location: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    skills: List[Skill] = Field(default_factory=list)
    documents: List[UploadedFile] = Field(default_factory=list)


class JobListing(BaseModel):
    id: str = ""
    title: str
    company: str = ""
    location: str = ""
    description: str = ""
    apply_url: str = Field(default="", validation_alias=AliasChoices("apply_url", "applyUrl"))


class ChatReply(BaseModel):
    text: str
    action: Optional[Action] = None

    @field_validator("text", mode="before")
    @classmethod
    def _require_text(cls, value: Optional[Any]) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("reply text is required")
        return value.strip()


class ExtractedFields(BaseModel):
    """Best-effort search criteria pulled out of free text; absent means unknown."""

    title: Optional[str] = None
    skills: Optional[List[str]] = None
    location: Optional[str] = None

    @field_validator("title", "location", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Optional[Any]) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, list):
            value = ", ".join(str(item) for item in value if str(item).strip())
        text = str(value).strip()
        return text or None

    @field_validator("skills", mode="before")
    @classmethod
    def _parse_skills(cls, value: Optional[Any]) -> Optional[List[str]]:
        skills = parse_skills(value)
        return skills or None

    def missing_fields(self) -> List[str]:
        return [name for name in ("title", "skills", "location") if not getattr(self, name)]


class SearchCriteria(BaseModel):
    title: str
    skills: List[str] = Field(default_factory=list)
    location: str

    @field_validator("title", "location", mode="before")
    @classmethod
    def _strip(cls, value: Optional[str]) -> str:
        return (value or "").strip()

    @field_validator("skills", mode="before")
    @classmethod
    def _parse_skills(cls, value: Optional[Any]) -> List[str]:
        return parse_skills(value)


__all__ = [
    "ACTION_ADAPTER",
    "Action",
    "CandidateSummary",
    "ChatMessage",
    "ChatReply",
    "Conversation",
    "ConversationStatus",
    "DocumentVisibility",
    "EDITABLE_PROFILE_FIELDS",
    "ExtractedFields",
    "JobListing",
    "LogOutAction",
    "MessageAuthor",
    "OpenPanelAction",
    "PROFILE_RECORD_FIELDS",
    "PanelType",
    "ParticipantSummary",
    "Profile",
    "SearchCriteria",
    "Skill",
    "StartFlowAction",
    "UploadedFile",
    "UserType",
    "dedupe_case_insensitive",
    "new_message_id",
    "parse_skills",
    "utc_now_iso",
]
