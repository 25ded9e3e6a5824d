"""Record store for profiles, skills, documents and recruiter/candidate conversations."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from pydantic import ValidationError

from thats_my_recruiter.core.py_models import (
    EDITABLE_PROFILE_FIELDS,
    PROFILE_RECORD_FIELDS,
    CandidateSummary,
    ChatMessage,
    Conversation,
    ConversationStatus,
    DocumentVisibility,
    MessageAuthor,
    ParticipantSummary,
    Profile,
    Skill,
    UploadedFile,
    UserType,
    parse_skills,
    utc_now_iso,
)
from thats_my_recruiter.paths import PROFILE_STORE_DIR
from thats_my_recruiter.services.errors import InvalidTransitionError, RecordNotFoundError, StoreError

LOGGER = logging.getLogger(__name__)

UrlResolver = Callable[[str], str]

# Allowed conversation status changes; anything else is rejected.
_STATUS_TRANSITIONS = {
    ConversationStatus.pending: {ConversationStatus.accepted, ConversationStatus.denied},
    ConversationStatus.accepted: set(),
    ConversationStatus.denied: set(),
}


def visible_documents(
    documents: Iterable[UploadedFile],
    *,
    owner_id: Optional[str],
    viewer_id: Optional[str],
) -> List[UploadedFile]:
    """Filter documents down to what ``viewer_id`` may see.

    Public documents are visible to anyone, gated documents to any
    authenticated viewer, private documents only to their owner.
    """

    visible: List[UploadedFile] = []
    for document in documents:
        if viewer_id is not None and viewer_id == owner_id:
            visible.append(document)
        elif document.visibility == DocumentVisibility.public:
            visible.append(document)
        elif document.visibility == DocumentVisibility.gated and viewer_id:
            visible.append(document)
    return visible


class ProfileStore:
    """Interface implemented by profile store backends."""

    def get_profile(self, user_id: str) -> Optional[Profile]:  # pragma: no cover - abstract
        raise NotImplementedError

    def create_profile(self, user_id: str, *, email: Optional[str], user_type: UserType) -> Profile:  # pragma: no cover - abstract
        raise NotImplementedError

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:  # pragma: no cover - abstract
        raise NotImplementedError

    def replace_skills(self, user_id: str, skills: Sequence[Skill]) -> List[Skill]:  # pragma: no cover - abstract
        raise NotImplementedError

    def insert_document(
        self,
        user_id: str,
        *,
        file_path: str,
        name: str,
        size: int,
        file_type: str,
        visibility: DocumentVisibility,
    ) -> UploadedFile:  # pragma: no cover - abstract
        raise NotImplementedError

    def update_document_visibility(self, document_id: str, visibility: DocumentVisibility) -> UploadedFile:  # pragma: no cover - abstract
        raise NotImplementedError

    def delete_document(self, document_id: str) -> UploadedFile:  # pragma: no cover - abstract
        raise NotImplementedError

    def search_candidates(
        self,
        title: str,
        skills: Sequence[str],
        location: str,
        *,
        viewer_id: Optional[str] = None,
    ) -> List[CandidateSummary]:  # pragma: no cover - abstract
        raise NotImplementedError

    def create_conversation(self, *, sender_id: str, recipient_id: str, text: str) -> str:  # pragma: no cover - abstract
        raise NotImplementedError

    def list_conversations(self, user_id: str) -> List[Conversation]:  # pragma: no cover - abstract
        raise NotImplementedError

    def get_conversation(self, conversation_id: str, *, viewer_id: str) -> Conversation:  # pragma: no cover - abstract
        raise NotImplementedError

    def set_conversation_status(
        self,
        conversation_id: str,
        status: ConversationStatus,
        *,
        viewer_id: str,
    ) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def add_message(self, conversation_id: str, *, sender_id: str, text: str) -> ChatMessage:  # pragma: no cover - abstract
        raise NotImplementedError

    def participant_ids(self, conversation_id: str) -> List[str]:  # pragma: no cover - abstract
        raise NotImplementedError


class JsonProfileStore(ProfileStore):
    """Profile store persisted as one JSON file per collection."""

    def __init__(self, root: Optional[Path] = None, *, url_resolver: Optional[UrlResolver] = None) -> None:
        self.root = Path(root) if root is not None else PROFILE_STORE_DIR
        self.root.mkdir(parents=True, exist_ok=True)
        self.url_resolver = url_resolver
        self._lock = threading.RLock()

    # -- persistence helpers -------------------------------------------------

    def _path(self, collection: str) -> Path:
        return self.root / f"{collection}.json"

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Invalid JSON payload at %s; ignoring", path)
            return []
        return payload if isinstance(payload, list) else []

    def _write(self, collection: str, rows: List[Dict[str, Any]]) -> None:
        path = self._path(collection)
        try:
            path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Unable to write {collection}: {exc}") from exc

    def _document(self, row: Dict[str, Any]) -> UploadedFile:
        document = UploadedFile.model_validate(row)
        if self.url_resolver is not None:
            document.url = self.url_resolver(document.file_path)
        return document

    def _documents_for(self, user_id: str) -> List[UploadedFile]:
        return [self._document(row) for row in self._read("documents") if row.get("user_id") == user_id]

    def _skills_for(self, user_id: str) -> List[Skill]:
        return [
            Skill(name=row["name"], level=row.get("level", 1))
            for row in self._read("skills")
            if row.get("user_id") == user_id
        ]

    def _profile_row(self, user_id: str) -> Dict[str, Any]:
        for row in self._read("profiles"):
            if row.get("id") == user_id:
                return row
        raise RecordNotFoundError(f"Profile {user_id} not found")

    # -- profiles ------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._lock:
            try:
                row = self._profile_row(user_id)
            except RecordNotFoundError:
                return None
            return Profile.model_validate(
                {**row, "skills": self._skills_for(user_id), "documents": self._documents_for(user_id)}
            )

    def create_profile(self, user_id: str, *, email: Optional[str], user_type: UserType) -> Profile:
        with self._lock:
            rows = self._read("profiles")
            if any(row.get("id") == user_id for row in rows):
                raise StoreError(f"Profile {user_id} already exists")
            profile = Profile(id=user_id, email=email, user_type=user_type, updated_at=utc_now_iso())
            rows.append(profile.model_dump(mode="json", include=set(PROFILE_RECORD_FIELDS)))
            self._write("profiles", rows)
            LOGGER.info("Created %s profile %s", user_type.value, user_id)
            return profile

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Profile:
        unknown = set(fields) - set(EDITABLE_PROFILE_FIELDS)
        if unknown:
            raise StoreError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        with self._lock:
            rows = self._read("profiles")
            for index, row in enumerate(rows):
                if row.get("id") != user_id:
                    continue
                try:
                    merged = Profile.model_validate({**row, **fields, "updated_at": utc_now_iso()})
                except ValidationError as exc:
                    raise StoreError(f"Invalid profile fields for {user_id}: {exc}") from exc
                rows[index] = merged.model_dump(mode="json", include=set(PROFILE_RECORD_FIELDS))
                self._write("profiles", rows)
                break
            else:
                raise RecordNotFoundError(f"Profile {user_id} not found")
        profile = self.get_profile(user_id)
        if profile is None:
            raise RecordNotFoundError(f"Profile {user_id} not found")
        return profile

    def replace_skills(self, user_id: str, skills: Sequence[Skill]) -> List[Skill]:
        with self._lock:
            self._profile_row(user_id)
            rows = [row for row in self._read("skills") if row.get("user_id") != user_id]
            seen = set()
            stored: List[Skill] = []
            for skill in skills:
                if skill.name.lower() in seen:
                    continue
                seen.add(skill.name.lower())
                rows.append({"user_id": user_id, "name": skill.name, "level": skill.level})
                stored.append(skill)
            self._write("skills", rows)
            return stored

    # -- documents -----------------------------------------------------------

    def insert_document(
        self,
        user_id: str,
        *,
        file_path: str,
        name: str,
        size: int,
        file_type: str,
        visibility: DocumentVisibility,
    ) -> UploadedFile:
        with self._lock:
            rows = self._read("documents")
            document = UploadedFile(
                id=uuid4().hex,
                user_id=user_id,
                file_path=file_path,
                name=name,
                size=size,
                type=file_type,
                visibility=visibility,
                created_at=utc_now_iso(),
            )
            rows.append(document.model_dump(mode="json", exclude={"url"}))
            self._write("documents", rows)
            return self._document(rows[-1])

    def update_document_visibility(self, document_id: str, visibility: DocumentVisibility) -> UploadedFile:
        with self._lock:
            rows = self._read("documents")
            for row in rows:
                if row.get("id") == document_id:
                    row["visibility"] = DocumentVisibility(visibility).value
                    self._write("documents", rows)
                    return self._document(row)
        raise RecordNotFoundError(f"Document {document_id} not found")

    def delete_document(self, document_id: str) -> UploadedFile:
        with self._lock:
            rows = self._read("documents")
            for index, row in enumerate(rows):
                if row.get("id") == document_id:
                    removed = rows.pop(index)
                    self._write("documents", rows)
                    return self._document(removed)
        raise RecordNotFoundError(f"Document {document_id} not found")

    # -- search --------------------------------------------------------------

    def search_candidates(
        self,
        title: str,
        skills: Sequence[str],
        location: str,
        *,
        viewer_id: Optional[str] = None,
    ) -> List[CandidateSummary]:
        """Rank candidate profiles against the criteria.

        Attached documents are filtered with :func:`visible_documents` for
        ``viewer_id``.
        """

        wanted_skills = {skill.lower() for skill in parse_skills(list(skills))}
        wanted_title = (title or "").strip().lower()
        wanted_location = (location or "").strip().lower()

        scored = []
        with self._lock:
            for row in self._read("profiles"):
                if row.get("user_type") != UserType.candidate.value:
                    continue
                candidate_location = (row.get("location") or "").lower()
                if wanted_location and wanted_location != "remote":
                    if not candidate_location:
                        continue
                    if wanted_location not in candidate_location and candidate_location not in wanted_location:
                        continue

                candidate_skills = self._skills_for(row["id"])
                skill_hits = sum(1 for skill in candidate_skills if skill.name.lower() in wanted_skills)
                titles = [row.get("title") or ""] + list(row.get("roles") or [])
                title_hit = bool(wanted_title) and any(
                    text and (wanted_title in text.lower() or text.lower() in wanted_title) for text in titles
                )
                if (wanted_skills or wanted_title) and not (skill_hits or title_hit):
                    continue

                documents = visible_documents(
                    self._documents_for(row["id"]),
                    owner_id=row["id"],
                    viewer_id=viewer_id,
                )
                summary = CandidateSummary.model_validate(
                    {**row, "skills": candidate_skills, "documents": documents}
                )
                scored.append((skill_hits + int(title_hit), summary))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [summary for _, summary in scored]

    # -- conversations -------------------------------------------------------

    def create_conversation(self, *, sender_id: str, recipient_id: str, text: str) -> str:
        with self._lock:
            self._profile_row(recipient_id)
            now = utc_now_iso()
            conversation_id = uuid4().hex
            conversations = self._read("conversations")
            conversations.append(
                {"id": conversation_id, "status": ConversationStatus.pending.value, "created_at": now}
            )
            participants = self._read("participants")
            participants.extend(
                [
                    {"conversation_id": conversation_id, "user_id": sender_id},
                    {"conversation_id": conversation_id, "user_id": recipient_id},
                ]
            )
            self._write("conversations", conversations)
            self._write("participants", participants)
            self.add_message(conversation_id, sender_id=sender_id, text=text)
            return conversation_id

    def participant_ids(self, conversation_id: str) -> List[str]:
        return [
            row["user_id"]
            for row in self._read("participants")
            if row.get("conversation_id") == conversation_id
        ]

    def _conversation_row(self, conversation_id: str) -> Dict[str, Any]:
        for row in self._read("conversations"):
            if row.get("id") == conversation_id:
                return row
        raise RecordNotFoundError(f"Conversation {conversation_id} not found")

    def _build_conversation(self, row: Dict[str, Any], viewer_id: str, *, with_messages: bool) -> Conversation:
        other_id = next((uid for uid in self.participant_ids(row["id"]) if uid != viewer_id), None)
        other = None
        if other_id:
            try:
                other_row = self._profile_row(other_id)
            except RecordNotFoundError:
                other_row = {"id": other_id}
            other = ParticipantSummary.model_validate(other_row)

        message_rows = [m for m in self._read("messages") if m.get("conversation_id") == row["id"]]
        message_rows.sort(key=lambda m: m.get("created_at") or "")
        last_message_at = message_rows[-1]["created_at"] if message_rows else row["created_at"]
        messages = []
        if with_messages:
            messages = [
                ChatMessage(
                    id=m["id"],
                    author=MessageAuthor.user if m.get("sender_id") == viewer_id else MessageAuthor.participant,
                    text=m.get("text", ""),
                    created_at=m["created_at"],
                )
                for m in message_rows
            ]
        return Conversation(
            id=row["id"],
            status=row.get("status", ConversationStatus.pending.value),
            created_at=row["created_at"],
            other_participant=other,
            messages=messages,
            last_message_at=last_message_at,
        )

    def list_conversations(self, user_id: str) -> List[Conversation]:
        with self._lock:
            conversation_ids = {
                row["conversation_id"] for row in self._read("participants") if row.get("user_id") == user_id
            }
            conversations = [
                self._build_conversation(row, user_id, with_messages=False)
                for row in self._read("conversations")
                if row.get("id") in conversation_ids
            ]
        conversations.sort(key=lambda convo: convo.last_message_at, reverse=True)
        return conversations

    def get_conversation(self, conversation_id: str, *, viewer_id: str) -> Conversation:
        with self._lock:
            if viewer_id not in self.participant_ids(conversation_id):
                raise RecordNotFoundError(f"Conversation {conversation_id} not found")
            return self._build_conversation(self._conversation_row(conversation_id), viewer_id, with_messages=True)

    def _opened_by(self, conversation_id: str) -> Optional[str]:
        message_rows = [m for m in self._read("messages") if m.get("conversation_id") == conversation_id]
        if not message_rows:
            return None
        message_rows.sort(key=lambda m: m.get("created_at") or "")
        return message_rows[0].get("sender_id")

    def set_conversation_status(
        self,
        conversation_id: str,
        status: ConversationStatus,
        *,
        viewer_id: str,
    ) -> None:
        """Accept or deny a request; only the recipient may answer it."""

        status = ConversationStatus(status)
        with self._lock:
            if viewer_id not in self.participant_ids(conversation_id) or viewer_id == self._opened_by(conversation_id):
                raise RecordNotFoundError(f"Conversation {conversation_id} not found")
            rows = self._read("conversations")
            for row in rows:
                if row.get("id") != conversation_id:
                    continue
                current = ConversationStatus(row.get("status", ConversationStatus.pending.value))
                if status not in _STATUS_TRANSITIONS[current]:
                    raise InvalidTransitionError(
                        f"Conversation {conversation_id} cannot move from {current.value} to {status.value}"
                    )
                row["status"] = status.value
                self._write("conversations", rows)
                LOGGER.info("Conversation %s is now %s", conversation_id, status.value)
                return
        raise RecordNotFoundError(f"Conversation {conversation_id} not found")

    def add_message(self, conversation_id: str, *, sender_id: str, text: str) -> ChatMessage:
        with self._lock:
            self._conversation_row(conversation_id)
            row = {
                "id": uuid4().hex,
                "conversation_id": conversation_id,
                "sender_id": sender_id,
                "text": text,
                "created_at": utc_now_iso(),
            }
            messages = self._read("messages")
            messages.append(row)
            self._write("messages", messages)
            return ChatMessage(id=row["id"], author=MessageAuthor.user, text=text, created_at=row["created_at"])


__all__ = ["JsonProfileStore", "ProfileStore", "UrlResolver", "visible_documents"]
