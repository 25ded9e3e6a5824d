"""Dialogue controller: the single owner of a chat session's state."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, TypeVar, Union

from pydantic import ValidationError

from thats_my_recruiter.actions import ActionRouter, quick_actions_for
from thats_my_recruiter.core.constants import (
    CANDIDATE_ONBOARDING_MESSAGE,
    CANDIDATE_SYSTEM_INSTRUCTION,
    CANDIDATE_WELCOME_BACK_MESSAGE,
    CHAT_ERROR_MESSAGE,
    CONFIRM_EMAIL_MESSAGE,
    CONNECTION_REQUEST_SENT_MESSAGE,
    CONVERSATION_CLOSED_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    JOB_SUGGESTIONS_ERROR_MESSAGE,
    NO_JOB_SUGGESTIONS_MESSAGE,
    PROFILE_LOAD_ERROR_MESSAGE,
    RECRUITER_SYSTEM_INSTRUCTION,
    RECRUITER_WELCOME_MESSAGE,
    SEARCH_ERROR_MESSAGE,
    SERVICE_TIMEOUT_SECONDS,
)
from thats_my_recruiter.core.py_models import (
    ACTION_ADAPTER,
    Action,
    CandidateSummary,
    ChatMessage,
    Conversation,
    ConversationStatus,
    DocumentVisibility,
    MessageAuthor,
    OpenPanelAction,
    PanelType,
    Profile,
    SearchCriteria,
    Skill,
    UploadedFile,
    UserType,
)
from thats_my_recruiter.intake import IntakeFlow, describe_search_results
from thats_my_recruiter.services.auth import AuthEvent, AuthProvider, Session
from thats_my_recruiter.services.errors import AuthError, ServiceError, ServiceUnavailableError
from thats_my_recruiter.services.llm import GenerativeTextService
from thats_my_recruiter.services.object_store import ObjectStore
from thats_my_recruiter.services.profile_store import ProfileStore
from thats_my_recruiter.state import AppState

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class DialogueController:
    """Routes user input and actions, calls the service adapters and updates :class:`AppState`.

    Every adapter call is a suspend point bounded by ``timeout`` seconds.
    ``loading`` is set while any operation is outstanding, and a second
    dispatch of an operation that is still running is dropped.
    """

    def __init__(
        self,
        *,
        profile_store: ProfileStore,
        object_store: ObjectStore,
        auth: AuthProvider,
        text_service: GenerativeTextService,
        timeout: float = SERVICE_TIMEOUT_SECONDS,
    ) -> None:
        self.profile_store = profile_store
        self.object_store = object_store
        self.auth = auth
        self.text_service = text_service
        self.timeout = timeout

        self._state = AppState()
        self._in_flight: Set[str] = set()
        self._epoch = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._intake = IntakeFlow(self._search_for_intake, self._emit_recruiter)
        self._router = ActionRouter(
            open_panel=self.open_panel,
            start_flow=self._start_intake,
            log_out=self.sign_out,
            is_busy=lambda: self._state.loading,
        )

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> AppState:
        self._state.intake = self._intake.state
        return self._state

    def _reset(self) -> None:
        self._intake.cancel()
        self._epoch += 1
        self._state = AppState(active_panel=PanelType.auth)

    def _append(
        self,
        author: MessageAuthor,
        text: str,
        actions: Sequence[Action] = (),
        *,
        role: Optional[UserType] = None,
    ) -> ChatMessage:
        message = ChatMessage(author=author, text=text, actions=list(actions))
        role = role or self._state.user_type
        if role == UserType.recruiter:
            self._state.recruiter_messages.append(message)
        else:
            self._state.candidate_messages.append(message)
        return message

    def _emit_recruiter(self, text: str, actions: Sequence[Action] = ()) -> None:
        self._append(MessageAuthor.assistant, text, actions, role=UserType.recruiter)

    def _report(self, text: str) -> None:
        self._append(MessageAuthor.assistant, text)

    # -- call plumbing -------------------------------------------------------

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking adapter call off the loop, bounded by ``timeout``."""

        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            name = getattr(func, "__name__", "service call")
            raise ServiceUnavailableError(f"{name} timed out after {self.timeout:g}s") from exc

    async def _await(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ServiceUnavailableError(f"Auth provider timed out after {self.timeout:g}s") from exc

    def _claim(self, operation: str) -> bool:
        if operation in self._in_flight:
            LOGGER.debug("Dropping duplicate %s while one is in flight", operation)
            return False
        return True

    @asynccontextmanager
    async def _busy(self, operation: str):
        self._in_flight.add(operation)
        self._state.loading = True
        try:
            yield
        finally:
            self._in_flight.discard(operation)
            self._state.loading = bool(self._in_flight)

    # -- session lifecycle ---------------------------------------------------

    async def start(self) -> AppState:
        """Subscribe to auth events and restore a persisted session, if any."""

        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_change(self._on_auth_event)
        try:
            session = await self._await(self.auth.restore_session())
        except ServiceError as exc:
            LOGGER.warning("Unable to restore session: %s", exc)
            session = None
        if session is None:
            self._state.active_panel = PanelType.auth
        return self.state

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_auth_event(self, event: AuthEvent, session: Optional[Session]) -> None:
        LOGGER.debug("Auth event %s", event.value)
        if event in {AuthEvent.signed_in, AuthEvent.initial_session} and session is not None:
            await self._load_profile(session)
        elif event == AuthEvent.signed_out:
            self._reset()

    async def _load_profile(self, session: Session) -> None:
        epoch = self._epoch
        try:
            async with self._busy("load_profile"):
                profile = await self._call(self.profile_store.get_profile, session.user_id)
                conversations = await self._call(self.profile_store.list_conversations, session.user_id)
        except ServiceError as exc:
            LOGGER.error("Failed to load profile %s: %s", session.user_id, exc)
            profile = None
        if epoch != self._epoch:
            return

        if profile is None:
            LOGGER.warning("No profile for user %s; signing out", session.user_id)
            await self.sign_out()
            self._state.auth_error = PROFILE_LOAD_ERROR_MESSAGE
            return

        user_type = profile.user_type
        self._state.user_type = user_type
        self._state.profile = profile
        self._state.conversations = conversations
        self._state.quick_actions = quick_actions_for(user_type)
        self._state.active_panel = PanelType.none
        self._state.auth_error = None

        if user_type == UserType.recruiter:
            self._state.recruiter_messages = []
            self._emit_recruiter(RECRUITER_WELCOME_MESSAGE)
        elif profile.needs_onboarding:
            self._append(
                MessageAuthor.assistant,
                CANDIDATE_ONBOARDING_MESSAGE,
                [OpenPanelAction(label="Setup Profile", panel=PanelType.onboarding_profile)],
            )
        else:
            self._append(MessageAuthor.assistant, CANDIDATE_WELCOME_BACK_MESSAGE)
        LOGGER.info("Loaded %s profile %s", user_type.value, profile.id)

    async def sign_up(self, email: str, password: str, user_type: Union[UserType, str]) -> Optional[str]:
        """Register an account; returns the message shown on the auth panel, if any."""

        if not self._claim("auth"):
            return None
        self._state.auth_error = None
        async with self._busy("auth"):
            try:
                session = await self._await(self.auth.sign_up(email, password, user_type))
            except AuthError as exc:
                self._state.auth_error = str(exc)
                return self._state.auth_error
            except ServiceError as exc:
                LOGGER.warning("Sign-up failed: %s", exc)
                self._state.auth_error = GENERIC_ERROR_MESSAGE
                return self._state.auth_error
        if session is None:
            self._state.auth_error = CONFIRM_EMAIL_MESSAGE
        return self._state.auth_error

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        if not self._claim("auth"):
            return None
        self._state.auth_error = None
        async with self._busy("auth"):
            try:
                await self._await(self.auth.sign_in(email, password))
            except AuthError as exc:
                self._state.auth_error = str(exc)
            except ServiceError as exc:
                LOGGER.warning("Sign-in failed: %s", exc)
                self._state.auth_error = GENERIC_ERROR_MESSAGE
        return self._state.auth_error

    async def sign_out(self) -> None:
        """End the session and return to the initial state with the auth panel open."""

        try:
            await self._await(self.auth.sign_out())
        except ServiceError as exc:
            LOGGER.warning("Sign-out failed, resetting local state anyway: %s", exc)
        self._reset()

    # -- chat ----------------------------------------------------------------

    async def send_message(self, text: str) -> None:
        """Append the user's message and answer it, via the intake flow or the chat model."""

        value = (text or "").strip()
        role = UserType.recruiter if self._state.user_type == UserType.recruiter else UserType.candidate
        routes_to_intake = role == UserType.recruiter and self._intake.accepts_input
        if not value and not routes_to_intake:
            return
        if not self._claim("send_message"):
            return

        epoch = self._epoch
        if value:
            self._append(MessageAuthor.user, value, role=role)
        async with self._busy("send_message"):
            if routes_to_intake:
                await self._intake.submit(value)
                return

            transcript = list(self._state.recruiter_messages if role == UserType.recruiter else self._state.candidate_messages)
            instruction = RECRUITER_SYSTEM_INSTRUCTION if role == UserType.recruiter else CANDIDATE_SYSTEM_INSTRUCTION
            try:
                reply = await self._call(self.text_service.get_chat_reply, transcript, instruction)
            except ServiceError as exc:
                LOGGER.warning("Chat reply failed: %s", exc)
                if epoch == self._epoch:
                    self._append(MessageAuthor.assistant, CHAT_ERROR_MESSAGE, role=role)
                return
            if epoch != self._epoch:
                return
            self._append(MessageAuthor.assistant, reply.text, [reply.action] if reply.action else [], role=role)

    async def handle_action(self, action: Union[Action, Dict[str, Any]]) -> bool:
        if isinstance(action, dict):
            action = ACTION_ADAPTER.validate_python(action)
        return await self._router.dispatch(action)

    def _start_intake(self) -> None:
        if self._state.user_type != UserType.recruiter:
            LOGGER.warning("Ignoring candidate search flow for %s user", self._state.user_type.value)
            return
        self._intake.start()

    async def _search_for_intake(self, title: str, skills: List[str], location: str) -> List[CandidateSummary]:
        epoch = self._epoch
        results = await self._call(
            self.profile_store.search_candidates,
            title,
            skills,
            location,
            viewer_id=self._viewer_id(),
        )
        if epoch == self._epoch:
            self._state.found_candidates = results
        return results

    def _viewer_id(self) -> Optional[str]:
        return self._state.profile.id if self._state.profile is not None else None

    # -- panels --------------------------------------------------------------

    def open_panel(self, panel: Union[PanelType, str]) -> None:
        self._state.active_panel = PanelType(panel)

    def close_panel(self) -> None:
        self._state.active_panel = PanelType.none

    def view_candidate(self, candidate_id: str) -> Optional[CandidateSummary]:
        candidate = self._found_candidate(candidate_id)
        if candidate is None:
            return None
        self._state.selected_candidate = candidate
        self._state.active_panel = PanelType.public_profile
        return candidate

    def close_candidate(self) -> None:
        self._state.selected_candidate = None
        self._state.active_panel = PanelType.none

    def open_connect(self, candidate_id: str) -> Optional[CandidateSummary]:
        candidate = self._found_candidate(candidate_id)
        if candidate is None:
            return None
        self._state.candidate_to_connect = candidate
        self._state.active_panel = PanelType.connect_request
        return candidate

    def close_connect(self) -> None:
        self._state.candidate_to_connect = None
        self._state.active_panel = PanelType.none

    def _found_candidate(self, candidate_id: str) -> Optional[CandidateSummary]:
        for candidate in self._state.found_candidates:
            if candidate.id == candidate_id:
                return candidate
        LOGGER.warning("Candidate %s is not among the current search results", candidate_id)
        return None

    # -- profile -------------------------------------------------------------

    def _require_profile(self) -> Optional[Profile]:
        if self._state.profile is None:
            LOGGER.warning("Ignoring profile operation without a signed-in user")
        return self._state.profile

    async def update_profile(self, fields: Dict[str, Any]) -> Optional[Profile]:
        profile = self._require_profile()
        if profile is None or not self._claim("profile"):
            return None
        async with self._busy("profile"):
            try:
                updated = await self._call(self.profile_store.update_profile, profile.id, dict(fields))
            except ServiceError as exc:
                LOGGER.error("Profile update failed: %s", exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None
        self._state.profile = updated
        return updated

    async def update_skills(self, skills: Sequence[Union[Skill, Dict[str, Any]]]) -> Optional[List[Skill]]:
        profile = self._require_profile()
        if profile is None or not self._claim("profile"):
            return None
        async with self._busy("profile"):
            try:
                parsed = [skill if isinstance(skill, Skill) else Skill.model_validate(skill) for skill in skills]
            except ValidationError as exc:
                LOGGER.warning("Rejected skills update: %s", exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None
            try:
                stored = await self._call(self.profile_store.replace_skills, profile.id, parsed)
            except ServiceError as exc:
                LOGGER.error("Skills update failed: %s", exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None
        self._state.profile = self._state.profile.model_copy(update={"skills": stored})
        return stored

    # -- documents -----------------------------------------------------------

    async def upload_document(
        self,
        name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Optional[UploadedFile]:
        profile = self._require_profile()
        if profile is None or not self._claim("documents"):
            return None
        file_name = PurePosixPath(name.replace("\\", "/")).name or "document"
        file_path = f"{profile.id}/{int(time.time() * 1000)}-{file_name}"
        suffix = PurePosixPath(file_name).suffix.lstrip(".").lower()

        async with self._busy("documents"):
            try:
                stored_path = await self._call(
                    self.object_store.upload, file_path, data, content_type=content_type
                )
            except ServiceError as exc:
                LOGGER.error("Upload of %s failed: %s", file_name, exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None
            try:
                document = await self._call(
                    self.profile_store.insert_document,
                    profile.id,
                    file_path=stored_path,
                    name=file_name,
                    size=len(data),
                    file_type=suffix or "file",
                    visibility=DocumentVisibility.gated,
                )
            except ServiceError as exc:
                LOGGER.error("Recording %s failed, removing the upload: %s", file_name, exc)
                try:
                    await self._call(self.object_store.remove, [stored_path])
                except ServiceError:
                    LOGGER.exception("Unable to remove orphaned upload %s", stored_path)
                self._report(GENERIC_ERROR_MESSAGE)
                return None

        current = self._state.profile
        self._state.profile = current.model_copy(update={"documents": [*current.documents, document]})
        return document

    async def delete_document(self, document_id: str) -> bool:
        profile = self._require_profile()
        if profile is None or not self._claim("documents"):
            return False
        document = next((doc for doc in profile.documents if doc.id == document_id), None)
        if document is None:
            LOGGER.warning("Document %s does not belong to %s", document_id, profile.id)
            return False
        async with self._busy("documents"):
            try:
                await self._call(self.object_store.remove, [document.file_path])
                await self._call(self.profile_store.delete_document, document_id)
            except ServiceError as exc:
                LOGGER.error("Deleting document %s failed: %s", document_id, exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return False
        current = self._state.profile
        self._state.profile = current.model_copy(
            update={"documents": [doc for doc in current.documents if doc.id != document_id]}
        )
        return True

    async def update_document_visibility(
        self,
        document_id: str,
        visibility: Union[DocumentVisibility, str],
    ) -> Optional[UploadedFile]:
        profile = self._require_profile()
        if profile is None or not self._claim("documents"):
            return None
        if not any(doc.id == document_id for doc in profile.documents):
            LOGGER.warning("Document %s does not belong to %s", document_id, profile.id)
            return None
        async with self._busy("documents"):
            try:
                updated = await self._call(
                    self.profile_store.update_document_visibility,
                    document_id,
                    DocumentVisibility(visibility),
                )
            except ServiceError as exc:
                LOGGER.error("Visibility update for %s failed: %s", document_id, exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None
        current = self._state.profile
        self._state.profile = current.model_copy(
            update={"documents": [updated if doc.id == document_id else doc for doc in current.documents]}
        )
        return updated

    # -- recruiter search ----------------------------------------------------

    async def search_candidates(self, criteria: Union[SearchCriteria, Dict[str, Any]]) -> List[CandidateSummary]:
        """Search from the find-candidates panel; reported like an intake search."""

        if self._state.user_type != UserType.recruiter or not self._claim("search"):
            return []
        if not isinstance(criteria, SearchCriteria):
            criteria = SearchCriteria.model_validate(criteria)
        self._intake.cancel()
        self._state.active_panel = PanelType.none
        self._state.search_draft = None

        epoch = self._epoch
        async with self._busy("search"):
            try:
                results = await self._call(
                    self.profile_store.search_candidates,
                    criteria.title,
                    list(criteria.skills),
                    criteria.location,
                    viewer_id=self._viewer_id(),
                )
            except ServiceError as exc:
                LOGGER.warning("Candidate search failed: %s", exc)
                if epoch == self._epoch:
                    self._emit_recruiter(SEARCH_ERROR_MESSAGE)
                return []
        if epoch != self._epoch:
            return []
        self._state.found_candidates = results
        text, actions = describe_search_results(criteria, results)
        self._emit_recruiter(text, actions)
        return results

    async def draft_search(self, text: str) -> None:
        """Pre-fill the find-candidates panel from a free-text description."""

        if self._state.user_type != UserType.recruiter or not self._claim("draft_search"):
            return
        async with self._busy("draft_search"):
            try:
                draft = await self._call(self.text_service.extract_fields, text)
            except ServiceError as exc:
                LOGGER.warning("Field extraction failed, opening an empty search form: %s", exc)
                draft = None
        self._state.search_draft = draft
        self._state.active_panel = PanelType.find_candidates

    # -- candidate job suggestions -------------------------------------------

    async def suggest_jobs(self) -> None:
        profile = self._require_profile()
        if profile is None or profile.user_type != UserType.candidate or not self._claim("jobs"):
            return
        roles = list(profile.roles) or ([profile.title] if profile.title else [])
        async with self._busy("jobs"):
            try:
                listings = await self._call(self.text_service.generate_job_listings, roles, profile.location or "")
            except ServiceError as exc:
                LOGGER.warning("Job suggestions failed: %s", exc)
                self._report(JOB_SUGGESTIONS_ERROR_MESSAGE)
                return
        self._state.suggested_jobs = listings
        if not listings:
            self._report(NO_JOB_SUGGESTIONS_MESSAGE)
            return
        self._state.active_panel = PanelType.suggested_jobs

    # -- conversations -------------------------------------------------------

    async def load_conversations(self) -> List[Conversation]:
        profile = self._require_profile()
        if profile is None or not self._claim("conversations"):
            return self._state.conversations
        async with self._busy("conversations"):
            try:
                conversations = await self._call(self.profile_store.list_conversations, profile.id)
            except ServiceError as exc:
                LOGGER.warning("Loading conversations failed: %s", exc)
                return self._state.conversations
        self._state.conversations = conversations
        return conversations

    async def send_connection_request(self, candidate_id: str, message: str) -> Optional[str]:
        """Open a pending conversation with a candidate; recruiters only."""

        profile = self._require_profile()
        if profile is None or profile.user_type != UserType.recruiter:
            LOGGER.warning("Only recruiters can send connection requests")
            return None
        text = (message or "").strip()
        if not text or not self._claim("connect"):
            return None
        async with self._busy("connect"):
            try:
                conversation_id = await self._call(
                    self.profile_store.create_conversation,
                    sender_id=profile.id,
                    recipient_id=candidate_id,
                    text=text,
                )
            except ServiceError as exc:
                LOGGER.error("Connection request to %s failed: %s", candidate_id, exc)
                self._emit_recruiter(GENERIC_ERROR_MESSAGE)
                return None

        candidate = self._state.candidate_to_connect
        name = (candidate.name if candidate and candidate.id == candidate_id else None) or "the candidate"
        self.close_connect()
        self._emit_recruiter(CONNECTION_REQUEST_SENT_MESSAGE.format(name=name))
        await self.load_conversations()
        return conversation_id

    async def respond_to_request(self, conversation_id: str, accept: bool) -> bool:
        """Accept or deny a pending request; candidates only."""

        profile = self._require_profile()
        if profile is None or profile.user_type != UserType.candidate:
            LOGGER.warning("Only candidates can respond to connection requests")
            return False
        if not self._claim("respond"):
            return False
        status = ConversationStatus.accepted if accept else ConversationStatus.denied
        async with self._busy("respond"):
            try:
                await self._call(
                    self.profile_store.set_conversation_status, conversation_id, status, viewer_id=profile.id
                )
            except ServiceError as exc:
                LOGGER.warning("Responding to %s failed: %s", conversation_id, exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return False
        await self.load_conversations()
        return True

    async def send_conversation_message(self, conversation_id: str, text: str) -> Optional[ChatMessage]:
        profile = self._require_profile()
        value = (text or "").strip()
        if profile is None or not value or not self._claim("conversation_message"):
            return None
        async with self._busy("conversation_message"):
            try:
                conversation = await self._call(
                    self.profile_store.get_conversation, conversation_id, viewer_id=profile.id
                )
                if conversation.status != ConversationStatus.accepted:
                    self._report(CONVERSATION_CLOSED_MESSAGE)
                    return None
                message = await self._call(
                    self.profile_store.add_message, conversation_id, sender_id=profile.id, text=value
                )
                refreshed = await self._call(
                    self.profile_store.get_conversation, conversation_id, viewer_id=profile.id
                )
            except ServiceError as exc:
                LOGGER.warning("Sending message to %s failed: %s", conversation_id, exc)
                self._report(GENERIC_ERROR_MESSAGE)
                return None

        conversations = [c for c in self._state.conversations if c.id != conversation_id]
        conversations.insert(0, refreshed)
        self._state.conversations = conversations
        return message


__all__ = ["DialogueController"]
