import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel

from thats_my_recruiter.controller import DialogueController
from thats_my_recruiter.core.py_models import DocumentVisibility, PanelType, SearchCriteria, Skill
from thats_my_recruiter.main import build_controller, build_object_store, build_text_service
from thats_my_recruiter.paths import PROFILE_STORE_DIR, ensure_data_directories
from thats_my_recruiter.services.llm import GenerativeTextService
from thats_my_recruiter.services.object_store import ObjectStore
from thats_my_recruiter.services.profile_store import JsonProfileStore
from backend.core.config import settings

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[str], DialogueController]


class SessionNotFoundError(RuntimeError):
    """No chat session exists for the given id."""


@dataclass
class _ChatSession:
    controller: DialogueController
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


class ChatService:
    """Holds one dialogue controller per chat session and serialises its turns."""

    def __init__(self, controller_factory: Optional[ControllerFactory] = None):
        self._controller_factory = controller_factory or self._build_controller
        self._sessions: Dict[str, _ChatSession] = {}
        self._object_store: Optional[ObjectStore] = None
        self._profile_store: Optional[JsonProfileStore] = None
        self._text_service: Optional[GenerativeTextService] = None

    def _build_controller(self, session_id: str) -> DialogueController:
        """Wire a controller from settings; stores and the LLM are shared between sessions."""
        root = ensure_data_directories(Path(settings.DATA_ROOT))
        if self._object_store is None:
            self._object_store = build_object_store(
                settings.OBJECT_STORE_PROVIDER,
                data_root=root,
                bucket=settings.R2_BUCKET_NAME or None,
                endpoint_url=settings.R2_ENDPOINT_URL or None,
                access_key_id=settings.R2_ACCESS_KEY_ID or None,
                secret_access_key=settings.R2_SECRET_ACCESS_KEY or None,
                account_id=settings.R2_ACCOUNT_ID or None,
                public_base_url=settings.R2_PUBLIC_BASE_URL or None,
            )
        if self._profile_store is None:
            self._profile_store = JsonProfileStore(
                root / PROFILE_STORE_DIR.name,
                url_resolver=self._object_store.get_public_url,
            )
        if self._text_service is None:
            self._text_service = build_text_service(
                chat_model=settings.CHAT_MODEL,
                chat_temperature=settings.CHAT_TEMPERATURE,
                extraction_model=settings.EXTRACTION_MODEL,
                extraction_temperature=settings.EXTRACTION_TEMPERATURE,
            )
        return build_controller(
            data_root=root,
            object_store=self._object_store,
            profile_store=self._profile_store,
            text_service=self._text_service,
            require_confirmation=settings.REQUIRE_EMAIL_CONFIRMATION,
            session_name=f"session-{session_id}",
            timeout=settings.SERVICE_TIMEOUT_SECONDS,
        )

    def _get(self, session_id: str) -> _ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _response(self, session_id: str, controller: DialogueController, **extra: Any) -> Dict[str, Any]:
        return {"session_id": session_id, "state": controller.state.snapshot(), **extra}

    async def _run(self, session_id: str, operation: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Call one controller operation under the session lock and report its result."""
        session = self._get(session_id)
        async with session.lock:
            result = getattr(session.controller, operation)(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        return self._response(session_id, session.controller, result=_jsonable(result))

    async def create_session(self) -> Dict[str, Any]:
        """Create a new session."""
        session_id = uuid4().hex
        controller = self._controller_factory(session_id)
        session = _ChatSession(controller=controller)
        self._sessions[session_id] = session
        async with session.lock:
            await controller.start()
        logger.info("Created chat session %s", session_id)
        return self._response(session_id, controller)

    async def get_session_state(self, session_id: str) -> Dict[str, Any]:
        session = self._get(session_id)
        return self._response(session_id, session.controller)

    async def delete_session(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        async with session.lock:
            session.controller.close()
            await asyncio.to_thread(session.controller.auth.discard_session_file)
        logger.info("Deleted chat session %s", session_id)
        return True

    def list_sessions(self) -> List[str]:
        return list(self._sessions)

    # Auth

    async def sign_up(self, session_id: str, email: str, password: str, user_type: str) -> Dict[str, Any]:
        session = self._get(session_id)
        async with session.lock:
            error = await session.controller.sign_up(email, password, user_type)
        return self._response(session_id, session.controller, error=error)

    async def sign_in(self, session_id: str, email: str, password: str) -> Dict[str, Any]:
        session = self._get(session_id)
        async with session.lock:
            error = await session.controller.sign_in(email, password)
        return self._response(session_id, session.controller, error=error)

    async def sign_out(self, session_id: str) -> Dict[str, Any]:
        session = self._get(session_id)
        async with session.lock:
            await session.controller.sign_out()
        return self._response(session_id, session.controller)

    # Chat and actions

    async def process_message(self, session_id: str, text: str) -> Dict[str, Any]:
        """Run one chat turn through the session's controller."""
        session = self._get(session_id)
        logger.info("Processing message for session %s", session_id)
        async with session.lock:
            await session.controller.send_message(text)
        return self._response(session_id, session.controller)

    async def handle_action(self, session_id: str, action: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get(session_id)
        async with session.lock:
            handled = await session.controller.handle_action(action)
        return self._response(session_id, session.controller, handled=handled)

    async def open_panel(self, session_id: str, panel: PanelType) -> Dict[str, Any]:
        return await self._run(session_id, "open_panel", panel)

    async def close_panel(self, session_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "close_panel")

    # Profile and documents

    async def update_profile(self, session_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._run(session_id, "update_profile", fields)

    async def update_skills(self, session_id: str, skills: List[Skill]) -> Dict[str, Any]:
        return await self._run(session_id, "update_skills", skills)

    async def upload_document(
        self, session_id: str, name: str, data: bytes, content_type: Optional[str] = None
    ) -> Dict[str, Any]:
        logger.info("Uploading %s (%d bytes) for session %s", name, len(data), session_id)
        return await self._run(session_id, "upload_document", name, data, content_type)

    async def delete_document(self, session_id: str, document_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "delete_document", document_id)

    async def update_document_visibility(
        self, session_id: str, document_id: str, visibility: DocumentVisibility
    ) -> Dict[str, Any]:
        return await self._run(session_id, "update_document_visibility", document_id, visibility)

    async def suggest_jobs(self, session_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "suggest_jobs")

    # Recruiter search

    async def search_candidates(self, session_id: str, criteria: SearchCriteria) -> Dict[str, Any]:
        session = self._get(session_id)
        async with session.lock:
            results = await session.controller.search_candidates(criteria)
        return self._response(session_id, session.controller, count=len(results))

    async def draft_search(self, session_id: str, text: str) -> Dict[str, Any]:
        return await self._run(session_id, "draft_search", text)

    async def view_candidate(self, session_id: str, candidate_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "view_candidate", candidate_id)

    async def close_candidate(self, session_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "close_candidate")

    async def open_connect(self, session_id: str, candidate_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "open_connect", candidate_id)

    async def close_connect(self, session_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "close_connect")

    # Conversations

    async def send_connection_request(self, session_id: str, candidate_id: str, message: str) -> Dict[str, Any]:
        return await self._run(session_id, "send_connection_request", candidate_id, message)

    async def load_conversations(self, session_id: str) -> Dict[str, Any]:
        return await self._run(session_id, "load_conversations")

    async def respond_to_request(self, session_id: str, conversation_id: str, accept: bool) -> Dict[str, Any]:
        return await self._run(session_id, "respond_to_request", conversation_id, accept)

    async def send_conversation_message(self, session_id: str, conversation_id: str, text: str) -> Dict[str, Any]:
        return await self._run(session_id, "send_conversation_message", conversation_id, text)


chat_service = ChatService()
