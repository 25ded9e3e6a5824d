from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, Field, ValidationError

from thats_my_recruiter.core.py_models import DocumentVisibility, PanelType, SearchCriteria, Skill, UserType
from backend.services.chat_service import SessionNotFoundError, chat_service

router = APIRouter()


class SessionResponse(BaseModel):
    session_id: str
    state: Dict[str, Any]
    error: Optional[str] = None
    handled: Optional[bool] = None
    count: Optional[int] = None
    result: Optional[Any] = None


class SignUpRequest(BaseModel):
    email: str
    password: str
    user_type: UserType


class SignInRequest(BaseModel):
    email: str
    password: str


class ChatMessageRequest(BaseModel):
    text: str


class ActionRequest(BaseModel):
    action: Dict[str, Any]


class SearchRequest(BaseModel):
    title: str = Field(min_length=1)
    skills: List[str] = Field(default_factory=list)
    location: str = Field(min_length=1)


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Session {session_id} not found")


@router.post("/sessions", response_model=SessionResponse)
async def create_session():
    return await chat_service.create_session()


@router.get("/sessions", response_model=Dict[str, List[str]])
async def list_sessions():
    return {"sessions": chat_service.list_sessions()}


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    try:
        return await chat_service.get_session_state(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    success = await chat_service.delete_session(session_id)
    if not success:
        raise _not_found(session_id)
    return {"success": success}


@router.post("/sessions/{session_id}/auth/sign-up", response_model=SessionResponse)
async def sign_up(session_id: str, request: SignUpRequest):
    try:
        return await chat_service.sign_up(session_id, request.email, request.password, request.user_type)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/auth/sign-in", response_model=SessionResponse)
async def sign_in(session_id: str, request: SignInRequest):
    try:
        return await chat_service.sign_in(session_id, request.email, request.password)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/auth/sign-out", response_model=SessionResponse)
async def sign_out(session_id: str):
    try:
        return await chat_service.sign_out(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/messages", response_model=SessionResponse)
async def send_message(session_id: str, request: ChatMessageRequest):
    try:
        return await chat_service.process_message(session_id, request.text)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/actions", response_model=SessionResponse)
async def handle_action(session_id: str, request: ActionRequest):
    try:
        return await chat_service.handle_action(session_id, request.action)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/sessions/{session_id}/search", response_model=SessionResponse)
async def search_candidates(session_id: str, request: SearchRequest):
    criteria = SearchCriteria(title=request.title, skills=request.skills, location=request.location)
    try:
        return await chat_service.search_candidates(session_id, criteria)
    except SessionNotFoundError:
        raise _not_found(session_id)


class PanelRequest(BaseModel):
    panel: PanelType


class ProfileUpdateRequest(BaseModel):
    fields: Dict[str, Any]


class SkillsRequest(BaseModel):
    skills: List[Skill]


class VisibilityRequest(BaseModel):
    visibility: DocumentVisibility


class DraftSearchRequest(BaseModel):
    text: str = Field(min_length=1)


class ConnectionRequest(BaseModel):
    message: str = Field(min_length=1)


class RequestResponse(BaseModel):
    accept: bool


async def _in_session(session_id: str, operation, *args):
    try:
        return await operation(session_id, *args)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/panels", response_model=SessionResponse)
async def open_panel(session_id: str, request: PanelRequest):
    return await _in_session(session_id, chat_service.open_panel, request.panel)


@router.delete("/sessions/{session_id}/panels", response_model=SessionResponse)
async def close_panel(session_id: str):
    return await _in_session(session_id, chat_service.close_panel)


@router.patch("/sessions/{session_id}/profile", response_model=SessionResponse)
async def update_profile(session_id: str, request: ProfileUpdateRequest):
    return await _in_session(session_id, chat_service.update_profile, request.fields)


@router.put("/sessions/{session_id}/profile/skills", response_model=SessionResponse)
async def update_skills(session_id: str, request: SkillsRequest):
    return await _in_session(session_id, chat_service.update_skills, request.skills)


@router.post("/sessions/{session_id}/documents", response_model=SessionResponse)
async def upload_document(session_id: str, file: UploadFile = File(...)):
    data = await file.read()
    return await _in_session(
        session_id, chat_service.upload_document, file.filename or "document", data, file.content_type
    )


@router.patch("/sessions/{session_id}/documents/{document_id}", response_model=SessionResponse)
async def update_document_visibility(session_id: str, document_id: str, request: VisibilityRequest):
    return await _in_session(session_id, chat_service.update_document_visibility, document_id, request.visibility)


@router.delete("/sessions/{session_id}/documents/{document_id}", response_model=SessionResponse)
async def delete_document(session_id: str, document_id: str):
    return await _in_session(session_id, chat_service.delete_document, document_id)


@router.post("/sessions/{session_id}/jobs/suggestions", response_model=SessionResponse)
async def suggest_jobs(session_id: str):
    return await _in_session(session_id, chat_service.suggest_jobs)


@router.post("/sessions/{session_id}/search/draft", response_model=SessionResponse)
async def draft_search(session_id: str, request: DraftSearchRequest):
    return await _in_session(session_id, chat_service.draft_search, request.text)


@router.post("/sessions/{session_id}/candidates/{candidate_id}/view", response_model=SessionResponse)
async def view_candidate(session_id: str, candidate_id: str):
    response = await _in_session(session_id, chat_service.view_candidate, candidate_id)
    if response["result"] is None:
        raise HTTPException(status_code=404, detail=f"Candidate {candidate_id} is not in the current results")
    return response


@router.delete("/sessions/{session_id}/candidates/view", response_model=SessionResponse)
async def close_candidate(session_id: str):
    return await _in_session(session_id, chat_service.close_candidate)


@router.post("/sessions/{session_id}/candidates/{candidate_id}/connect", response_model=SessionResponse)
async def open_connect(session_id: str, candidate_id: str):
    response = await _in_session(session_id, chat_service.open_connect, candidate_id)
    if response["result"] is None:
        raise HTTPException(status_code=404, detail=f"Candidate {candidate_id} is not in the current results")
    return response


@router.delete("/sessions/{session_id}/candidates/connect", response_model=SessionResponse)
async def close_connect(session_id: str):
    return await _in_session(session_id, chat_service.close_connect)


@router.post("/sessions/{session_id}/candidates/{candidate_id}/connection-requests", response_model=SessionResponse)
async def send_connection_request(session_id: str, candidate_id: str, request: ConnectionRequest):
    return await _in_session(session_id, chat_service.send_connection_request, candidate_id, request.message)


@router.get("/sessions/{session_id}/conversations", response_model=SessionResponse)
async def load_conversations(session_id: str):
    return await _in_session(session_id, chat_service.load_conversations)


@router.post("/sessions/{session_id}/conversations/{conversation_id}/response", response_model=SessionResponse)
async def respond_to_request(session_id: str, conversation_id: str, request: RequestResponse):
    return await _in_session(session_id, chat_service.respond_to_request, conversation_id, request.accept)


@router.post("/sessions/{session_id}/conversations/{conversation_id}/messages", response_model=SessionResponse)
async def send_conversation_message(session_id: str, conversation_id: str, request: ChatMessageRequest):
    return await _in_session(session_id, chat_service.send_conversation_message, conversation_id, request.text)
