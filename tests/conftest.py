import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Sequence

import pytest

from thats_my_recruiter.controller import DialogueController
from thats_my_recruiter.core.py_models import CandidateSummary
from thats_my_recruiter.services.auth import LocalAuthProvider
from thats_my_recruiter.services.llm import GenerativeTextService
from thats_my_recruiter.services.object_store import LocalObjectStore
from thats_my_recruiter.services.profile_store import JsonProfileStore


class FakeLLM:
    """Stands in for ``crewai.LLM``: replays queued responses and records every request."""

    def __init__(self, responses: Optional[Sequence[Any]] = None) -> None:
        self.responses: List[Any] = list(responses or [])
        self.calls: List[List[Dict[str, str]]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def queue_json(self, payload: Dict[str, Any]) -> None:
        self.responses.append(json.dumps(payload))

    def call(self, messages):
        self.calls.append(messages)
        if not self.responses:
            raise RuntimeError("FakeLLM has no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingProfileStore(JsonProfileStore):
    """JSON store whose candidate search can be scripted and inspected."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.search_calls: List[tuple] = []
        self.search_results: Optional[List[CandidateSummary]] = None
        self.search_error: Optional[Exception] = None
        self.search_delay = 0.0

    def search_candidates(self, title, skills, location, *, viewer_id=None):
        self.search_calls.append((title, list(skills), location))
        if self.search_delay:
            time.sleep(self.search_delay)
        if self.search_error is not None:
            raise self.search_error
        if self.search_results is not None:
            return list(self.search_results)
        return super().search_candidates(title, skills, location, viewer_id=viewer_id)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def text_service(fake_llm: FakeLLM) -> GenerativeTextService:
    return GenerativeTextService(chat_llm=fake_llm, extraction_llm=fake_llm)


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects", public_base_url="https://files.example.com")


@pytest.fixture
def profile_store(tmp_path, object_store) -> RecordingProfileStore:
    return RecordingProfileStore(tmp_path / "profile_store", url_resolver=object_store.get_public_url)


@pytest.fixture
def auth(tmp_path, profile_store) -> LocalAuthProvider:
    return LocalAuthProvider(profile_store, tmp_path / "auth")


@pytest.fixture
def controller(profile_store, object_store, auth, text_service) -> DialogueController:
    controller = DialogueController(
        profile_store=profile_store,
        object_store=object_store,
        auth=auth,
        text_service=text_service,
        timeout=5.0,
    )
    asyncio.run(controller.start())
    return controller


@pytest.fixture
def recruiter(controller) -> DialogueController:
    error = asyncio.run(controller.sign_up("recruiter@example.com", "secret-pass", "recruiter"))
    assert error is None
    return controller


@pytest.fixture
def candidate(controller) -> DialogueController:
    error = asyncio.run(controller.sign_up("candidate@example.com", "secret-pass", "candidate"))
    assert error is None
    return controller