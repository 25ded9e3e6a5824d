"""Wiring of the dialogue controller and its service adapters."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from crewai import LLM

from thats_my_recruiter.controller import DialogueController
from thats_my_recruiter.core.constants import (
    CHAT_MODEL,
    CHAT_TEMPERATURE,
    EXTRACTION_MODEL,
    EXTRACTION_TEMPERATURE,
    SERVICE_TIMEOUT_SECONDS,
)
from thats_my_recruiter.paths import (
    AUTH_DIR,
    DATA_ROOT,
    OBJECT_STORE_DIR,
    PROFILE_STORE_DIR,
    ensure_data_directories,
)
from thats_my_recruiter.services.auth import AuthProvider, LocalAuthProvider
from thats_my_recruiter.services.llm import CompletionClient, GenerativeTextService
from thats_my_recruiter.services.object_store import LocalObjectStore, ObjectStore, R2ObjectStore
from thats_my_recruiter.services.profile_store import JsonProfileStore, ProfileStore

LOGGER = logging.getLogger(__name__)


def build_object_store(provider: str = "local", *, data_root: Optional[Path] = None, **options) -> ObjectStore:
    """Return the document store for ``provider`` (``"local"`` or ``"r2"``)."""

    provider = (provider or "local").strip().lower()
    if provider == "r2":
        return R2ObjectStore(**options)
    if provider != "local":
        raise ValueError(f"Unknown object store provider: {provider}")
    root = ensure_data_directories(data_root) / OBJECT_STORE_DIR.name
    return LocalObjectStore(root, public_base_url=options.get("public_base_url"))


def build_text_service(
    *,
    chat_model: str = CHAT_MODEL,
    chat_temperature: float = CHAT_TEMPERATURE,
    extraction_model: str = EXTRACTION_MODEL,
    extraction_temperature: float = EXTRACTION_TEMPERATURE,
    llm: Optional[CompletionClient] = None,
) -> GenerativeTextService:
    if llm is not None:
        return GenerativeTextService(chat_llm=llm, extraction_llm=llm)
    return GenerativeTextService(
        chat_llm=LLM(model=chat_model, temperature=chat_temperature),
        extraction_llm=LLM(model=extraction_model, temperature=extraction_temperature),
    )


def build_controller(
    *,
    data_root: Optional[Path] = None,
    object_store: Optional[ObjectStore] = None,
    profile_store: Optional[ProfileStore] = None,
    text_service: Optional[GenerativeTextService] = None,
    auth: Optional[AuthProvider] = None,
    require_confirmation: bool = False,
    session_name: str = "session",
    timeout: float = SERVICE_TIMEOUT_SECONDS,
) -> DialogueController:
    """Initialise a controller wired to file-backed stores under ``data_root``."""

    root = ensure_data_directories(data_root or DATA_ROOT)
    object_store = object_store or build_object_store("local", data_root=root)
    profile_store = profile_store or JsonProfileStore(
        root / PROFILE_STORE_DIR.name,
        url_resolver=object_store.get_public_url,
    )
    auth = auth or LocalAuthProvider(
        profile_store,
        root / AUTH_DIR.name,
        require_confirmation=require_confirmation,
        session_name=session_name,
    )
    LOGGER.debug("Building controller with data root %s", root)
    return DialogueController(
        profile_store=profile_store,
        object_store=object_store,
        auth=auth,
        text_service=text_service or build_text_service(),
        timeout=timeout,
    )


__all__ = ["build_controller", "build_object_store", "build_text_service"]
