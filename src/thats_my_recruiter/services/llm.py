"""Generative text adapter used for chat replies, field extraction and job listings."""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

from crewai import LLM
from dotenv import load_dotenv
from pydantic import ValidationError

from thats_my_recruiter.core.constants import (
    CHAT_HISTORY_LIMIT,
    CHAT_MODEL,
    CHAT_TEMPERATURE,
    EXTRACTION_MODEL,
    EXTRACTION_TEMPERATURE,
    FIELD_EXTRACTION_INSTRUCTION,
    JOB_LISTING_INSTRUCTION,
    REPLY_FORMAT_INSTRUCTION,
)
from thats_my_recruiter.core.py_models import (
    ACTION_ADAPTER,
    ChatMessage,
    ChatReply,
    ExtractedFields,
    JobListing,
    MessageAuthor,
)
from thats_my_recruiter.services.errors import MalformedResponseError, ServiceUnavailableError

load_dotenv()
LOGGER = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class CompletionClient(Protocol):
    """Anything with crewai's ``LLM.call`` shape."""

    def call(self, messages: List[Dict[str, str]]) -> Any:  # pragma: no cover - protocol
        ...


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip("`").strip()


def _parse_json_object(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedResponseError("Generative service returned an empty response")
    try:
        payload = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Invalid JSON from generative service: {exc}", raw=raw) from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("Expected a JSON object from generative service", raw=raw)
    return payload


def _conversation_history(messages: Sequence[ChatMessage], limit: int = CHAT_HISTORY_LIMIT) -> List[Dict[str, str]]:
    history: List[Dict[str, str]] = []
    for message in list(messages)[-limit:]:
        if not message.text:
            continue
        role = "assistant" if message.author == MessageAuthor.assistant else "user"
        history.append({"role": role, "content": message.text})
    return history


class GenerativeTextService:
    """Thin request/response wrapper around a chat completion client.

    Every call either returns a validated model or raises a
    :class:`~thats_my_recruiter.services.errors.ServiceError`; nothing is retried.
    """

    def __init__(
        self,
        chat_llm: Optional[CompletionClient] = None,
        extraction_llm: Optional[CompletionClient] = None,
    ) -> None:
        self.chat_llm = chat_llm or LLM(model=CHAT_MODEL, temperature=CHAT_TEMPERATURE)
        self.extraction_llm = extraction_llm or chat_llm or LLM(
            model=EXTRACTION_MODEL,
            temperature=EXTRACTION_TEMPERATURE,
        )

    def _complete(self, llm: CompletionClient, messages: List[Dict[str, str]]) -> Any:
        try:
            return llm.call(messages)
        except Exception as exc:
            LOGGER.warning("Generative service call failed: %s", exc)
            raise ServiceUnavailableError(f"Generative service call failed: {exc}") from exc

    def get_chat_reply(self, transcript: Sequence[ChatMessage], system_instruction: str) -> ChatReply:
        history = _conversation_history(transcript)
        if not history:
            raise ValueError("transcript must contain at least one message with text")
        messages = [{"role": "system", "content": f"{system_instruction}\n\n{REPLY_FORMAT_INSTRUCTION}"}]
        messages.extend(history)

        raw = self._complete(self.chat_llm, messages)
        payload = _parse_json_object(raw)
        try:
            reply = ChatReply(text=payload.get("text"))
        except ValidationError as exc:
            raise MalformedResponseError("Reply envelope is missing 'text'", raw=raw) from exc

        action_payload = payload.get("action")
        if not action_payload:
            return reply
        try:
            action = ACTION_ADAPTER.validate_python(action_payload)
        except ValidationError:
            LOGGER.warning("Dropping unrecognised action from chat reply: %s", action_payload)
            return reply
        return ChatReply(text=reply.text, action=action)

    def extract_fields(self, free_text: str) -> ExtractedFields:
        if not free_text or not free_text.strip():
            return ExtractedFields()
        messages = [
            {"role": "system", "content": FIELD_EXTRACTION_INSTRUCTION},
            {"role": "user", "content": free_text.strip()},
        ]
        raw = self._complete(self.extraction_llm, messages)
        payload = _parse_json_object(raw)
        try:
            fields = ExtractedFields.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError("Field extraction did not match the expected schema", raw=raw) from exc
        LOGGER.debug("Extracted fields %s (missing: %s)", fields.model_dump(exclude_none=True), fields.missing_fields())
        return fields

    def generate_job_listings(self, roles: Sequence[str], location: str) -> List[JobListing]:
        role_text = ", ".join(role for role in roles if role) or "any role"
        messages = [
            {"role": "system", "content": JOB_LISTING_INSTRUCTION},
            {
                "role": "user",
                "content": f'Find job listings for the following roles: "{role_text}" in or near "{location or "anywhere"}".',
            },
        ]
        raw = self._complete(self.extraction_llm, messages)
        payload = _parse_json_object(raw)
        entries = payload.get("jobs")
        if not isinstance(entries, list):
            raise MalformedResponseError("Job listing response has no 'jobs' list", raw=raw)

        stamp = int(time.time() * 1000)
        listings: List[JobListing] = []
        for index, entry in enumerate(entries):
            try:
                listing = JobListing.model_validate(entry)
            except ValidationError:
                LOGGER.warning("Skipping malformed job listing at index %d", index)
                continue
            if not listing.id:
                listing.id = f"job-{stamp}-{index}"
            listings.append(listing)
        return listings


__all__ = ["CompletionClient", "GenerativeTextService"]
