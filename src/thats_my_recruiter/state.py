"""Per-session application state rendered by the view layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from thats_my_recruiter.core.py_models import (
    Action,
    CandidateSummary,
    ChatMessage,
    Conversation,
    ExtractedFields,
    JobListing,
    PanelType,
    Profile,
    UserType,
)
from thats_my_recruiter.intake import IntakeState


class AppState(BaseModel):
    """Everything one chat session shows.

    Signing out replaces the whole object with ``AppState()``; nothing is
    cleared field by field.
    """

    user_type: UserType = UserType.guest
    profile: Optional[Profile] = None
    active_panel: PanelType = PanelType.none
    candidate_messages: List[ChatMessage] = Field(default_factory=list)
    recruiter_messages: List[ChatMessage] = Field(default_factory=list)
    quick_actions: List[Action] = Field(default_factory=list)
    loading: bool = False
    auth_error: Optional[str] = None
    conversations: List[Conversation] = Field(default_factory=list)
    found_candidates: List[CandidateSummary] = Field(default_factory=list)
    selected_candidate: Optional[CandidateSummary] = None
    candidate_to_connect: Optional[CandidateSummary] = None
    search_draft: Optional[ExtractedFields] = None
    suggested_jobs: List[JobListing] = Field(default_factory=list)
    intake: IntakeState = Field(default_factory=IntakeState)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def quick_actions_enabled(self) -> bool:
        return not self.loading

    @property
    def transcript(self) -> List[ChatMessage]:
        """The transcript belonging to the signed-in role."""

        if self.user_type == UserType.recruiter:
            return self.recruiter_messages
        return self.candidate_messages

    def snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


__all__ = ["AppState"]
