"""Field-by-field intake of recruiter search criteria.

The recruiter answers three prompts in turn (job title, skills, location).
Once the location arrives the flow moves to ``dispatching``, runs the
candidate search exactly once and returns to ``idle`` whatever the outcome.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from thats_my_recruiter.core.constants import (
    INTAKE_PROMPTS,
    INTAKE_REPROMPTS,
    SEARCH_ERROR_MESSAGE,
    SEARCH_NO_MATCHES_MESSAGE,
    SEARCH_RESULTS_MESSAGE,
)
from thats_my_recruiter.core.py_models import (
    Action,
    CandidateSummary,
    OpenPanelAction,
    PanelType,
    SearchCriteria,
    parse_skills,
)

LOGGER = logging.getLogger(__name__)

SearchCallable = Callable[[str, List[str], str], Awaitable[List[CandidateSummary]]]
EmitCallable = Callable[[str, Sequence[Action]], None]


class IntakeStage(str, Enum):
    idle = "idle"
    awaiting_title = "awaiting_title"
    awaiting_skills = "awaiting_skills"
    awaiting_location = "awaiting_location"
    dispatching = "dispatching"


class IntakeState(BaseModel):
    """Snapshot of the intake; holds at most the three search fields."""

    model_config = ConfigDict(frozen=True)

    stage: IntakeStage = IntakeStage.idle
    title: Optional[str] = None
    skills: Optional[List[str]] = None
    location: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.stage != IntakeStage.idle


def describe_search_results(
    criteria: SearchCriteria,
    results: Sequence[CandidateSummary],
) -> Tuple[str, List[Action]]:
    """Assistant text and follow-up actions reporting a finished search."""

    if not results:
        text = SEARCH_NO_MATCHES_MESSAGE.format(
            title=criteria.title,
            location=criteria.location or "any location",
        )
        return text, []
    count = len(results)
    text = SEARCH_RESULTS_MESSAGE.format(
        count=count,
        plural="" if count == 1 else "s",
        title=criteria.title,
    )
    return text, [OpenPanelAction(label="View Candidates", panel=PanelType.found_candidates)]


class IntakeFlow:
    """State machine collecting search criteria one field per turn.

    ``search`` performs the candidate search and ``emit`` appends an assistant
    message to the recruiter transcript. Cancelling while a search is in
    flight discards its result.
    """

    def __init__(self, search: SearchCallable, emit: EmitCallable) -> None:
        self._search = search
        self._emit = emit
        self._state = IntakeState()
        self._generation = 0

    @property
    def state(self) -> IntakeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def accepts_input(self) -> bool:
        return self._state.stage in {
            IntakeStage.awaiting_title,
            IntakeStage.awaiting_skills,
            IntakeStage.awaiting_location,
        }

    def start(self) -> None:
        """Begin a fresh intake, discarding anything collected so far."""

        if self._state.active:
            LOGGER.info("Restarting candidate search intake from %s", self._state.stage.value)
        self._generation += 1
        self._state = IntakeState(stage=IntakeStage.awaiting_title)
        self._emit(INTAKE_PROMPTS["title"], [])

    def cancel(self) -> None:
        if self._state.active:
            LOGGER.info("Cancelled candidate search intake at %s", self._state.stage.value)
        self._generation += 1
        self._state = IntakeState()

    async def submit(self, text: str) -> bool:
        """Feed one recruiter answer into the flow.

        Returns ``False`` when the flow is not waiting for input.
        """

        stage = self._state.stage
        value = (text or "").strip()

        if stage == IntakeStage.awaiting_title:
            if not value:
                self._emit(INTAKE_REPROMPTS["title"], [])
                return True
            self._state = IntakeState(stage=IntakeStage.awaiting_skills, title=value)
            self._emit(INTAKE_PROMPTS["skills"], [])
            return True

        if stage == IntakeStage.awaiting_skills:
            skills = parse_skills(value)
            if not skills:
                self._emit(INTAKE_REPROMPTS["skills"], [])
                return True
            self._state = self._state.model_copy(
                update={"stage": IntakeStage.awaiting_location, "skills": skills}
            )
            self._emit(INTAKE_PROMPTS["location"], [])
            return True

        if stage == IntakeStage.awaiting_location:
            if not value:
                self._emit(INTAKE_REPROMPTS["location"], [])
                return True
            await self._dispatch(value)
            return True

        return False

    async def _dispatch(self, location: str) -> None:
        self._state = self._state.model_copy(
            update={"stage": IntakeStage.dispatching, "location": location}
        )
        criteria = SearchCriteria(
            title=self._state.title,
            skills=list(self._state.skills or []),
            location=location,
        )
        generation = self._generation
        LOGGER.info(
            "Dispatching candidate search title=%r skills=%s location=%r",
            criteria.title,
            criteria.skills,
            criteria.location,
        )

        try:
            results = await self._search(criteria.title, list(criteria.skills), criteria.location)
        except Exception:
            LOGGER.exception("Candidate search failed")
            if generation == self._generation:
                self._state = IntakeState()
                self._emit(SEARCH_ERROR_MESSAGE, [])
            return

        if generation != self._generation:
            LOGGER.info("Discarding search results for a cancelled intake")
            return
        self._state = IntakeState()
        text, actions = describe_search_results(criteria, results)
        self._emit(text, actions)


__all__ = [
    "IntakeFlow",
    "IntakeStage",
    "IntakeState",
    "describe_search_results",
    "parse_skills",
]
