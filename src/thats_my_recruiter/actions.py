"""Quick-action menus and dispatch of action values."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List

from thats_my_recruiter.core.py_models import (
    Action,
    LogOutAction,
    OpenPanelAction,
    PanelType,
    StartFlowAction,
    UserType,
)

LOGGER = logging.getLogger(__name__)

CANDIDATE_QUICK_ACTIONS: List[Action] = [
    OpenPanelAction(label="View Public Profile", panel=PanelType.public_profile),
    OpenPanelAction(label="Messages", panel=PanelType.candidate_messages),
    OpenPanelAction(label="Recruiter Requests", panel=PanelType.recruiter_requests),
    OpenPanelAction(label="Documents", panel=PanelType.documents_upload),
    OpenPanelAction(label="Skills", panel=PanelType.skills_assessment),
    OpenPanelAction(label="Set Availability", panel=PanelType.availability),
    OpenPanelAction(label="Job Preferences", panel=PanelType.job_preferences),
    LogOutAction(label="Logout"),
]

RECRUITER_QUICK_ACTIONS: List[Action] = [
    StartFlowAction(label="Search for Candidates", flow="find_candidates"),
    OpenPanelAction(label="View Messages", panel=PanelType.recruiter_messages),
    LogOutAction(label="Logout"),
]


def quick_actions_for(user_type: UserType) -> List[Action]:
    if user_type == UserType.candidate:
        return list(CANDIDATE_QUICK_ACTIONS)
    if user_type == UserType.recruiter:
        return list(RECRUITER_QUICK_ACTIONS)
    return []


class ActionRouter:
    """Maps an action to exactly one effect: open a panel, start the intake, or log out.

    Every action is dropped while ``is_busy()`` reports an outstanding call.
    """

    def __init__(
        self,
        *,
        open_panel: Callable[[PanelType], None],
        start_flow: Callable[[], None],
        log_out: Callable[[], Awaitable[None]],
        is_busy: Callable[[], bool],
    ) -> None:
        self._open_panel = open_panel
        self._start_flow = start_flow
        self._log_out = log_out
        self._is_busy = is_busy

    async def dispatch(self, action: Action) -> bool:
        """Run ``action``; returns ``False`` when it was ignored."""

        if self._is_busy():
            LOGGER.debug("Ignoring %s action while a call is outstanding", action.kind)
            return False

        if isinstance(action, OpenPanelAction):
            self._open_panel(action.panel)
        elif isinstance(action, StartFlowAction):
            self._start_flow()
        elif isinstance(action, LogOutAction):
            await self._log_out()
        else:
            raise TypeError(f"Unsupported action: {action!r}")
        return True


__all__ = [
    "ActionRouter",
    "CANDIDATE_QUICK_ACTIONS",
    "RECRUITER_QUICK_ACTIONS",
    "quick_actions_for",
]
