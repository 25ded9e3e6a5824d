import asyncio

import pytest

from thats_my_recruiter.actions import (
    CANDIDATE_QUICK_ACTIONS,
    RECRUITER_QUICK_ACTIONS,
    ActionRouter,
    quick_actions_for,
)
from thats_my_recruiter.core.py_models import (
    ACTION_ADAPTER,
    LogOutAction,
    OpenPanelAction,
    PanelType,
    StartFlowAction,
    UserType,
)


class Effects:
    def __init__(self):
        self.busy = False
        self.panels = []
        self.flows = 0
        self.logouts = 0

    def open_panel(self, panel):
        self.panels.append(panel)

    def start_flow(self):
        self.flows += 1

    async def log_out(self):
        self.logouts += 1


@pytest.fixture
def effects():
    return Effects()


@pytest.fixture
def router(effects):
    return ActionRouter(
        open_panel=effects.open_panel,
        start_flow=effects.start_flow,
        log_out=effects.log_out,
        is_busy=lambda: effects.busy,
    )


def test_each_action_has_exactly_one_effect(router, effects):
    asyncio.run(router.dispatch(OpenPanelAction(panel=PanelType.skills_assessment)))
    assert (effects.panels, effects.flows, effects.logouts) == ([PanelType.skills_assessment], 0, 0)

    asyncio.run(router.dispatch(StartFlowAction()))
    assert (len(effects.panels), effects.flows, effects.logouts) == (1, 1, 0)

    asyncio.run(router.dispatch(LogOutAction()))
    assert (len(effects.panels), effects.flows, effects.logouts) == (1, 1, 1)


def test_actions_are_ignored_while_busy(router, effects):
    effects.busy = True

    for action in RECRUITER_QUICK_ACTIONS:
        assert asyncio.run(router.dispatch(action)) is False

    assert effects.panels == [] and effects.flows == 0 and effects.logouts == 0


def test_quick_action_menus_per_user_type():
    candidate_labels = [action.label for action in quick_actions_for(UserType.candidate)]
    recruiter_labels = [action.label for action in quick_actions_for(UserType.recruiter)]

    assert candidate_labels == [
        "View Public Profile",
        "Messages",
        "Recruiter Requests",
        "Documents",
        "Skills",
        "Set Availability",
        "Job Preferences",
        "Logout",
    ]
    assert recruiter_labels == ["Search for Candidates", "View Messages", "Logout"]
    assert quick_actions_for(UserType.guest) == []


def test_quick_actions_for_returns_a_copy():
    actions = quick_actions_for(UserType.candidate)
    actions.clear()
    assert len(CANDIDATE_QUICK_ACTIONS) == 8


def test_action_payloads_are_discriminated_on_kind():
    action = ACTION_ADAPTER.validate_python({"kind": "open_panel", "panel": "documents_upload", "label": "Docs"})
    assert action == OpenPanelAction(label="Docs", panel=PanelType.documents_upload)

    assert isinstance(ACTION_ADAPTER.validate_python({"kind": "start_flow"}), StartFlowAction)
    assert isinstance(ACTION_ADAPTER.validate_python({"kind": "log_out"}), LogOutAction)

    with pytest.raises(ValueError):
        ACTION_ADAPTER.validate_python({"kind": "open_panel"})
    with pytest.raises(ValueError):
        ACTION_ADAPTER.validate_python({"kind": "launch_rockets"})
