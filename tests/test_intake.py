import asyncio

import pytest

from thats_my_recruiter.core.constants import (
    INTAKE_PROMPTS,
    INTAKE_REPROMPTS,
    SEARCH_ERROR_MESSAGE,
)
from thats_my_recruiter.core.py_models import CandidateSummary, OpenPanelAction, PanelType
from thats_my_recruiter.intake import IntakeFlow, IntakeStage, parse_skills


class Recorder:
    def __init__(self, results=None, error=None):
        self.results = results if results is not None else []
        self.error = error
        self.calls = []
        self.messages = []
        self.stage_during_search = []
        self.flow = None

    async def search(self, title, skills, location):
        self.calls.append((title, skills, location))
        self.stage_during_search.append(self.flow.state.stage)
        if self.error is not None:
            raise self.error
        return self.results

    def emit(self, text, actions):
        self.messages.append((text, list(actions)))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def flow(recorder):
    flow = IntakeFlow(recorder.search, recorder.emit)
    recorder.flow = flow
    return flow


def _answer(flow, *answers):
    for answer in answers:
        asyncio.run(flow.submit(answer))


def test_parse_skills_dedupes_case_insensitively_keeping_first_casing():
    assert parse_skills("IV Insertion, iv insertion, Patient Care") == ["IV Insertion", "Patient Care"]


def test_parse_skills_drops_empty_tokens():
    assert parse_skills(" , Triage,, ,Charting ,") == ["Triage", "Charting"]


def test_start_prompts_for_title(flow, recorder):
    flow.start()

    assert flow.state.stage == IntakeStage.awaiting_title
    assert flow.active
    assert recorder.messages == [(INTAKE_PROMPTS["title"], [])]


def test_three_answers_dispatch_exactly_one_search(flow, recorder):
    flow.start()
    _answer(flow, "Charge Nurse", "Triage", "Denver, CO")

    assert recorder.calls == [("Charge Nurse", ["Triage"], "Denver, CO")]
    assert recorder.stage_during_search == [IntakeStage.dispatching]
    assert flow.state.stage == IntakeStage.idle
    assert flow.state.title is None and flow.state.skills is None and flow.state.location is None


def test_end_to_end_nurse_search_reports_count(recorder, flow):
    recorder.results = [
        CandidateSummary(id="c1", name="Ana"),
        CandidateSummary(id="c2", name="Ben"),
    ]
    flow.start()
    _answer(flow, "Senior Registered Nurse", "IV Insertion, Patient Care", "Austin, TX")

    assert recorder.calls == [("Senior Registered Nurse", ["IV Insertion", "Patient Care"], "Austin, TX")]
    text, actions = recorder.messages[-1]
    assert "2" in text
    assert "Senior Registered Nurse" in text
    assert actions == [OpenPanelAction(label="View Candidates", panel=PanelType.found_candidates)]
    assert not flow.active


def test_whitespace_title_reprompts_without_advancing(flow, recorder):
    flow.start()
    _answer(flow, "   ")

    assert flow.state.stage == IntakeStage.awaiting_title
    assert recorder.messages[-1] == (INTAKE_REPROMPTS["title"], [])
    assert recorder.calls == []


def test_blank_skills_and_location_reprompt(flow, recorder):
    flow.start()
    _answer(flow, "Charge Nurse", " , ,")
    assert flow.state.stage == IntakeStage.awaiting_skills
    assert recorder.messages[-1][0] == INTAKE_REPROMPTS["skills"]

    _answer(flow, "Triage", "")
    assert flow.state.stage == IntakeStage.awaiting_location
    assert recorder.messages[-1][0] == INTAKE_REPROMPTS["location"]
    assert recorder.calls == []


def test_skills_step_stores_deduplicated_tokens(flow):
    flow.start()
    _answer(flow, "Nurse", "IV Insertion, iv insertion, Patient Care")

    assert flow.state.stage == IntakeStage.awaiting_location
    assert flow.state.skills == ["IV Insertion", "Patient Care"]


def test_cancel_while_awaiting_skills_clears_fields(flow, recorder):
    flow.start()
    _answer(flow, "Charge Nurse")
    assert flow.state.stage == IntakeStage.awaiting_skills

    flow.cancel()
    assert flow.state.stage == IntakeStage.idle
    assert flow.state.title is None

    flow.start()
    assert flow.state.stage == IntakeStage.awaiting_title
    assert flow.state.title is None and flow.state.skills is None


def test_start_while_active_restarts(flow, recorder):
    flow.start()
    _answer(flow, "Charge Nurse", "Triage")
    flow.start()

    assert flow.state.stage == IntakeStage.awaiting_title
    assert flow.state.title is None
    assert recorder.messages[-1] == (INTAKE_PROMPTS["title"], [])


def test_zero_results_emit_one_no_match_message(flow, recorder):
    flow.start()
    _answer(flow, "Charge Nurse", "Triage")
    before = len(recorder.messages)
    _answer(flow, "Nowhere")

    assert len(recorder.messages) == before + 1
    text, actions = recorder.messages[-1]
    assert "couldn't find any candidates" in text
    assert actions == []
    assert flow.state.stage == IntakeStage.idle


def test_search_failure_emits_one_error_and_returns_to_idle(flow, recorder):
    recorder.error = RuntimeError("store unreachable")
    flow.start()
    _answer(flow, "Charge Nurse", "Triage")
    before = len(recorder.messages)
    _answer(flow, "Denver")

    assert recorder.messages[before:] == [(SEARCH_ERROR_MESSAGE, [])]
    assert flow.state.stage == IntakeStage.idle


def test_submit_when_idle_is_not_consumed(flow, recorder):
    assert asyncio.run(flow.submit("hello")) is False
    assert recorder.messages == []


def test_cancel_during_search_discards_results(recorder):
    async def scenario():
        gate = asyncio.Event()

        async def slow_search(title, skills, location):
            recorder.calls.append((title, skills, location))
            await gate.wait()
            return [CandidateSummary(id="c1")]

        flow = IntakeFlow(slow_search, recorder.emit)
        flow.start()
        await flow.submit("Nurse")
        await flow.submit("Triage")
        pending = asyncio.ensure_future(flow.submit("Austin"))
        await asyncio.sleep(0)
        assert flow.state.stage == IntakeStage.dispatching
        flow.cancel()
        gate.set()
        await pending
        return flow

    flow = asyncio.run(scenario())
    assert recorder.calls == [("Nurse", ["Triage"], "Austin")]
    assert flow.state.stage == IntakeStage.idle
    assert recorder.messages[-1][0] == INTAKE_PROMPTS["location"]
