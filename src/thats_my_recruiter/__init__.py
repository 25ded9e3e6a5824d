"""AI-mediated chat assistant connecting candidates and recruiters."""

from __future__ import annotations

import os

# Keep CrewAI's local storage under a stable project namespace.
os.environ.setdefault("CREWAI_STORAGE_DIR", "thats_my_recruiter")

from thats_my_recruiter.actions import ActionRouter, quick_actions_for
from thats_my_recruiter.controller import DialogueController
from thats_my_recruiter.intake import IntakeFlow, IntakeStage, IntakeState
from thats_my_recruiter.state import AppState

__all__ = [
	"ActionRouter",
	"AppState",
	"DialogueController",
	"IntakeFlow",
	"IntakeStage",
	"IntakeState",
	"quick_actions_for",
]
