"""Shared constant values used across services."""

from __future__ import annotations

from typing import Dict, Tuple

# === LLM Configuration ===
CHAT_MODEL = "gemini/gemini-2.5-flash"
CHAT_TEMPERATURE = 0.5

EXTRACTION_MODEL = "gemini/gemini-2.5-flash"
EXTRACTION_TEMPERATURE = 0.0

# Client-side ceiling for any remote call (profile store, uploads, AI completions).
SERVICE_TIMEOUT_SECONDS = 30.0

# Number of transcript messages forwarded to the chat model.
CHAT_HISTORY_LIMIT = 20

# === System instructions ===
CANDIDATE_SYSTEM_INSTRUCTION = (
    "You are an AI assistant for 'ThatsMyRecruiter'. Guide candidates through setting up "
    "their profile and managing their job search. Be encouraging and concise."
)

RECRUITER_SYSTEM_INSTRUCTION = (
    "You are an AI assistant for a recruiter on 'ThatsMyRecruiter'. Help them find "
    "candidates and manage communications. You can ask them to clarify job requirements. "
    "Keep responses brief and professional."
)

REPLY_FORMAT_INSTRUCTION = (
    "Always respond with a single JSON object and nothing else: "
    '{"text": "<your reply>", "action": <optional action or null>}. '
    'An action is one of {"kind": "open_panel", "label": "...", "panel": "<panel>"}, '
    '{"kind": "start_flow", "label": "...", "flow": "find_candidates"} or '
    '{"kind": "log_out", "label": "..."}. Only offer an action when it clearly helps.'
)

FIELD_EXTRACTION_INSTRUCTION = (
    "Extract job search criteria from the recruiter's message. Respond with a single JSON "
    'object: {"title": string or null, "skills": list of strings or null, '
    '"location": string or null}. Only include values the message states explicitly; '
    "use null for anything not mentioned. Never guess."
)

JOB_LISTING_INSTRUCTION = (
    "Generate plausible, up-to-date job listings. For each job provide a unique id "
    "(string), title, company, location, a brief 2-3 sentence description and apply_url. "
    'Respond with a single JSON object with one key "jobs" holding the list.'
)

# === Intake flow prompts ===
INTAKE_FIELDS: Tuple[str, ...] = ("title", "skills", "location")

INTAKE_PROMPTS: Dict[str, str] = {
    "title": (
        "I can help with that. Let's create a job profile. "
        "First, what is the job title or primary role?"
    ),
    "skills": (
        "Got it. Now, what are the most important skills for this role? "
        "Please list them, separated by commas."
    ),
    "location": (
        "Perfect. Lastly, what is the work location for this position? "
        "(e.g., 'New York, NY', 'Remote')"
    ),
}

INTAKE_REPROMPTS: Dict[str, str] = {
    "title": "I didn't catch a job title. What role are you hiring for?",
    "skills": "Please list at least one skill, separated by commas.",
    "location": "Please tell me where the role is based, or say 'Remote'.",
}

# === Canned assistant messages ===
SEARCH_RESULTS_MESSAGE = (
    "Based on your criteria, I've found {count} strong candidate{plural} "
    'for "{title}" for you to review.'
)
SEARCH_NO_MATCHES_MESSAGE = (
    'I couldn\'t find any candidates matching "{title}" in {location} yet. '
    "Try broadening the skills or location."
)
SEARCH_ERROR_MESSAGE = (
    "Sorry, I encountered an error while searching for candidates. Please try again."
)
CHAT_ERROR_MESSAGE = "Sorry, I am unable to process your request at the moment."
GENERIC_ERROR_MESSAGE = "Sorry, something went wrong. Please try again."

CANDIDATE_ONBOARDING_MESSAGE = (
    "Welcome to ThatsMyRecruiter! I'm your personal AI recruiter. My goal is to "
    "streamline your job search and give you full control. To start, let's build "
    "your professional profile."
)
CANDIDATE_WELCOME_BACK_MESSAGE = (
    "Welcome back! It's great to see you again. What would you like to do today?"
)
RECRUITER_WELCOME_MESSAGE = (
    "Welcome back to your Recruiter Dashboard. How can I help you today?"
)
CONFIRM_EMAIL_MESSAGE = "Please check your email to confirm registration."
PROFILE_LOAD_ERROR_MESSAGE = "We couldn't load your profile. Please sign in again."
JOB_SUGGESTIONS_ERROR_MESSAGE = (
    "Sorry, I couldn't find job suggestions right now. Please try again later."
)
NO_JOB_SUGGESTIONS_MESSAGE = (
    "I couldn't find any openings for your roles yet. Try adding more roles to your job preferences."
)
CONVERSATION_CLOSED_MESSAGE = (
    "Messages can only be sent once the candidate has accepted the connection request."
)
CONNECTION_REQUEST_SENT_MESSAGE = "Your connection request was sent to {name}."

# === Document storage ===
DOCUMENTS_BUCKET = "documents"
DEFAULT_DOCUMENT_VISIBILITY = "gated"

__all__ = [
    "CHAT_MODEL",
    "CHAT_TEMPERATURE",
    "EXTRACTION_MODEL",
    "EXTRACTION_TEMPERATURE",
    "SERVICE_TIMEOUT_SECONDS",
    "CHAT_HISTORY_LIMIT",
    "CANDIDATE_SYSTEM_INSTRUCTION",
    "RECRUITER_SYSTEM_INSTRUCTION",
    "REPLY_FORMAT_INSTRUCTION",
    "FIELD_EXTRACTION_INSTRUCTION",
    "JOB_LISTING_INSTRUCTION",
    "INTAKE_FIELDS",
    "INTAKE_PROMPTS",
    "INTAKE_REPROMPTS",
    "SEARCH_RESULTS_MESSAGE",
    "SEARCH_NO_MATCHES_MESSAGE",
    "SEARCH_ERROR_MESSAGE",
    "CHAT_ERROR_MESSAGE",
    "GENERIC_ERROR_MESSAGE",
    "CANDIDATE_ONBOARDING_MESSAGE",
    "CANDIDATE_WELCOME_BACK_MESSAGE",
    "RECRUITER_WELCOME_MESSAGE",
    "CONFIRM_EMAIL_MESSAGE",
    "PROFILE_LOAD_ERROR_MESSAGE",
    "JOB_SUGGESTIONS_ERROR_MESSAGE",
    "NO_JOB_SUGGESTIONS_MESSAGE",
    "CONVERSATION_CLOSED_MESSAGE",
    "CONNECTION_REQUEST_SENT_MESSAGE",
    "DOCUMENTS_BUCKET",
    "DEFAULT_DOCUMENT_VISIBILITY",
]
