import pytest

from thats_my_recruiter.core.py_models import (
    ConversationStatus,
    DocumentVisibility,
    MessageAuthor,
    Skill,
    UploadedFile,
    UserType,
)
from thats_my_recruiter.services.errors import InvalidTransitionError, RecordNotFoundError, StoreError
from thats_my_recruiter.services.profile_store import JsonProfileStore, visible_documents


@pytest.fixture
def store(tmp_path):
    return JsonProfileStore(tmp_path / "store", url_resolver=lambda path: f"https://files.example.com/{path}")


def _candidate(store, user_id, *, title, location, skills=(), roles=()):
    store.create_profile(user_id, email=f"{user_id}@example.com", user_type=UserType.candidate)
    store.update_profile(user_id, {"name": user_id.title(), "title": title, "location": location, "roles": list(roles)})
    store.replace_skills(user_id, [Skill(name=name, level=3) for name in skills])


def test_profile_round_trip_joins_skills_and_documents(store):
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)
    store.replace_skills("u1", [Skill(name="Triage", level=2), Skill(name="triage", level=4)])
    store.insert_document(
        "u1",
        file_path="u1/1-resume.pdf",
        name="resume.pdf",
        size=42,
        file_type="pdf",
        visibility=DocumentVisibility.gated,
    )

    profile = store.get_profile("u1")

    assert profile.user_type == UserType.candidate
    assert profile.needs_onboarding
    assert [skill.name for skill in profile.skills] == ["Triage"]
    assert profile.documents[0].url == "https://files.example.com/u1/1-resume.pdf"


def test_get_profile_returns_none_when_missing(store):
    assert store.get_profile("nobody") is None


def test_update_profile_rejects_protected_fields(store):
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)

    with pytest.raises(StoreError):
        store.update_profile("u1", {"user_type": "recruiter"})
    with pytest.raises(RecordNotFoundError):
        store.update_profile("missing", {"name": "Ghost"})


def test_update_profile_replaces_whole_fields(store):
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)

    updated = store.update_profile("u1", {"name": "Ana", "title": "ICU Nurse", "roles": ["ICU Nurse", "Charge Nurse"]})

    assert updated.name == "Ana"
    assert updated.roles == ["ICU Nurse", "Charge Nurse"]
    assert not updated.needs_onboarding
    assert store.get_profile("u1").title == "ICU Nurse"


def test_search_matches_location_and_skills(store):
    _candidate(store, "ana", title="Registered Nurse", location="Austin, TX", skills=["IV Insertion", "Patient Care"])
    _candidate(store, "ben", title="Registered Nurse", location="Dallas, TX", skills=["IV Insertion"])
    _candidate(store, "cy", title="Barista", location="Austin, TX", skills=["Latte Art"])
    store.create_profile("rec", email="rec@example.com", user_type=UserType.recruiter)

    results = store.search_candidates("Senior Registered Nurse", ["iv insertion", "patient care"], "Austin")

    assert [candidate.id for candidate in results] == ["ana"]


def test_search_remote_ignores_location_and_ranks_by_overlap(store):
    _candidate(store, "ana", title="Nurse", location="Austin, TX", skills=["IV Insertion"])
    _candidate(store, "ben", title="Nurse", location="Dallas, TX", skills=["IV Insertion", "Patient Care"])

    results = store.search_candidates("Nurse", ["IV Insertion", "Patient Care"], "Remote")

    assert [candidate.id for candidate in results] == ["ben", "ana"]


def test_search_shows_documents_the_viewer_may_see(store):
    _candidate(store, "ana", title="Nurse", location="Austin, TX", skills=["Triage"])
    for name, visibility in [("public.pdf", "public"), ("gated.pdf", "gated"), ("private.pdf", "private")]:
        store.insert_document(
            "ana",
            file_path=f"ana/{name}",
            name=name,
            size=1,
            file_type="pdf",
            visibility=DocumentVisibility(visibility),
        )

    (result,) = store.search_candidates("Nurse", ["Triage"], "Austin", viewer_id="rec")
    assert sorted(document.name for document in result.documents) == ["gated.pdf", "public.pdf"]

    (anonymous,) = store.search_candidates("Nurse", ["Triage"], "Austin")
    assert [document.name for document in anonymous.documents] == ["public.pdf"]


def test_visible_documents_by_viewer():
    documents = [
        UploadedFile(id=str(index), file_path=f"o/{visibility}", name=visibility, visibility=visibility)
        for index, visibility in enumerate(["public", "gated", "private"])
    ]

    def names(viewer):
        return [document.name for document in visible_documents(documents, owner_id="owner", viewer_id=viewer)]

    assert names(None) == ["public"]
    assert names("recruiter-1") == ["public", "gated"]
    assert names("owner") == ["public", "gated", "private"]


def test_document_visibility_update_and_delete(store):
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)
    document = store.insert_document(
        "u1", file_path="u1/a.pdf", name="a.pdf", size=3, file_type="pdf", visibility=DocumentVisibility.gated
    )

    updated = store.update_document_visibility(document.id, DocumentVisibility.public)
    assert updated.visibility == DocumentVisibility.public

    removed = store.delete_document(document.id)
    assert removed.file_path == "u1/a.pdf"
    assert store.get_profile("u1").documents == []
    with pytest.raises(RecordNotFoundError):
        store.delete_document(document.id)


def test_conversation_lifecycle(store):
    store.create_profile("rec", email="rec@example.com", user_type=UserType.recruiter)
    _candidate(store, "ana", title="Nurse", location="Austin", skills=["Triage"])

    conversation_id = store.create_conversation(sender_id="rec", recipient_id="ana", text="Hi Ana, open to a chat?")

    (seen_by_candidate,) = store.list_conversations("ana")
    assert seen_by_candidate.status == ConversationStatus.pending
    assert seen_by_candidate.other_participant.id == "rec"
    assert sorted(store.participant_ids(conversation_id)) == ["ana", "rec"]

    full = store.get_conversation(conversation_id, viewer_id="ana")
    assert [(m.author, m.text) for m in full.messages] == [(MessageAuthor.participant, "Hi Ana, open to a chat?")]

    store.set_conversation_status(conversation_id, ConversationStatus.accepted, viewer_id="ana")
    with pytest.raises(InvalidTransitionError):
        store.set_conversation_status(conversation_id, ConversationStatus.denied, viewer_id="ana")
    with pytest.raises(InvalidTransitionError):
        store.set_conversation_status(conversation_id, ConversationStatus.pending, viewer_id="ana")
    assert store.list_conversations("rec")[0].status == ConversationStatus.accepted


def test_conversation_requires_existing_recipient(store):
    store.create_profile("rec", email="rec@example.com", user_type=UserType.recruiter)

    with pytest.raises(RecordNotFoundError):
        store.create_conversation(sender_id="rec", recipient_id="ghost", text="Hello")


def test_get_conversation_hides_it_from_non_participants(store):
    store.create_profile("rec", email="rec@example.com", user_type=UserType.recruiter)
    _candidate(store, "ana", title="Nurse", location="Austin")
    conversation_id = store.create_conversation(sender_id="rec", recipient_id="ana", text="Hello")

    with pytest.raises(RecordNotFoundError):
        store.get_conversation(conversation_id, viewer_id="someone-else")


def test_only_the_recipient_can_answer_a_request(store):
    store.create_profile("rec", email="rec@example.com", user_type=UserType.recruiter)
    _candidate(store, "ana", title="Nurse", location="Austin")
    _candidate(store, "omar", title="Nurse", location="Austin")
    conversation_id = store.create_conversation(sender_id="rec", recipient_id="ana", text="Hello")

    with pytest.raises(RecordNotFoundError):
        store.set_conversation_status(conversation_id, ConversationStatus.accepted, viewer_id="omar")
    with pytest.raises(RecordNotFoundError):
        store.set_conversation_status(conversation_id, ConversationStatus.accepted, viewer_id="rec")
    assert store.list_conversations("ana")[0].status == ConversationStatus.pending


def test_update_profile_rejects_invalid_values(store):
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)

    with pytest.raises(StoreError):
        store.update_profile("u1", {"contact_methods": ["email"]})
    assert store.get_profile("u1").contact_methods == []


def test_update_profile_reports_a_profile_that_vanished(tmp_path):
    class VanishingStore(JsonProfileStore):
        def get_profile(self, user_id):
            return None

    store = VanishingStore(tmp_path / "store")
    store.create_profile("u1", email="u1@example.com", user_type=UserType.candidate)

    with pytest.raises(RecordNotFoundError):
        store.update_profile("u1", {"name": "Ana"})
