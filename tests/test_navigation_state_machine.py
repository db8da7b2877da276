import pytest

from coaching_portal.errors import AccessDenied, BackendUnavailable, InvalidTransition, NotFound, Unauthenticated
from coaching_portal.services.navigation_service import InMemoryHistory, NavigationStateMachine, RecordingHistory
from coaching_portal.services.taxonomy_service import FirestoreListing, TaxonomyResolver
from doubles import FailingDB


def _walk_to_pdfs(machine):
    machine.select_coaching("alpha")
    machine.select_class("class-9")
    machine.select_subject("mathematics")
    machine.select_type("mock-test")
    machine.select_chapter("ch-1")


@pytest.fixture()
def history():
    return InMemoryHistory()


@pytest.fixture()
def machine(student_session, resolver, history):
    return NavigationStateMachine(student_session, resolver, history)


def test_forward_walk_pushes_one_entry_per_transition(machine, history):
    _walk_to_pdfs(machine)

    assert machine.depth == "pdfs"
    assert machine.selections.keys() == ("alpha", "class-9", "mathematics", "mock-test", "ch-1")
    assert machine.breadcrumb == ("Home", "Class IX", "Mathematics", "Mock Test", "Chapter 1")
    assert len(history.entries) == 6
    assert history.current["view"] == "pdfs"
    assert history.current["chapterId"] == "ch-1"
    assert history.current["isRoot"] is False


def test_first_forward_entry_is_the_root_marker(machine, history):
    machine.select_coaching("alpha")

    assert history.current["isRoot"] is True
    assert history.current["view"] == "classes"
    assert machine.root_payload == history.current


def test_selecting_allowed_subject_builds_breadcrumb(machine):
    machine.select_coaching("alpha")
    machine.select_class("class-9")
    machine.select_subject("mathematics")

    assert machine.breadcrumb == ("Home", "Class IX", "Mathematics")


def test_denied_subject_does_not_mutate_state(machine, history):
    machine.select_coaching("alpha")
    machine.select_class("class-9")
    before = machine.state
    entries_before = len(history.entries)

    with pytest.raises(AccessDenied):
        machine.select_subject("physics")

    assert machine.state == before
    assert machine.selections.subject_id is None
    assert len(history.entries) == entries_before


def test_denied_class_is_rejected(machine):
    machine.select_coaching("alpha")
    with pytest.raises(AccessDenied):
        machine.select_class("class-10")
    assert machine.depth == "classes"


def test_forward_transitions_cannot_skip_levels(machine):
    with pytest.raises(InvalidTransition):
        machine.select_class("class-9")
    machine.select_coaching("alpha")
    with pytest.raises(InvalidTransition):
        machine.select_type("mock-test")
    with pytest.raises(InvalidTransition):
        machine.select("semester", "sem-1")


def test_unknown_key_raises_not_found_without_mutation(machine, history):
    machine.select_coaching("alpha")
    machine.select_class("class-9")
    machine.select_subject("mathematics")
    machine.select_type("mock-test")

    with pytest.raises(NotFound):
        machine.select_chapter("ch-99")

    assert machine.depth == "chapters"
    assert len(history.entries) == 5


def test_reselecting_same_chapter_is_a_no_op(machine, history):
    _walk_to_pdfs(machine)
    state = machine.state
    entries = list(history.entries)

    machine.select_chapter("ch-1")

    assert machine.state == state
    assert history.entries == entries


def test_selecting_a_sibling_replaces_deeper_selections(machine, history):
    _walk_to_pdfs(machine)

    machine.select_chapter("ch-2")
    assert machine.breadcrumb[-1] == "Chapter 2"

    machine.select_subject("mathematics")
    assert machine.depth == "types"
    assert machine.selections.type_id is None
    assert machine.breadcrumb == ("Home", "Class IX", "Mathematics")
    assert len(history.entries) == 8


def test_pop_replays_stored_state_without_pushing(machine, history):
    _walk_to_pdfs(machine)

    history.back()
    history.back()

    assert machine.depth == "types"
    assert machine.breadcrumb == ("Home", "Class IX", "Mathematics")
    assert len(history.entries) == 6
    assert history.index == 3

    history.forward()
    assert machine.depth == "chapters"
    assert len(history.entries) == 6


def test_round_trip_never_pops_past_root_marker(machine, history):
    _walk_to_pdfs(machine)

    for _ in range(8):
        history.back()

    assert machine.depth == "classes"
    assert machine.selections.keys() == ("alpha",)
    assert machine.breadcrumb == ("Home",)
    assert history.current["isRoot"] is True
    assert history.index >= 1


def test_pop_to_pre_app_entry_re_pushes_root_marker(machine, history):
    machine.select_coaching("alpha")
    machine.select_class("class-9")

    machine.handle_pop(None)

    assert machine.depth == "classes"
    assert history.current == machine.root_payload


def test_pop_before_any_forward_entry_resets_to_root(machine, history):
    state = machine.handle_pop(None)

    assert state.depth == "root"
    assert history.entries == [None]


def test_malformed_pop_payload_returns_to_root_marker(machine, history):
    _walk_to_pdfs(machine)

    machine.handle_pop({"view": "subjects", "coachingId": "alpha", "classId": None, "subjectId": "mathematics"})

    assert machine.depth == "classes"
    assert history.current["isRoot"] is True


def test_pop_without_labels_looks_them_up(machine):
    machine.select_coaching("alpha")

    state = machine.handle_pop({"view": "types", "coachingId": "alpha", "classId": "class-9", "subjectId": "mathematics"})

    assert state.breadcrumb == ("Home", "Class IX", "Mathematics")


def test_pop_rebuilds_breadcrumb_from_selections(machine):
    machine.select_coaching("alpha")

    state = machine.handle_pop({
        "view": "types",
        "coachingId": "alpha",
        "classId": "class-9",
        "subjectId": "mathematics",
        "labels": ["x", "<img src=x onerror=alert(1)>", "Hacked"],
    })

    assert state.breadcrumb == ("Home", "Class IX", "Mathematics")
    assert machine.breadcrumb == ("Home", "Class IX", "Mathematics")


def test_switching_coaching_moves_the_root_marker(machine, history):
    machine.select_coaching("alpha")
    machine.select_class("class-9")
    alpha_marker = history.entries[1]

    machine.select("coaching", "beta")
    assert history.current["isRoot"] is True
    assert machine.root_payload["coachingId"] == "beta"

    machine.handle_pop(alpha_marker)

    assert machine.selections.keys() == ("beta",)
    assert history.current["coachingId"] == "beta"


def test_failed_push_leaves_no_root_marker(student_session, resolver):
    class BrokenHistory(InMemoryHistory):
        def push(self, payload):
            raise RuntimeError("history unavailable")

    machine = NavigationStateMachine(student_session, resolver, BrokenHistory())

    with pytest.raises(RuntimeError):
        machine.select_coaching("alpha")

    assert machine.root_payload is None
    assert machine.depth == "root"


def test_pop_into_denied_state_is_rejected(machine):
    machine.select_coaching("alpha")
    before = machine.state

    with pytest.raises(AccessDenied):
        machine.handle_pop({
            "view": "types",
            "coachingId": "alpha",
            "classId": "class-9",
            "subjectId": "physics",
            "labels": ["Alpha Coaching", "Class IX", "Physics"],
        })
    assert machine.state == before


def test_stale_fetch_ticket_is_detected(machine):
    machine.select_coaching("alpha")
    ticket = machine.begin_fetch()
    assert machine.is_current(ticket)

    machine.select_class("class-9")

    assert not machine.is_current(ticket)


def test_listing_resolved_after_back_navigation_is_discarded(student_session, resolver, history):
    class BackDuringFetch:
        def __init__(self, inner):
            self.inner = inner
            self.trigger = False

        def describe(self, *args):
            return self.inner.describe(*args)

        def list_children(self, *args):
            result = self.inner.list_children(*args)
            if self.trigger:
                history.back()
            return result

    slow = BackDuringFetch(resolver)
    machine = NavigationStateMachine(student_session, slow, history)
    machine.select_coaching("alpha")
    machine.select_class("class-9")

    slow.trigger = True
    assert machine.load_children() is None
    assert machine.depth == "classes"

    slow.trigger = False
    items = machine.load_children()
    assert [entry.id for entry in items] == ["class-9", "class-10"]


def test_transition_started_during_another_is_rejected(student_session, resolver, history):
    class ReentrantResolver:
        machine = None

        def describe(self, level, selections, key):
            if level == "classes":
                self.machine.select_coaching("beta")
            return resolver.describe(level, selections, key)

    reentrant = ReentrantResolver()
    machine = NavigationStateMachine(student_session, reentrant, history)
    reentrant.machine = machine
    machine.select_coaching("alpha")

    with pytest.raises(InvalidTransition):
        machine.select_class("class-9")
    assert machine.selections.keys() == ("alpha",)


def test_backend_failure_leaves_state_intact(student_session, catalogue, history):
    machine = NavigationStateMachine(student_session, TaxonomyResolver(FirestoreListing(FailingDB()), catalogue), history)

    with pytest.raises(BackendUnavailable):
        machine.select_coaching("alpha")
    assert machine.depth == "root"
    assert machine.root_payload is None
    assert history.entries == [None]


def test_missing_session_is_unauthenticated(resolver, history):
    machine = NavigationStateMachine(None, resolver, history)
    with pytest.raises(Unauthenticated):
        machine.select_coaching("alpha")


def test_snapshot_restore_round_trip(student_session, resolver, machine):
    _walk_to_pdfs(machine)
    snapshot = machine.snapshot()

    recording = RecordingHistory()
    restored = NavigationStateMachine.restore(snapshot, student_session, resolver, recording)

    assert restored.state == machine.state
    assert restored.root_payload == machine.root_payload
    restored.select_chapter("ch-1")
    assert recording.instructions == []


def test_restore_ignores_corrupt_snapshot(student_session, resolver):
    restored = NavigationStateMachine.restore({"state": {"view": "pdfs"}}, student_session, resolver, RecordingHistory())
    assert restored.depth == "root"


def test_recording_history_collects_push_instructions(student_session, resolver):
    recording = RecordingHistory()
    machine = NavigationStateMachine(student_session, resolver, recording)

    machine.select_coaching("alpha")
    machine.select_class("class-9")
    recording.deliver_pop(recording.instructions[0]["state"])

    ops = [instruction["op"] for instruction in recording.instructions]
    assert ops == ["push", "push", "push"]
    assert recording.instructions[2]["state"]["isRoot"] is True
    assert machine.depth == "classes"
