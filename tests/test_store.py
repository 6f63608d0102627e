import pytest
from django.db import IntegrityError

from questApp.models import Progress
from questApp.progression import ConflictError, NotFound, ValidationError
from questApp.progression import store

from helpers import cleaned, outcome


def test_first_attempt_creates_record(learner, make_question):
    question = make_question()

    progress, created = store.upsert_attempt(learner, question, cleaned(notes="first try", difficulty=3))

    assert created is True
    assert progress.attempts == 1
    assert progress.notes == "first try"
    assert progress.difficulty == 3
    assert progress.last_attempt_at is not None


def test_resubmission_updates_single_record(learner, make_question):
    question = make_question()
    store.upsert_attempt(learner, question, cleaned(correct=False, notes="keep me"))

    progress, created = store.upsert_attempt(learner, question, cleaned(correct=True, status="reviewing"))

    assert created is False
    assert progress.attempts == 2
    assert progress.is_correct is True
    assert progress.status == "reviewing"
    assert progress.notes == "keep me"
    assert Progress.objects.filter(user=learner, question=question).count() == 1


def test_attempt_counter_matches_number_of_calls(learner, make_question):
    question = make_question()
    for _ in range(4):
        store.upsert_attempt(learner, question, cleaned())

    assert Progress.objects.get(user=learner, question=question).attempts == 4


@pytest.mark.parametrize("payload, field", [
    (outcome(status="finished"), "status"),
    (outcome(time_spent=-1), "time_spent"),
    (outcome(time_spent=10**20), "time_spent"),
    (outcome(user_answer=""), "user_answer"),
    (outcome(difficulty=9), "difficulty"),
    ({"status": "completed", "user_answer": "1", "time_spent": 1}, "is_correct"),
])
def test_validate_outcome_rejects_malformed_payloads(payload, field):
    with pytest.raises(ValidationError) as excinfo:
        store.validate_outcome(payload)
    assert field in excinfo.value.fields


def test_validate_outcome_accepts_camel_case_keys():
    data = store.validate_outcome({
        "status": "completed",
        "isCorrect": False,
        "userAnswer": "x = 3",
        "timeSpent": 12,
    })

    assert data["is_correct"] is False
    assert data["user_answer"] == "x = 3"
    assert data["time_spent"] == 12


def test_validate_outcome_rejects_non_objects():
    with pytest.raises(ValidationError):
        store.validate_outcome(["completed"])


def test_get_question_unknown_raises_not_found(db):
    with pytest.raises(NotFound):
        store.get_question(999999)


def test_lost_insert_race_is_retried(learner, make_question, monkeypatch):
    question = make_question()
    original_save = Progress.save
    raced = []

    def racing_save(self, *args, **kwargs):
        if kwargs.get("force_insert") and not raced:
            raced.append(True)
            raise IntegrityError("UNIQUE constraint failed: questApp_progress.user_id, questApp_progress.question_id")
        return original_save(self, *args, **kwargs)

    monkeypatch.setattr(Progress, "save", racing_save)

    progress, created = store.upsert_attempt(learner, question, cleaned())

    assert raced == [True]
    assert created is True
    assert Progress.objects.filter(user=learner, question=question).count() == 1


def test_persistent_insert_conflict_raises(learner, make_question, monkeypatch):
    question = make_question()

    def always_conflicts(self, *args, **kwargs):
        raise IntegrityError("UNIQUE constraint failed")

    monkeypatch.setattr(Progress, "save", always_conflicts)

    with pytest.raises(ConflictError):
        store.upsert_attempt(learner, question, cleaned())


def test_list_attempts_filters_and_paginates(learner, other_learner, make_question):
    limits = [make_question(chapter="Limits and Continuity") for _ in range(3)]
    integral = make_question(chapter="Integration")
    for question in limits:
        store.upsert_attempt(learner, question, cleaned())
    store.upsert_attempt(learner, integral, cleaned(status="skipped"))
    store.upsert_attempt(other_learner, integral, cleaned())

    records, total = store.list_attempts(learner, chapter="Limits and Continuity", page=1, limit=2)
    assert total == 3
    assert len(records) == 2

    records, total = store.list_attempts(learner, status="skipped")
    assert total == 1
    assert records[0].question == integral


def test_attempt_snapshots_carry_question_tags(learner, make_question):
    question = make_question(tags=["limits", "continuity"])
    store.upsert_attempt(learner, question, cleaned(correct=False))

    [snapshot] = store.attempt_snapshots(learner)

    assert snapshot.tags == ("limits", "continuity")
    assert snapshot.is_correct is False
    assert snapshot.chapter == question.chapter
