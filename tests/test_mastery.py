from datetime import datetime, timedelta, timezone

from questApp.progression import mastery
from questApp.progression.mastery import AttemptSnapshot

NOW = datetime(2024, 3, 10, 15, 0, tzinfo=timezone.utc)


def snap(chapter="Limits", tags=("limits",), correct=True, status="completed", attempts=1,
         time_spent=10, subject="Calculus", when=NOW):
    return AttemptSnapshot(
        subject=subject,
        chapter=chapter,
        tags=tuple(tags),
        status=status,
        is_correct=correct,
        attempts=attempts,
        time_spent=time_spent,
        last_attempt_at=when,
    )


def test_percent_of_nothing_is_zero():
    assert mastery.percent(0, 0) == 0.0
    assert mastery.percent(3, 4) == 75.0


def test_scoped_accuracy_only_counts_completed_records_in_scope():
    snapshots = [
        snap(correct=True),
        snap(correct=False),
        snap(correct=True, status="skipped"),
        snap(correct=True, status="reviewing"),
        snap(chapter="Integration", correct=True),
        snap(subject="Algebra", correct=True),
    ]

    scope = mastery.scoped_accuracy(snapshots, "Calculus", "Limits")

    assert scope.questions_completed == 2
    assert scope.correct == 1
    assert scope.accuracy == 50.0


def test_scoped_accuracy_without_completed_records_is_zero():
    scope = mastery.scoped_accuracy([snap(status="skipped")], "Calculus", "Limits")
    assert scope.questions_completed == 0
    assert scope.accuracy == 0.0


def test_concept_mastery_fans_out_to_every_tag():
    snapshots = [
        snap(tags=("limits", "continuity"), correct=True, attempts=2),
        snap(tags=("limits",), correct=False, attempts=3),
        snap(tags=("limits", "limits"), correct=False),
    ]

    concepts = {bucket.key: bucket for bucket in mastery.concept_mastery(snapshots)}

    assert concepts["limits"].total == 3
    assert concepts["limits"].correct == 1
    assert concepts["limits"].attempts == 6
    assert concepts["continuity"].total == 1
    assert concepts["continuity"].mastery == 100.0


def test_concept_mastery_is_weakest_first_with_name_tiebreak():
    snapshots = [
        snap(tags=("series",), correct=True),
        snap(tags=("limits",), correct=False),
        snap(tags=("areas",), correct=False),
    ]

    keys = [bucket.key for bucket in mastery.concept_mastery(snapshots)]

    assert keys == ["areas", "limits", "series"]


def test_mastery_stays_within_bounds():
    snapshots = [snap(tags=(f"t{i % 3}",), correct=i % 2 == 0) for i in range(20)]
    for bucket in mastery.concept_mastery(snapshots):
        assert 0.0 <= bucket.mastery <= 100.0


def test_weak_concepts_use_strict_threshold():
    snapshots = (
        [snap(tags=("seventy",), correct=True)] * 7
        + [snap(tags=("seventy",), correct=False)] * 3
        + [snap(tags=("weak",), correct=False)]
    )

    weak = mastery.weak_concepts(mastery.concept_mastery(snapshots), threshold=70)

    assert [bucket.key for bucket in weak] == ["weak"]


def test_weak_concepts_limit():
    snapshots = [snap(tags=(name,), correct=False) for name in "abcdef"]
    weak = mastery.weak_concepts(mastery.concept_mastery(snapshots), limit=3)
    assert [bucket.key for bucket in weak] == ["a", "b", "c"]


def test_chapter_mastery_is_strongest_first():
    snapshots = [
        snap(chapter="Limits", correct=False),
        snap(chapter="Integration", correct=True),
    ]
    assert [bucket.key for bucket in mastery.chapter_mastery(snapshots)] == ["Integration", "Limits"]


def test_history_groups_completed_records_by_day():
    yesterday = NOW - timedelta(days=1)
    snapshots = [
        snap(when=NOW, correct=True, attempts=1),
        snap(when=NOW, correct=False, attempts=3),
        snap(when=yesterday, correct=True),
        snap(when=NOW, status="skipped"),
        snap(when=NOW - timedelta(days=40), correct=True),
    ]

    history = mastery.mastery_history(snapshots, since=NOW - timedelta(days=30))

    assert [day.date for day in history] == [yesterday.date(), NOW.date()]
    today = history[-1]
    assert today.total_count == 2
    assert today.correct_count == 1
    assert today.mastery == 50.0
    assert today.average_attempts == 2.0
    assert history[0].as_dict()["date"] == yesterday.date().isoformat()


def test_summary_of_no_records_is_all_zero():
    summary = mastery.summarize([]).as_dict()

    assert summary["overall"] == {
        "totalQuestions": 0,
        "correctAnswers": 0,
        "totalAttempts": 0,
        "averageTimeSpent": 0.0,
        "mastery": 0.0,
    }
    assert summary["bySubject"] == []
    assert summary["byConcept"] == []
    assert summary["weakConcepts"] == []


def test_summary_overall_counts_every_record():
    snapshots = [
        snap(correct=True, attempts=2, time_spent=20),
        snap(correct=False, status="reviewing", attempts=1, time_spent=10),
    ]

    overall = mastery.summarize(snapshots).as_dict()["overall"]

    assert overall["totalQuestions"] == 2
    assert overall["correctAnswers"] == 1
    assert overall["totalAttempts"] == 3
    assert overall["averageTimeSpent"] == 15.0
    assert overall["mastery"] == 50.0
