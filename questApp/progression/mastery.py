"""
Mastery aggregation over attempt records.

Everything here is a pure function of a sequence of ``AttemptSnapshot``
values: no ORM access, no mutation. The store builds the snapshots; views
and the quest graph consume the results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

STATUS_COMPLETED = "completed"
DEFAULT_WEAK_THRESHOLD = 70.0


@dataclass(frozen=True)
class AttemptSnapshot:
    subject: str
    chapter: str
    tags: Tuple[str, ...]
    status: str
    is_correct: bool
    attempts: int = 1
    time_spent: int = 0
    last_attempt_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScopeProgress:
    subject: str
    chapter: str
    questions_completed: int
    correct: int
    accuracy: float


@dataclass
class MasteryBucket:
    key: str
    total: int = 0
    correct: int = 0
    attempts: int = 0
    time_spent_total: int = 0

    @property
    def mastery(self) -> float:
        return percent(self.correct, self.total)

    @property
    def average_time_spent(self) -> float:
        return self.time_spent_total / self.total if self.total else 0.0

    def add(self, snapshot: AttemptSnapshot) -> None:
        self.total += 1
        if snapshot.is_correct:
            self.correct += 1
        self.attempts += max(int(snapshot.attempts), 0)
        self.time_spent_total += max(int(snapshot.time_spent), 0)

    def as_dict(self, key_name: str) -> Dict[str, object]:
        return {
            key_name: self.key,
            "total": self.total,
            "correct": self.correct,
            "attempts": self.attempts,
            "averageTimeSpent": self.average_time_spent,
            "mastery": self.mastery,
        }


@dataclass(frozen=True)
class DailyMastery:
    date: date
    total_count: int
    correct_count: int
    average_attempts: float

    @property
    def mastery(self) -> float:
        return percent(self.correct_count, self.total_count)

    def as_dict(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "totalCount": self.total_count,
            "correctCount": self.correct_count,
            "averageAttempts": self.average_attempts,
            "mastery": self.mastery,
        }


@dataclass
class MasterySummary:
    overall: MasteryBucket
    by_subject: List[MasteryBucket] = field(default_factory=list)
    by_chapter: List[MasteryBucket] = field(default_factory=list)
    by_concept: List[MasteryBucket] = field(default_factory=list)
    weak_concepts: List[MasteryBucket] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        overall = self.overall
        return {
            "overall": {
                "totalQuestions": overall.total,
                "correctAnswers": overall.correct,
                "totalAttempts": overall.attempts,
                "averageTimeSpent": overall.average_time_spent,
                "mastery": overall.mastery,
            },
            "bySubject": [bucket.as_dict("subject") for bucket in self.by_subject],
            "byChapter": [bucket.as_dict("chapter") for bucket in self.by_chapter],
            "byConcept": [bucket.as_dict("concept") for bucket in self.by_concept],
            "weakConcepts": [bucket.as_dict("concept") for bucket in self.weak_concepts],
        }


def percent(part: int, whole: int) -> float:
    """Return part/whole as a 0-100 percentage; 0 when whole is 0."""
    if whole <= 0:
        return 0.0
    value = (part / whole) * 100.0
    return min(max(value, 0.0), 100.0)


def scoped_accuracy(snapshots: Iterable[AttemptSnapshot], subject: str, chapter: str) -> ScopeProgress:
    """Completed count and accuracy for one subject+chapter scope."""
    completed = 0
    correct = 0
    for snapshot in snapshots:
        if snapshot.subject != subject or snapshot.chapter != chapter:
            continue
        if snapshot.status != STATUS_COMPLETED:
            continue
        completed += 1
        if snapshot.is_correct:
            correct += 1
    return ScopeProgress(
        subject=subject,
        chapter=chapter,
        questions_completed=completed,
        correct=correct,
        accuracy=percent(correct, completed),
    )


def _group(snapshots: Iterable[AttemptSnapshot], key_func) -> List[MasteryBucket]:
    buckets: Dict[str, MasteryBucket] = {}
    for snapshot in snapshots:
        for key in key_func(snapshot):
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = MasteryBucket(key=key)
            bucket.add(snapshot)
    return list(buckets.values())


def _by_mastery(buckets: List[MasteryBucket], descending: bool = False) -> List[MasteryBucket]:
    if descending:
        return sorted(buckets, key=lambda b: (-b.mastery, b.key))
    return sorted(buckets, key=lambda b: (b.mastery, b.key))


def overall_mastery(snapshots: Iterable[AttemptSnapshot]) -> MasteryBucket:
    bucket = MasteryBucket(key="overall")
    for snapshot in snapshots:
        bucket.add(snapshot)
    return bucket


def subject_mastery(snapshots: Iterable[AttemptSnapshot]) -> List[MasteryBucket]:
    return sorted(_group(snapshots, lambda s: (s.subject,)), key=lambda b: b.key)


def chapter_mastery(snapshots: Iterable[AttemptSnapshot]) -> List[MasteryBucket]:
    return _by_mastery(_group(snapshots, lambda s: (s.chapter,)), descending=True)


def concept_mastery(snapshots: Iterable[AttemptSnapshot]) -> List[MasteryBucket]:
    """Per-tag mastery, weakest first. A record counts fully toward each of its tags."""
    # a tag repeated on one question still counts once for that question
    return _by_mastery(_group(snapshots, lambda s: dict.fromkeys(s.tags)))


def weak_concepts(
    concepts: Sequence[MasteryBucket],
    threshold: float = DEFAULT_WEAK_THRESHOLD,
    limit: Optional[int] = None,
) -> List[MasteryBucket]:
    weak = _by_mastery([bucket for bucket in concepts if bucket.mastery < threshold])
    return weak[:limit] if limit is not None else weak


def mastery_history(
    snapshots: Iterable[AttemptSnapshot],
    since: Optional[datetime] = None,
) -> List[DailyMastery]:
    """Daily mastery over completed records, oldest day first."""
    days: Dict[date, List[AttemptSnapshot]] = {}
    for snapshot in snapshots:
        if snapshot.status != STATUS_COMPLETED or snapshot.last_attempt_at is None:
            continue
        if since is not None and snapshot.last_attempt_at < since:
            continue
        days.setdefault(snapshot.last_attempt_at.date(), []).append(snapshot)

    history = []
    for day in sorted(days):
        entries = days[day]
        history.append(
            DailyMastery(
                date=day,
                total_count=len(entries),
                correct_count=sum(1 for entry in entries if entry.is_correct),
                average_attempts=sum(entry.attempts for entry in entries) / len(entries),
            )
        )
    return history


def summarize(
    snapshots: Sequence[AttemptSnapshot],
    threshold: float = DEFAULT_WEAK_THRESHOLD,
) -> MasterySummary:
    concepts = concept_mastery(snapshots)
    return MasterySummary(
        overall=overall_mastery(snapshots),
        by_subject=subject_mastery(snapshots),
        by_chapter=chapter_mastery(snapshots),
        by_concept=concepts,
        weak_concepts=weak_concepts(concepts, threshold),
    )
