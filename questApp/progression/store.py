"""Durable attempt records: one ``Progress`` row per (learner, question)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from questApp.forms import AttemptForm
from questApp.models import Progress, Question

from .errors import ConflictError, NotFound, ValidationError
from .mastery import AttemptSnapshot

logger = logging.getLogger(__name__)

UPSERT_RETRIES = 2

# camelCase keys accepted alongside the form field names
OUTCOME_ALIASES = {
    "isCorrect": "is_correct",
    "userAnswer": "user_answer",
    "timeSpent": "time_spent",
}


def validate_outcome(outcome: Mapping[str, Any]) -> Dict[str, Any]:
    """Clean a raw attempt outcome or raise ValidationError."""
    if not isinstance(outcome, Mapping):
        raise ValidationError("Attempt outcome must be an object.", code="invalid_outcome")
    data = dict(outcome)
    for alias, name in OUTCOME_ALIASES.items():
        if alias in data and name not in data:
            data[name] = data.pop(alias)
    form = AttemptForm(data=data)
    if not form.is_valid():
        fields = {name: [str(message) for message in messages] for name, messages in form.errors.items()}
        summary = "; ".join(f"{name}: {' '.join(messages)}" for name, messages in fields.items())
        raise ValidationError(summary or "Invalid attempt outcome.", fields=fields, code="invalid_outcome")
    return form.cleaned_data


def get_question(question_id) -> Question:
    try:
        return Question.objects.get(pk=question_id)
    except (Question.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Question {question_id} not found.", code="question_not_found")


def _apply_outcome(progress: Progress, cleaned: Mapping[str, Any], now) -> None:
    progress.status = cleaned["status"]
    progress.is_correct = cleaned["is_correct"]
    progress.user_answer = cleaned["user_answer"]
    progress.time_spent = cleaned["time_spent"]
    progress.last_attempt_at = now
    # optional fields only overwrite when supplied
    if cleaned.get("notes"):
        progress.notes = cleaned["notes"]
    if cleaned.get("difficulty") is not None:
        progress.difficulty = cleaned["difficulty"]


@transaction.atomic
def upsert_attempt(user, question: Question, cleaned: Mapping[str, Any], now=None) -> Tuple[Progress, bool]:
    """
    Create or update the attempt record for (user, question).

    The (user, question) unique constraint serialises concurrent writers: a
    create that loses the race is retried as an update of the winner's row.
    """
    now = now or timezone.now()
    for _ in range(UPSERT_RETRIES):
        progress = (
            Progress.objects.select_for_update()
            .filter(user=user, question=question)
            .first()
        )
        if progress is not None:
            _apply_outcome(progress, cleaned, now)
            progress.attempts += 1
            progress.save()
            return progress, False

        progress = Progress(user=user, question=question, attempts=1)
        _apply_outcome(progress, cleaned, now)
        try:
            with transaction.atomic():
                progress.save(force_insert=True)
        except IntegrityError:
            logger.info(
                "Attempt record for user=%s question=%s created concurrently; retrying as update",
                user.pk,
                question.pk,
            )
            continue
        return progress, True

    raise ConflictError(
        "Attempt record was modified concurrently; please retry.",
        code="attempt_conflict",
    )


def snapshot_of(progress: Progress) -> AttemptSnapshot:
    question = progress.question
    return AttemptSnapshot(
        subject=question.subject,
        chapter=question.chapter,
        tags=tuple(str(tag) for tag in (question.tags or [])),
        status=progress.status,
        is_correct=progress.is_correct,
        attempts=progress.attempts,
        time_spent=progress.time_spent,
        last_attempt_at=progress.last_attempt_at,
    )


def attempt_snapshots(user, subject: Optional[str] = None, chapter: Optional[str] = None) -> List[AttemptSnapshot]:
    records = Progress.objects.filter(user=user).select_related("question")
    if subject is not None:
        records = records.filter(question__subject=subject)
    if chapter is not None:
        records = records.filter(question__chapter=chapter)
    return [snapshot_of(progress) for progress in records.order_by("id")]


def list_attempts(
    user,
    subject: Optional[str] = None,
    chapter: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Progress], int]:
    records = Progress.objects.filter(user=user).select_related("question")
    if status:
        records = records.filter(status=status)
    if subject:
        records = records.filter(question__subject=subject)
    if chapter:
        records = records.filter(question__chapter=chapter)
    total = records.count()
    offset = (page - 1) * limit
    return list(records.order_by("-last_attempt_at", "-id")[offset:offset + limit]), total
