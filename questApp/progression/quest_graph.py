"""
Quest lifecycle and prerequisite unlocking.

    locked -> available -> in_progress -> completed
                  \\             /
                   `-> failed <-'      (extension point only)

Every status change is a conditional UPDATE guarded on the expected
current status, so two requests racing on the same quest cannot both
observe the same transition.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from django.utils import timezone

from questApp.models import Quest

from .errors import InvariantViolation
from .events import record_event
from .mastery import AttemptSnapshot, scoped_accuracy
from .store import attempt_snapshots

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (Quest.STATUS_COMPLETED, Quest.STATUS_FAILED)
ACTIVE_STATUSES = (Quest.STATUS_AVAILABLE, Quest.STATUS_IN_PROGRESS)


class QuestGraph:
    """Transitions and unlock protocol over one learner's quests."""

    def __init__(self, user) -> None:
        self.user = user

    def quests(self):
        return Quest.objects.filter(user=self.user).order_by("order")

    def get(self, quest_id, lock: bool = False) -> Optional[Quest]:
        queryset = Quest.objects.filter(user=self.user, pk=quest_id)
        if lock:
            queryset = queryset.select_for_update()
        return queryset.first()

    def active_quest_for(self, subject: str, chapter: str, lock: bool = False) -> Optional[Quest]:
        """The lowest-ordered available/in-progress quest covering subject+chapter."""
        queryset = Quest.objects.filter(
            user=self.user,
            subject=subject,
            chapter=chapter,
            status__in=ACTIVE_STATUSES,
        ).order_by("order")
        if lock:
            queryset = queryset.select_for_update()
        return queryset.first()

    # --- Transitions ---------------------------------------------------

    def _transition(self, quest: Quest, from_status: str, to_status: str, **fields) -> bool:
        now = timezone.now()
        updated = Quest.objects.filter(pk=quest.pk, status=from_status).update(
            status=to_status, updated_at=now, **fields
        )
        if not updated:
            quest.refresh_from_db()
            logger.info(
                "Quest %s transition %s -> %s skipped; current status %s",
                quest.pk, from_status, to_status, quest.status,
            )
            return False
        quest.status = to_status
        quest.updated_at = now
        for name, value in fields.items():
            setattr(quest, name, value)
        return True

    def _refresh_snapshot(self, quest: Quest, questions_completed: int, accuracy: float) -> bool:
        now = timezone.now()
        updated = Quest.objects.filter(
            pk=quest.pk,
            status__in=(Quest.STATUS_LOCKED,) + ACTIVE_STATUSES,
        ).update(
            questions_completed=questions_completed,
            current_accuracy=accuracy,
            updated_at=now,
        )
        if not updated:
            quest.refresh_from_db()
            return False
        quest.questions_completed = questions_completed
        quest.current_accuracy = accuracy
        quest.updated_at = now
        return True

    def evaluate(
        self,
        quest: Quest,
        snapshots: Optional[Sequence[AttemptSnapshot]] = None,
    ) -> Tuple[Quest, bool]:
        """
        Refresh the quest's progress snapshot and apply any due transition.

        Returns ``(quest, completed_now)``; ``completed_now`` is True only for
        the single call that moved the quest into ``completed``. Completed and
        failed quests are returned untouched.
        """
        if quest.status in TERMINAL_STATUSES:
            return quest, False

        if snapshots is None:
            snapshots = attempt_snapshots(self.user, quest.subject, quest.chapter)
        scope = scoped_accuracy(snapshots, quest.subject, quest.chapter)
        if not self._refresh_snapshot(quest, scope.questions_completed, scope.accuracy):
            return quest, False

        if quest.status == Quest.STATUS_LOCKED:
            return quest, False

        now = timezone.now()
        if (
            quest.status == Quest.STATUS_AVAILABLE
            and quest.started_at is None
            and quest.questions_completed > 0
        ):
            if self._transition(quest, Quest.STATUS_AVAILABLE, Quest.STATUS_IN_PROGRESS, started_at=now):
                record_event(self.user, "quest_started", quest_id=quest.pk, order=quest.order)

        if quest.status == Quest.STATUS_IN_PROGRESS and quest.requirements_met:
            if self._transition(quest, Quest.STATUS_IN_PROGRESS, Quest.STATUS_COMPLETED, completed_at=now):
                record_event(
                    self.user,
                    "quest_completed",
                    quest_id=quest.pk,
                    order=quest.order,
                    accuracy=quest.current_accuracy,
                )
                return quest, True

        return quest, False

    def fail(self, quest: Quest) -> bool:
        """Extension point: move an available/in-progress quest to ``failed``."""
        for from_status in ACTIVE_STATUSES:
            if quest.status == from_status:
                if self._transition(quest, from_status, Quest.STATUS_FAILED):
                    record_event(self.user, "quest_failed", quest_id=quest.pk, order=quest.order)
                    return True
                return False
        return False

    # --- Unlock protocol -----------------------------------------------

    @staticmethod
    def prerequisites_completed(quest: Quest) -> bool:
        return not quest.prerequisites.exclude(status=Quest.STATUS_COMPLETED).exists()

    def _unlock(self, quest: Quest) -> bool:
        if quest.status != Quest.STATUS_LOCKED or not self.prerequisites_completed(quest):
            return False
        if self._transition(quest, Quest.STATUS_LOCKED, Quest.STATUS_AVAILABLE):
            record_event(self.user, "quest_unlocked", quest_id=quest.pk, order=quest.order)
            return True
        return False

    def unlock_next(self, completed_order: int) -> Optional[Quest]:
        """Unlock the locked quest right after ``completed_order`` once its prerequisites are done."""
        candidate = Quest.objects.filter(
            user=self.user,
            order=completed_order + 1,
            status=Quest.STATUS_LOCKED,
        ).first()
        if candidate is None:
            return None
        return candidate if self._unlock(candidate) else None

    def unlock_ready(self, completed_quest: Quest) -> List[Quest]:
        """Unlock every locked dependent whose prerequisites are now all completed."""
        unlocked = []
        for dependent in completed_quest.dependents.filter(status=Quest.STATUS_LOCKED).order_by("order"):
            if self._unlock(dependent):
                unlocked.append(dependent)
        return unlocked

    def unlock_after(self, completed_quest: Quest) -> List[Quest]:
        unlocked = self.unlock_ready(completed_quest)
        following = self.unlock_next(completed_quest.order)
        if following is not None and following.pk not in {quest.pk for quest in unlocked}:
            unlocked.append(following)
        return unlocked

    def link(self, quest: Quest, prerequisites: Iterable[Quest]) -> None:
        """Record predecessor references; each must belong to the learner and come earlier."""
        prerequisites = list(prerequisites)
        for prerequisite in prerequisites:
            if prerequisite.user_id != quest.user_id:
                raise InvariantViolation(
                    f"Quest {quest.pk} cannot depend on another learner's quest {prerequisite.pk}.",
                    code="foreign_prerequisite",
                )
            if prerequisite.order >= quest.order:
                raise InvariantViolation(
                    f"Prerequisite #{prerequisite.order} must come before quest #{quest.order}.",
                    code="prerequisite_order",
                )
        if prerequisites:
            quest.prerequisites.add(*prerequisites)
