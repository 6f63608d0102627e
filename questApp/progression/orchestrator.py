from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from django.db import transaction

from questApp.models import Progress, Quest, Reward

from .errors import NotFound
from .ledger import RewardLedger
from .quest_graph import ACTIVE_STATUSES, QuestGraph
from .store import get_question, upsert_attempt, validate_outcome

logger = logging.getLogger(__name__)


@dataclass
class QuestUpdate:
    quest: Optional[Quest]
    completed: bool = False
    rewards: List[Reward] = field(default_factory=list)
    unlocked: List[Quest] = field(default_factory=list)


@dataclass
class AttemptResult:
    progress: Progress
    created: bool
    quest: Optional[Quest] = None
    completed: bool = False
    rewards: List[Reward] = field(default_factory=list)
    unlocked: List[Quest] = field(default_factory=list)


@dataclass
class ChainStatus:
    completed: bool
    completed_count: int
    total: int
    next_quest: Optional[Quest] = None
    final_reward: Optional[Reward] = None

    @property
    def progress(self) -> str:
        return f"{self.completed_count}/{self.total}"


class ProgressionOrchestrator:
    """Runs one learner's progression side effects as a single unit of work."""

    def __init__(self, user) -> None:
        self.user = user
        self.graph = QuestGraph(user)
        self.ledger = RewardLedger(user)

    def _settle(self, quest: Quest) -> QuestUpdate:
        quest, completed_now = self.graph.evaluate(quest)
        if not completed_now:
            return QuestUpdate(quest=quest)
        rewards = self.ledger.grant(quest)
        unlocked = self.graph.unlock_after(quest)
        return QuestUpdate(quest=quest, completed=True, rewards=rewards, unlocked=unlocked)

    def record_attempt(self, question_id, outcome: Mapping[str, Any]) -> AttemptResult:
        """
        Store an answer submission and advance the learner's quest chain.

        The attempt write, quest transition, reward grant and unlock commit
        together; any failure leaves none of them behind.
        """
        cleaned = validate_outcome(outcome)
        question = get_question(question_id)

        with transaction.atomic():
            progress, created = upsert_attempt(self.user, question, cleaned)
            quest = self.graph.active_quest_for(question.subject, question.chapter, lock=True)
            update = self._settle(quest) if quest is not None else QuestUpdate(quest=None)

        if update.completed:
            logger.info(
                "User %s completed quest %s; granted %d rewards, unlocked %s",
                self.user.pk,
                update.quest.pk,
                len(update.rewards),
                [unlocked.pk for unlocked in update.unlocked],
            )
        return AttemptResult(
            progress=progress,
            created=created,
            quest=update.quest,
            completed=update.completed,
            rewards=update.rewards,
            unlocked=update.unlocked,
        )

    def refresh_quest(self, quest_id) -> QuestUpdate:
        with transaction.atomic():
            quest = self.graph.get(quest_id, lock=True)
            if quest is None:
                raise NotFound(f"Quest {quest_id} not found.", code="quest_not_found")
            return self._settle(quest)

    def check_chain_completion(self) -> ChainStatus:
        """Main-quest completion; issues the one-time final reward when all are done."""
        with transaction.atomic():
            quests = list(self.graph.quests().filter(is_main_quest=True))
            completed_count = sum(1 for quest in quests if quest.status == Quest.STATUS_COMPLETED)
            all_done = bool(quests) and completed_count == len(quests)

            final_reward = None
            if all_done:
                final_reward = self.ledger.grant_chain_completion() or self.ledger.chain_completion_reward()
            next_quest = next((quest for quest in quests if quest.status in ACTIVE_STATUSES), None)

        return ChainStatus(
            completed=all_done,
            completed_count=completed_count,
            total=len(quests),
            next_quest=next_quest,
            final_reward=final_reward,
        )


def record_attempt(user, question_id, outcome: Mapping[str, Any]) -> AttemptResult:
    return ProgressionOrchestrator(user).record_attempt(question_id, outcome)
