"""
Reward ledger: append-only ``Reward`` rows and the learner stats they imply.

Stats on ``LearnerProfile`` are only ever changed here, in the same
transaction as the rows that justify them, so that for every learner

    total_experience == sum(value of experience rewards)
    total_coins      == sum(value of coins rewards)
    completed_quests == number of quests with rewards_granted_at set
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from questApp.models import LearnerProfile, Quest, Reward

from .errors import InvariantViolation, NotFound
from .events import record_event

logger = logging.getLogger(__name__)

CHAIN_COMPLETION_REWARD = "Math Master"


def get_profile(user, lock: bool = False) -> LearnerProfile:
    profile, _ = LearnerProfile.objects.get_or_create(user=user)
    if lock:
        profile = LearnerProfile.objects.select_for_update().get(pk=profile.pk)
    return profile


class RewardLedger:
    def __init__(self, user) -> None:
        self.user = user

    def _quest_rewards(self, quest: Quest) -> List[Reward]:
        common = {
            "user": self.user,
            "source": Reward.SOURCE_QUEST_COMPLETION,
            "source_quest": quest,
        }
        rewards = []
        if quest.reward_experience > 0:
            rewards.append(Reward(
                reward_type=Reward.TYPE_EXPERIENCE,
                name=f"Experience +{quest.reward_experience}",
                description=f'Experience earned for completing "{quest.title}"',
                icon="Star",
                value=quest.reward_experience,
                **common,
            ))
        if quest.reward_coins > 0:
            rewards.append(Reward(
                reward_type=Reward.TYPE_COINS,
                name=f"Coins +{quest.reward_coins}",
                description=f'Coins earned for completing "{quest.title}"',
                icon="MonetizationOn",
                value=quest.reward_coins,
                **common,
            ))
        for badge in dict.fromkeys(str(name).strip() for name in quest.reward_badges or []):
            if not badge:
                continue
            rewards.append(Reward(
                reward_type=Reward.TYPE_BADGE,
                name=badge,
                description=f'Special badge for completing "{quest.title}"',
                rarity="rare",
                **common,
            ))
        return rewards

    def grant(self, quest: Quest) -> List[Reward]:
        """
        Append the quest's reward schedule and bump the learner's stats.

        Must be called once per completed quest. The quest is stamped with
        ``rewards_granted_at`` in the same transaction, so a second call raises
        InvariantViolation without writing anything, even for a quest whose
        schedule is empty.
        """
        if quest.user_id != self.user.pk:
            raise InvariantViolation(
                f"Quest {quest.pk} does not belong to user {self.user.pk}.",
                code="foreign_quest",
            )
        if quest.status != Quest.STATUS_COMPLETED:
            raise InvariantViolation(
                f"Quest {quest.pk} is {quest.status}; only completed quests earn rewards.",
                code="quest_not_completed",
            )

        try:
            with transaction.atomic():
                profile = get_profile(self.user, lock=True)
                granted_at = timezone.now()
                stamped = Quest.objects.filter(pk=quest.pk, rewards_granted_at__isnull=True).update(
                    rewards_granted_at=granted_at,
                    updated_at=granted_at,
                )
                if not stamped or Reward.objects.filter(source_quest=quest).exists():
                    raise InvariantViolation(
                        f"Rewards for quest {quest.pk} were already granted.",
                        code="rewards_already_granted",
                    )
                rewards = self._quest_rewards(quest)
                for reward in rewards:
                    reward.save(force_insert=True)
                LearnerProfile.objects.filter(pk=profile.pk).update(
                    total_experience=F("total_experience") + quest.reward_experience,
                    total_coins=F("total_coins") + quest.reward_coins,
                    completed_quests=F("completed_quests") + 1,
                    updated_at=granted_at,
                )
                quest.rewards_granted_at = granted_at
        except IntegrityError as exc:
            logger.error("Duplicate reward rows for quest %s: %s", quest.pk, exc)
            raise InvariantViolation(
                f"Rewards for quest {quest.pk} were already granted.",
                code="rewards_already_granted",
            ) from exc
        except InvariantViolation:
            logger.error("Refused reward grant for quest %s (user=%s)", quest.pk, self.user.pk)
            raise

        record_event(
            self.user,
            "rewards_granted",
            quest_id=quest.pk,
            experience=quest.reward_experience,
            coins=quest.reward_coins,
            badges=[reward.name for reward in rewards if reward.reward_type == Reward.TYPE_BADGE],
        )
        return rewards

    def chain_completion_reward(self) -> Optional[Reward]:
        return Reward.objects.filter(
            user=self.user,
            source=Reward.SOURCE_SPECIAL_EVENT,
            name=CHAIN_COMPLETION_REWARD,
        ).first()

    def grant_chain_completion(self) -> Optional[Reward]:
        """Issue the legendary achievement once; returns None when already held."""
        if self.chain_completion_reward() is not None:
            return None
        try:
            with transaction.atomic():
                reward = Reward.objects.create(
                    user=self.user,
                    reward_type=Reward.TYPE_ACHIEVEMENT,
                    name=CHAIN_COMPLETION_REWARD,
                    description="Congratulations on finishing every main quest. You are a true math master!",
                    icon="WorkspacePremium",
                    rarity="legendary",
                    value=0,
                    source=Reward.SOURCE_SPECIAL_EVENT,
                )
        except IntegrityError:
            logger.info("Chain completion reward for user=%s granted concurrently", self.user.pk)
            return None
        record_event(self.user, "chain_completed", reward_id=reward.pk)
        return reward

    def claim(self, reward_id) -> Reward:
        with transaction.atomic():
            reward = (
                Reward.objects.select_for_update()
                .filter(pk=reward_id, user=self.user, claimed=False)
                .first()
            )
            if reward is None:
                raise NotFound("Reward not found or already claimed.", code="reward_not_found")
            reward.claimed = True
            reward.claimed_at = timezone.now()
            reward.save(update_fields=["claimed", "claimed_at"])
        return reward

    def list_rewards(self, reward_type: Optional[str] = None, claimed: Optional[bool] = None):
        rewards = Reward.objects.filter(user=self.user).select_related("source_quest")
        if reward_type:
            rewards = rewards.filter(reward_type=reward_type)
        if claimed is not None:
            rewards = rewards.filter(claimed=claimed)
        return rewards.order_by("-created_at", "-id")

    def reward_stats(self) -> List[Dict[str, object]]:
        rows = (
            Reward.objects.filter(user=self.user)
            .values("reward_type")
            .annotate(
                total=Count("id"),
                claimed=Count("id", filter=Q(claimed=True)),
                total_value=Sum("value"),
            )
            .order_by("reward_type")
        )
        return [
            {
                "type": row["reward_type"],
                "total": row["total"],
                "claimed": row["claimed"],
                "totalValue": row["total_value"] or 0,
            }
            for row in rows
        ]
