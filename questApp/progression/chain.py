"""
Quest chain creation.

A learner's chain is built once: from collaborator output when every
descriptor passes ``QUEST_DESCRIPTOR``, otherwise from the bundled
``default_chain.json`` pack. Collaborator text is only ever stored as quest
content; it never decides control flow beyond "valid or not".
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from django.db import transaction

from questApp.models import Quest

from .contracts import DIFFICULTY_TIERS, QUEST_DESCRIPTOR, normalize_quest_descriptor, validate_many
from .errors import ExternalServiceError
from .events import record_event
from .ledger import get_profile
from .quest_graph import QuestGraph
from .seeds import load_bundled_pack
from .text_generation import TextGenerationClient

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_PACK = "default_chain.json"
MIN_CHAIN_LENGTH = 5
MAX_CHAIN_LENGTH = 8


def background_difficulty(survey: Mapping[str, Any]) -> str:
    background = survey.get("mathBackground") if isinstance(survey, Mapping) else None
    if background in DIFFICULTY_TIERS:
        return background
    return "beginner"


def default_chain(survey: Mapping[str, Any]) -> List[Dict[str, Any]]:
    pack = load_bundled_pack(DEFAULT_CHAIN_PACK)
    descriptors = copy.deepcopy(pack.payload)
    difficulty = background_difficulty(survey)
    for position in pack.extras.get("adaptive_difficulty_positions", []):
        if 1 <= position <= len(descriptors):
            descriptors[position - 1]["difficulty"] = difficulty
    return descriptors


def collaborator_chain(survey: Mapping[str, Any], client: TextGenerationClient) -> Optional[List[Dict[str, Any]]]:
    """Validated collaborator descriptors, or None when anything is off."""
    try:
        descriptors = client.quest_chain(survey)
    except ExternalServiceError as exc:
        logger.warning("Quest chain generation unavailable, using default chain: %s", exc)
        return None

    if not MIN_CHAIN_LENGTH <= len(descriptors) <= MAX_CHAIN_LENGTH:
        logger.warning(
            "Quest chain reply had %d quests (expected %d-%d); using default chain",
            len(descriptors), MIN_CHAIN_LENGTH, MAX_CHAIN_LENGTH,
        )
        return None

    errors = validate_many(QUEST_DESCRIPTOR, descriptors)
    if errors:
        logger.warning("Quest chain reply failed validation, using default chain: %s", "; ".join(errors))
        return None
    return descriptors


def generate_chain(user, client: Optional[TextGenerationClient] = None) -> Tuple[List[Quest], bool]:
    """Create the learner's chain if it does not exist yet; returns (quests, created)."""
    graph = QuestGraph(user)
    existing = list(graph.quests())
    if existing:
        return existing, False

    survey = get_profile(user).survey_data or {}
    client = client or TextGenerationClient()
    descriptors = collaborator_chain(survey, client)
    source = "generated"
    if descriptors is None:
        descriptors = default_chain(survey)
        source = "default"

    with transaction.atomic():
        # serialise concurrent generate calls for the same learner on the profile row
        get_profile(user, lock=True)
        existing = list(graph.quests())
        if existing:
            return existing, False

        quests: List[Quest] = []
        for index, descriptor in enumerate(descriptors):
            quest = Quest.objects.create(
                user=user,
                order=index + 1,
                status=Quest.STATUS_AVAILABLE if index == 0 else Quest.STATUS_LOCKED,
                **normalize_quest_descriptor(descriptor),
            )
            if quests:
                graph.link(quest, [quests[-1]])
            quests.append(quest)

        record_event(user, "chain_generated", source=source, quest_count=len(quests))

    logger.info("Generated %s quest chain of %d quests for user %s", source, len(quests), user.pk)
    return quests, True


def chain_status(user) -> Dict[str, Any]:
    profile = get_profile(user)
    quest_count = Quest.objects.filter(user=user).count()
    return {
        "hasCompletedSurvey": profile.completed_survey,
        "hasQuestChain": quest_count > 0,
        "questCount": quest_count,
    }
