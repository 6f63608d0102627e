from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings

from . import mastery
from .contracts import RECOMMENDATION
from .errors import ExternalServiceError, ValidationError
from .seeds import load_bundled_pack
from .store import attempt_snapshots
from .text_generation import TextGenerationClient

logger = logging.getLogger(__name__)

RECOMMENDATIONS_PACK = "recommendations.json"
WEAK_CONCEPT_LIMIT = 5
PROMPT_CONCEPT_LIMIT = 3


def _fallback(kind: str, concepts: Optional[List[str]] = None) -> Dict[str, Any]:
    advice = copy.deepcopy(load_bundled_pack(RECOMMENDATIONS_PACK).extras[kind])
    if concepts:
        advice["importance"] = advice["importance"].format(concepts=", ".join(concepts))
    return advice


def build_recommendations(user, client: Optional[TextGenerationClient] = None) -> Dict[str, Any]:
    threshold = getattr(settings, "QUEST_WEAK_CONCEPT_THRESHOLD", mastery.DEFAULT_WEAK_THRESHOLD)
    concepts = mastery.concept_mastery(attempt_snapshots(user))
    weak = mastery.weak_concepts(concepts, threshold, limit=WEAK_CONCEPT_LIMIT)
    weak_payload = [bucket.as_dict("concept") for bucket in weak]

    if not weak:
        return {"weakConcepts": [], "recommendations": _fallback("no_weak_concepts"), "source": "default"}

    client = client or TextGenerationClient()
    try:
        advice = client.recommendations(weak_payload[:PROMPT_CONCEPT_LIMIT])
        RECOMMENDATION.ensure(advice)
    except ExternalServiceError as exc:
        logger.warning("Recommendation generation unavailable, using default advice: %s", exc)
    except ValidationError as exc:
        logger.warning("Recommendation reply rejected, using default advice: %s", exc)
    else:
        return {"weakConcepts": weak_payload, "recommendations": advice, "source": "generated"}

    names = [bucket.key for bucket in weak[:PROMPT_CONCEPT_LIMIT]]
    return {"weakConcepts": weak_payload, "recommendations": _fallback("weak_concepts", names), "source": "default"}
