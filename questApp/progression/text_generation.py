from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests
from django.conf import settings

from .errors import ExternalServiceError

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
BARE_JSON = re.compile(r"\[[\s\S]*\]|\{[\s\S]*\}")

QUEST_CHAIN_PROMPT = """\
Using the learner survey below, design a role-playing style learning path of 5 to 8 main quests.

Learner:
- Grade: {grade}
- Reason for studying: {study_reason}
- Preferred guidance: {preferred_guide}
- Math background: {math_background}
- Learning goals: {learning_goals}

Reply with a JSON array only, no other text, using exactly this shape:
[
  {{
    "title": "quest title with an RPG flavour",
    "description": "detailed description",
    "difficulty": "beginner|intermediate|advanced",
    "subject": "math subject",
    "chapter": "specific chapter",
    "requirements": {{"questionsToComplete": 5, "minAccuracy": 70, "timeLimit": 48}},
    "rewards": {{"experience": 100, "coins": 50, "badges": ["badge name"]}},
    "isMainQuest": true
  }}
]

Make the difficulty increase steadily and keep the content coherent.
"""

RECOMMENDATION_SYSTEM = (
    "You are a mathematics education advisor who gives students targeted, "
    "personalised study advice based on their learning data."
)

RECOMMENDATION_PROMPT = """\
I am a university student studying calculus. My learning data shows low mastery of these concepts:
{concepts}

Give me targeted study advice as a JSON object with these fields and nothing else:
- importance: why these concepts matter and where they are used (string)
- methods: study methods (array of strings)
- resources: recommended resources (array of strings)
- exercises: concrete practice suggestions (array of strings)
- connections: how the concepts link to other mathematics (array of strings)
"""


def extract_json(text: str) -> Any:
    """Pull the first JSON array/object out of a chat reply, tolerating code fences."""
    if not isinstance(text, str) or not text.strip():
        raise ExternalServiceError("Text generation returned an empty reply.")
    candidates = []
    fenced = FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = BARE_JSON.search(text)
    if bare:
        candidates.append(bare.group(0))
    candidates.append(text.strip())

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (TypeError, ValueError):
            continue
    raise ExternalServiceError("Text generation reply did not contain valid JSON.")


class TextGenerationClient:
    """Minimal client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.TEXT_GENERATION_API_KEY
        self.api_url = (api_url or settings.TEXT_GENERATION_API_URL).rstrip("/")
        self.model = model or settings.TEXT_GENERATION_MODEL
        self.timeout = timeout if timeout is not None else settings.TEXT_GENERATION_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, messages: Sequence[Mapping[str, str]], temperature: float = 0.7) -> str:
        if not self.configured:
            raise ExternalServiceError("Text generation API key is not configured.", code="not_configured")

        request_payload = {
            "model": self.model,
            "messages": list(messages),
            "temperature": temperature,
            "max_tokens": 2000,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            response = requests.post(
                f"{self.api_url}/chat/completions",
                json=request_payload,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalServiceError(str(exc)) from exc

        try:
            response_payload = response.json()
        except ValueError as exc:
            raise ExternalServiceError("Text generation returned invalid JSON.") from exc

        try:
            content = response_payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExternalServiceError("Text generation response is missing message content.") from exc
        if not isinstance(content, str):
            raise ExternalServiceError("Text generation message content is not text.")
        return content

    def quest_chain(self, survey: Mapping[str, Any]) -> List[Dict[str, Any]]:
        prompt = QUEST_CHAIN_PROMPT.format(
            grade=survey.get("grade") or "unknown",
            study_reason=survey.get("studyReason") or "unknown",
            preferred_guide=survey.get("preferredGuide") or "unknown",
            math_background=survey.get("mathBackground") or "unknown",
            learning_goals=survey.get("learningGoals") or "unknown",
        )
        parsed = extract_json(self.complete([{"role": "user", "content": prompt}]))
        if not isinstance(parsed, list) or not parsed:
            raise ExternalServiceError("Quest chain reply was not a non-empty JSON array.")
        return parsed

    def recommendations(self, weak: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        concepts = "\n".join(
            f"- {item['concept']} (mastery: {float(item['mastery']):.1f}%)" for item in weak
        )
        parsed = extract_json(self.complete([
            {"role": "system", "content": RECOMMENDATION_SYSTEM},
            {"role": "user", "content": RECOMMENDATION_PROMPT.format(concepts=concepts)},
        ]))
        if not isinstance(parsed, dict):
            raise ExternalServiceError("Recommendation reply was not a JSON object.")
        return parsed
