from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import ValidationError

ValidationCallable = Callable[[Mapping[str, Any]], Optional[str]]

DIFFICULTY_TIERS = ("beginner", "intermediate", "advanced")

# Upper bounds for collaborator-supplied numbers; all fit a 32-bit IntegerField
MAX_QUESTIONS_TO_COMPLETE = 500
MAX_TIME_LIMIT_HOURS = 24 * 365
MAX_REWARD_AMOUNT = 1_000_000


@dataclass(frozen=True)
class DescriptorContract:
    """Shape rules for an untrusted JSON object (quest descriptor, advice)."""

    contract_id: str
    required_props: Set[str] = field(default_factory=set)
    optional_props: Set[str] = field(default_factory=set)
    validations: Sequence[ValidationCallable] = field(default_factory=tuple)
    allow_extra: bool = False

    def validate(self, props: Any) -> Tuple[bool, List[str]]:
        if not isinstance(props, Mapping):
            return False, [f"{self.contract_id} expected an object, got {type(props).__name__}"]

        errors: List[str] = []
        missing = self.required_props.difference(props.keys())
        if missing:
            errors.append(
                f"{self.contract_id} missing required props: {', '.join(sorted(missing))}"
            )

        if not self.allow_extra:
            allowed = self.required_props.union(self.optional_props)
            extras = set(props.keys()).difference(allowed)
            if extras:
                errors.append(
                    f"{self.contract_id} received unexpected props: {', '.join(sorted(extras))}"
                )

        # Field-level checks assume the required keys exist
        if missing:
            return False, errors

        for validate in self.validations:
            try:
                message = validate(props)
            except Exception as exc:
                errors.append(f"{self.contract_id} validator error: {exc}")
            else:
                if message:
                    errors.append(message)

        return (len(errors) == 0, errors)

    def ensure(self, props: Any) -> None:
        ok, errors = self.validate(props)
        if not ok:
            raise ValidationError("; ".join(errors), code="invalid_descriptor")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_text(*keys: str) -> ValidationCallable:
    def check(props: Mapping[str, Any]) -> Optional[str]:
        bad = [key for key in keys if not isinstance(props.get(key), str) or not props[key].strip()]
        if bad:
            return f"text fields must be non-empty strings: {', '.join(bad)}"
        return None

    return check


def _max_length(limits: Mapping[str, int]) -> ValidationCallable:
    def check(props: Mapping[str, Any]) -> Optional[str]:
        too_long = [key for key, limit in limits.items() if len(str(props.get(key, ""))) > limit]
        if too_long:
            return f"text fields too long: {', '.join(too_long)}"
        return None

    return check


def _difficulty_tier(props: Mapping[str, Any]) -> Optional[str]:
    if props.get("difficulty") not in DIFFICULTY_TIERS:
        return f"difficulty must be one of {', '.join(DIFFICULTY_TIERS)}"
    return None


def _requirements_shape(props: Mapping[str, Any]) -> Optional[str]:
    requirements = props.get("requirements")
    if not isinstance(requirements, Mapping):
        return "requirements must be an object"
    to_complete = requirements.get("questionsToComplete")
    if (
        not _is_number(to_complete)
        or not 1 <= to_complete <= MAX_QUESTIONS_TO_COMPLETE
        or int(to_complete) != to_complete
    ):
        return f"requirements.questionsToComplete must be an integer between 1 and {MAX_QUESTIONS_TO_COMPLETE}"
    accuracy = requirements.get("minAccuracy")
    if not _is_number(accuracy) or not 0 <= accuracy <= 100:
        return "requirements.minAccuracy must be a number between 0 and 100"
    time_limit = requirements.get("timeLimit", 24)
    if not _is_number(time_limit) or not 0 <= time_limit <= MAX_TIME_LIMIT_HOURS:
        return f"requirements.timeLimit must be a number between 0 and {MAX_TIME_LIMIT_HOURS}"
    return None


def _rewards_shape(props: Mapping[str, Any]) -> Optional[str]:
    rewards = props.get("rewards")
    if not isinstance(rewards, Mapping):
        return "rewards must be an object"
    for key in ("experience", "coins"):
        value = rewards.get(key, 0)
        if not _is_number(value) or not 0 <= value <= MAX_REWARD_AMOUNT or int(value) != value:
            return f"rewards.{key} must be an integer between 0 and {MAX_REWARD_AMOUNT}"
    badges = rewards.get("badges", [])
    if not isinstance(badges, list) or not all(isinstance(b, str) and b.strip() for b in badges):
        return "rewards.badges must be a list of non-empty strings"
    if any(len(badge) > 200 for badge in badges):
        return "rewards.badges entries must be at most 200 characters"
    if len({badge.strip() for badge in badges}) != len(badges):
        return "rewards.badges must not repeat"
    return None


def _string_list(*keys: str) -> ValidationCallable:
    def check(props: Mapping[str, Any]) -> Optional[str]:
        for key in keys:
            value = props.get(key)
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                return f"{key} must be a list of strings"
        return None

    return check


QUEST_DESCRIPTOR = DescriptorContract(
    contract_id="QuestDescriptor",
    required_props={"title", "description", "difficulty", "subject", "chapter", "requirements", "rewards"},
    optional_props={"isMainQuest", "type"},
    validations=(
        _non_empty_text("title", "description", "subject", "chapter"),
        _max_length({"title": 200, "subject": 100, "chapter": 100}),
        _difficulty_tier,
        _requirements_shape,
        _rewards_shape,
    ),
)

RECOMMENDATION = DescriptorContract(
    contract_id="Recommendation",
    required_props={"importance", "methods", "resources", "exercises", "connections"},
    validations=(
        _non_empty_text("importance"),
        _string_list("methods", "resources", "exercises", "connections"),
    ),
)


def validate_many(contract: DescriptorContract, items: Iterable[Any]) -> List[str]:
    """Validate every item; returns all errors, prefixed by item index."""
    errors: List[str] = []
    for index, item in enumerate(items):
        ok, item_errors = contract.validate(item)
        if not ok:
            errors.extend(f"[{index}] {message}" for message in item_errors)
    return errors


def normalize_quest_descriptor(props: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a validated camelCase descriptor onto Quest field names."""
    requirements = props["requirements"]
    rewards = props["rewards"]
    is_main = props.get("isMainQuest", True)
    return {
        "title": props["title"].strip(),
        "description": props["description"].strip(),
        "difficulty": props["difficulty"],
        "subject": props["subject"].strip(),
        "chapter": props["chapter"].strip(),
        "quest_type": props.get("type") if props.get("type") in ("main", "side", "daily") else "main",
        "is_main_quest": is_main if isinstance(is_main, bool) else True,
        "questions_to_complete": int(requirements["questionsToComplete"]),
        "min_accuracy": float(requirements["minAccuracy"]),
        "time_limit_hours": int(requirements.get("timeLimit", 24)),
        "reward_experience": int(rewards.get("experience", 0)),
        "reward_coins": int(rewards.get("coins", 0)),
        "reward_badges": [badge.strip() for badge in rewards.get("badges", [])],
    }
