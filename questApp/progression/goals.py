from __future__ import annotations

from typing import Any, Dict, Mapping

from django.utils import timezone

from questApp.forms import GoalForm

from .errors import ValidationError
from .ledger import get_profile


def get_goal(user) -> Dict[str, Any]:
    profile = get_profile(user)
    return {
        "targetMastery": profile.goal_target_mastery,
        "deadline": profile.goal_deadline.isoformat() if profile.goal_deadline else None,
        "description": profile.goal_description,
        "setAt": profile.goal_set_at.isoformat() if profile.goal_set_at else None,
    }


def set_goal(user, payload: Mapping[str, Any]) -> Dict[str, Any]:
    form = GoalForm(data={
        "target_mastery": payload.get("targetMastery", payload.get("target_mastery")),
        "deadline": payload.get("deadline"),
        "description": payload.get("description", ""),
    })
    if not form.is_valid():
        fields = {name: [str(message) for message in messages] for name, messages in form.errors.items()}
        raise ValidationError(
            "; ".join(f"{name}: {' '.join(messages)}" for name, messages in fields.items()),
            fields=fields,
            code="invalid_goal",
        )

    profile = get_profile(user)
    profile.goal_target_mastery = form.cleaned_data["target_mastery"]
    profile.goal_deadline = form.cleaned_data["deadline"]
    profile.goal_description = form.cleaned_data["description"]
    profile.goal_set_at = timezone.now()
    profile.save(update_fields=[
        "goal_target_mastery", "goal_deadline", "goal_description", "goal_set_at", "updated_at",
    ])
    return get_goal(user)
