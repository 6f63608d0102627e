from datetime import timedelta
from functools import wraps
import json
import logging
import math

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from .forms import ProgressFilterForm, RewardFilterForm
from .progression import (
    InvariantViolation,
    ProgressionError,
    ProgressionOrchestrator,
    RewardLedger,
    ValidationError,
    build_recommendations,
    chain_status,
    generate_chain,
    get_goal,
    get_profile,
    set_goal,
)
from .progression import mastery
from .progression.store import attempt_snapshots, list_attempts

logger = logging.getLogger(__name__)


def _json_error(message, status=400, code='bad_request', **extra):
    error = {
        "code": code,
        "message": message,
    }
    error.update(extra)
    return JsonResponse({
        "ok": False,
        "error": error,
    }, status=status)


def _parse_request_json(request):
    try:
        payload = json.loads(request.body or "{}")
    except json.JSONDecodeError:
        return None, _json_error("Invalid JSON payload", status=400, code='invalid_json')
    if not isinstance(payload, dict):
        return None, _json_error("JSON payload must be an object", status=400, code='invalid_json')
    return payload, None


def _json_ok(**payload):
    return JsonResponse({"ok": True, **payload})


def progression_errors(view):
    """Translate engine errors into the JSON error envelope."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ValidationError as exc:
            return _json_error(exc.message, status=exc.status, code=exc.code, fields=exc.fields)
        except InvariantViolation as exc:
            logger.error("Invariant violation in %s: %s", view.__name__, exc.message)
            return _json_error("Internal server error.", status=exc.status, code=exc.code)
        except ProgressionError as exc:
            return _json_error(exc.message, status=exc.status, code=exc.code)
        except Exception:
            logger.exception("Unhandled error in %s", view.__name__)
            return _json_error("Internal server error.", status=500, code='server_error')
    return wrapper


def _iso(value):
    return value.isoformat() if value else None


def serialize_progress(progress):
    question = progress.question
    return {
        "id": progress.id,
        "question": {
            "id": question.id,
            "title": question.title,
            "type": question.question_type,
            "difficulty": question.difficulty,
            "subject": question.subject,
            "chapter": question.chapter,
            "tags": question.tags,
        },
        "status": progress.status,
        "isCorrect": progress.is_correct,
        "userAnswer": progress.user_answer,
        "timeSpent": progress.time_spent,
        "attempts": progress.attempts,
        "lastAttemptAt": _iso(progress.last_attempt_at),
        "difficulty": progress.difficulty,
        "notes": progress.notes,
    }


def serialize_quest(quest):
    if quest is None:
        return None
    return {
        "id": quest.id,
        "title": quest.title,
        "description": quest.description,
        "type": quest.quest_type,
        "isMainQuest": quest.is_main_quest,
        "difficulty": quest.difficulty,
        "subject": quest.subject,
        "chapter": quest.chapter,
        "order": quest.order,
        "status": quest.status,
        "requirements": {
            "questionsToComplete": quest.questions_to_complete,
            "minAccuracy": quest.min_accuracy,
            "timeLimit": quest.time_limit_hours,
        },
        "rewards": {
            "experience": quest.reward_experience,
            "coins": quest.reward_coins,
            "badges": quest.reward_badges,
        },
        "progress": {
            "questionsCompleted": quest.questions_completed,
            "currentAccuracy": quest.current_accuracy,
            "startedAt": _iso(quest.started_at),
            "completedAt": _iso(quest.completed_at),
        },
        "prerequisites": [prerequisite.id for prerequisite in quest.prerequisites.all()],
    }


def serialize_reward(reward):
    if reward is None:
        return None
    return {
        "id": reward.id,
        "type": reward.reward_type,
        "name": reward.name,
        "description": reward.description,
        "icon": reward.icon,
        "rarity": reward.rarity,
        "value": reward.value,
        "claimed": reward.claimed,
        "claimedAt": _iso(reward.claimed_at),
        "source": reward.source,
        "sourceQuest": reward.source_quest_id,
        "createdAt": _iso(reward.created_at),
    }


def _serialize_update(update):
    return {
        "quest": serialize_quest(update.quest),
        "questCompleted": update.completed,
        "rewards": [serialize_reward(reward) for reward in update.rewards],
        "unlocked": [serialize_quest(quest) for quest in update.unlocked],
    }


# --- Progress ---------------------------------------------------------------

@login_required
@require_http_methods(["POST"])
@progression_errors
def record_attempt_view(request, question_id):
    data, error = _parse_request_json(request)
    if error:
        return error
    result = ProgressionOrchestrator(request.user).record_attempt(question_id, data)
    return _json_ok(
        progress=serialize_progress(result.progress),
        created=result.created,
        quest=serialize_quest(result.quest),
        questCompleted=result.completed,
        rewards=[serialize_reward(reward) for reward in result.rewards],
        unlocked=[serialize_quest(quest) for quest in result.unlocked],
    )


@login_required
@require_http_methods(["GET"])
@progression_errors
def progress_list(request):
    form = ProgressFilterForm(request.GET)
    if not form.is_valid():
        return _json_error("Invalid filters.", code='invalid_filters', fields=form.errors.get_json_data())
    page = form.cleaned_data.get('page') or 1
    limit = form.cleaned_data.get('limit') or 10
    records, total = list_attempts(
        request.user,
        subject=form.cleaned_data.get('subject') or None,
        chapter=form.cleaned_data.get('chapter') or None,
        status=form.cleaned_data.get('status') or None,
        page=page,
        limit=limit,
    )
    return _json_ok(
        records=[serialize_progress(progress) for progress in records],
        pagination={
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    )


def _summary(user):
    threshold = getattr(settings, 'QUEST_WEAK_CONCEPT_THRESHOLD', mastery.DEFAULT_WEAK_THRESHOLD)
    return mastery.summarize(attempt_snapshots(user), threshold).as_dict()


@login_required
@require_http_methods(["GET"])
@progression_errors
def progress_stats(request):
    summary = _summary(request.user)
    return _json_ok(
        overall=summary["overall"],
        bySubject=summary["bySubject"],
        byChapter=summary["byChapter"],
    )


@login_required
@require_http_methods(["GET"])
@progression_errors
def progress_concepts(request):
    summary = _summary(request.user)
    return _json_ok(concepts=summary["byConcept"], weakConcepts=summary["weakConcepts"])


@login_required
@require_http_methods(["GET"])
@progression_errors
def progress_history(request):
    days = getattr(settings, 'QUEST_HISTORY_DAYS', 30)
    since = timezone.now() - timedelta(days=days)
    history = mastery.mastery_history(attempt_snapshots(request.user), since=since)
    return _json_ok(days=days, history=[day.as_dict() for day in history])


@login_required
@require_http_methods(["GET"])
@progression_errors
def progress_recommendations(request):
    return _json_ok(**build_recommendations(request.user))


@login_required
@require_http_methods(["GET", "POST"])
@progression_errors
def progress_goals(request):
    if request.method == "GET":
        return _json_ok(goal=get_goal(request.user))
    data, error = _parse_request_json(request)
    if error:
        return error
    return _json_ok(goal=set_goal(request.user, data))


# --- Quests -----------------------------------------------------------------

@login_required
@require_http_methods(["POST"])
@progression_errors
def quest_generate(request):
    quests, created = generate_chain(request.user)
    return _json_ok(created=created, quests=[serialize_quest(quest) for quest in quests])


@login_required
@require_http_methods(["GET"])
@progression_errors
def quest_status(request):
    return _json_ok(**chain_status(request.user))


@login_required
@require_http_methods(["GET"])
@progression_errors
def quest_list(request):
    orchestrator = ProgressionOrchestrator(request.user)
    quests = orchestrator.graph.quests().prefetch_related('prerequisites')
    return _json_ok(quests=[serialize_quest(quest) for quest in quests])


@login_required
@require_http_methods(["POST"])
@progression_errors
def quest_refresh(request, quest_id):
    update = ProgressionOrchestrator(request.user).refresh_quest(quest_id)
    return _json_ok(**_serialize_update(update))


@login_required
@require_http_methods(["GET"])
@progression_errors
def quest_check_completion(request):
    status = ProgressionOrchestrator(request.user).check_chain_completion()
    return _json_ok(
        completed=status.completed,
        progress=status.progress,
        completedCount=status.completed_count,
        total=status.total,
        nextQuest=serialize_quest(status.next_quest),
        finalReward=serialize_reward(status.final_reward),
    )


# --- Rewards ----------------------------------------------------------------

@login_required
@require_http_methods(["GET"])
@progression_errors
def reward_list(request):
    form = RewardFilterForm(request.GET)
    if not form.is_valid():
        return _json_error("Invalid filters.", code='invalid_filters', fields=form.errors.get_json_data())
    rewards = RewardLedger(request.user).list_rewards(
        reward_type=form.cleaned_data.get('type') or None,
        claimed=form.cleaned_data.get('claimed'),
    )
    return _json_ok(rewards=[serialize_reward(reward) for reward in rewards])


@login_required
@require_http_methods(["POST"])
@progression_errors
def reward_claim(request, reward_id):
    reward = RewardLedger(request.user).claim(reward_id)
    return _json_ok(reward=serialize_reward(reward))


@login_required
@require_http_methods(["GET"])
@progression_errors
def reward_stats(request):
    return _json_ok(stats=RewardLedger(request.user).reward_stats())


# --- Profile ----------------------------------------------------------------

@login_required
@require_http_methods(["GET"])
@progression_errors
def profile_view(request):
    profile = get_profile(request.user)
    return _json_ok(profile={
        "username": request.user.username,
        "level": profile.level,
        "totalExperience": profile.total_experience,
        "totalCoins": profile.total_coins,
        "completedQuests": profile.completed_quests,
        "completedSurvey": profile.completed_survey,
    })
