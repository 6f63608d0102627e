import pytest

from questApp.models import LearnerProfile, Progress, Quest, Reward
from questApp.progression import (
    InvariantViolation,
    NotFound,
    ProgressionOrchestrator,
    RewardLedger,
    ValidationError,
    record_attempt,
)

from helpers import outcome


def _submit(user, questions, correct_flags):
    result = None
    for question, correct in zip(questions, correct_flags):
        result = record_attempt(user, question.pk, outcome(correct=correct))
    return result


def test_five_correct_answers_complete_quest_and_unlock_next(learner, chain, make_question):
    questions = [make_question(chapter=chain[0].chapter) for _ in range(5)]

    result = _submit(learner, questions, [True] * 5)

    assert result.completed is True
    assert result.quest.status == Quest.STATUS_COMPLETED
    assert sorted(reward.reward_type for reward in result.rewards) == ["coins", "experience"]
    assert [quest.pk for quest in result.unlocked] == [chain[1].pk]
    assert Quest.objects.get(pk=chain[1].pk).status == Quest.STATUS_AVAILABLE
    assert Quest.objects.get(pk=chain[2].pk).status == Quest.STATUS_LOCKED


def test_eighty_percent_accuracy_completes(learner, chain, make_question):
    questions = [make_question(chapter=chain[0].chapter) for _ in range(5)]

    result = _submit(learner, questions, [True, True, True, True, False])

    assert result.completed is True
    assert result.quest.current_accuracy == 80.0


def test_sixty_percent_accuracy_stays_in_progress(learner, chain, make_question):
    questions = [make_question(chapter=chain[0].chapter) for _ in range(5)]

    result = _submit(learner, questions, [True, True, True, False, False])

    assert result.completed is False
    assert result.quest.status == Quest.STATUS_IN_PROGRESS
    assert result.rewards == []
    assert not Reward.objects.exists()


def test_resubmission_after_completion_does_not_regrant(learner, chain, make_question):
    questions = [make_question(chapter=chain[0].chapter) for _ in range(5)]
    _submit(learner, questions, [True] * 5)

    result = record_attempt(learner, questions[0].pk, outcome(correct=True))

    assert result.created is False
    assert result.progress.attempts == 2
    assert result.completed is False
    assert result.rewards == []
    assert Progress.objects.filter(user=learner, question=questions[0]).count() == 1
    assert Reward.objects.filter(source_quest=chain[0]).count() == 2
    assert LearnerProfile.objects.get(user=learner).completed_quests == 1


def test_attempt_outside_any_active_quest(learner, chain, make_question):
    question = make_question(chapter="Number Theory")

    result = record_attempt(learner, question.pk, outcome())

    assert result.quest is None
    assert result.completed is False
    assert result.progress.attempts == 1


def test_progress_on_locked_quest_does_not_unlock_later_quests(learner, chain, make_question):
    questions = [make_question(chapter=chain[1].chapter) for _ in range(3)]

    _submit(learner, questions, [True] * 3)

    statuses = list(Quest.objects.filter(user=learner).order_by("order").values_list("status", flat=True))
    assert statuses == [Quest.STATUS_AVAILABLE, Quest.STATUS_LOCKED, Quest.STATUS_LOCKED]


def test_invalid_outcome_writes_nothing(learner, chain, make_question):
    question = make_question(chapter=chain[0].chapter)

    with pytest.raises(ValidationError):
        record_attempt(learner, question.pk, outcome(time_spent=-5))

    assert not Progress.objects.exists()


def test_oversized_time_spent_is_rejected_before_writing(learner, chain, make_question):
    question = make_question(chapter=chain[0].chapter)

    with pytest.raises(ValidationError) as excinfo:
        record_attempt(learner, question.pk, outcome(time_spent=10**20))

    assert "time_spent" in excinfo.value.fields
    assert not Progress.objects.exists()


def test_unknown_question(learner):
    with pytest.raises(NotFound):
        record_attempt(learner, 424242, outcome())


def test_failed_grant_rolls_back_whole_attempt(learner, chain, make_question, monkeypatch):
    questions = [make_question(chapter=chain[0].chapter) for _ in range(5)]
    _submit(learner, questions[:4], [True] * 4)

    def refuse(self, quest):
        raise InvariantViolation("ledger unavailable")

    monkeypatch.setattr(RewardLedger, "grant", refuse)

    with pytest.raises(InvariantViolation):
        record_attempt(learner, questions[4].pk, outcome())

    assert not Progress.objects.filter(question=questions[4]).exists()
    assert Quest.objects.get(pk=chain[0].pk).status == Quest.STATUS_IN_PROGRESS
    assert Quest.objects.get(pk=chain[1].pk).status == Quest.STATUS_LOCKED


def test_refresh_quest_settles_progress_recorded_while_locked(learner, chain, make_question):
    early = [make_question(chapter=chain[1].chapter) for _ in range(2)]
    _submit(learner, early, [True, True])
    _submit(learner, [make_question(chapter=chain[0].chapter) for _ in range(5)], [True] * 5)

    update = ProgressionOrchestrator(learner).refresh_quest(chain[1].pk)

    assert update.completed is True
    assert {reward.name for reward in update.rewards} >= {"Derivative Expert"}
    assert [quest.pk for quest in update.unlocked] == [chain[2].pk]


def test_refresh_quest_of_another_learner(learner, other_learner, chain):
    with pytest.raises(NotFound):
        ProgressionOrchestrator(other_learner).refresh_quest(chain[0].pk)


def test_chain_completion_check(learner, chain):
    orchestrator = ProgressionOrchestrator(learner)
    Quest.objects.filter(pk=chain[0].pk).update(status=Quest.STATUS_COMPLETED)
    Quest.objects.filter(pk=chain[1].pk).update(status=Quest.STATUS_AVAILABLE)

    status = orchestrator.check_chain_completion()
    assert status.completed is False
    assert status.progress == "1/3"
    assert status.next_quest.pk == chain[1].pk
    assert status.final_reward is None

    Quest.objects.filter(user=learner).update(status=Quest.STATUS_COMPLETED)
    first = orchestrator.check_chain_completion()
    second = orchestrator.check_chain_completion()

    assert first.completed is True
    assert first.final_reward.rarity == "legendary"
    assert second.final_reward.pk == first.final_reward.pk
    assert Reward.objects.filter(user=learner, source=Reward.SOURCE_SPECIAL_EVENT).count() == 1


def test_chain_completion_without_chain(learner):
    status = ProgressionOrchestrator(learner).check_chain_completion()
    assert status.completed is False
    assert status.progress == "0/0"
