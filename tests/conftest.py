import itertools

import pytest
from django.contrib.auth.models import User

from questApp.models import LearnerProfile, Quest, Question
from questApp.progression import QuestGraph

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def no_text_generation(settings):
    # a developer .env must never make the suite call out
    settings.TEXT_GENERATION_API_KEY = ""


@pytest.fixture
def learner(db):
    return User.objects.create_user(username="ada", password="not-a-real-password")


@pytest.fixture
def other_learner(db):
    return User.objects.create_user(username="grace", password="not-a-real-password")


@pytest.fixture
def make_question(db):
    def make(subject="Calculus", chapter="Limits and Continuity", tags=("limits",), **kwargs):
        number = next(_counter)
        kwargs.setdefault("title", f"Question {number}")
        kwargs.setdefault("content", f"Evaluate expression {number}.")
        return Question.objects.create(subject=subject, chapter=chapter, tags=list(tags), **kwargs)
    return make


@pytest.fixture
def make_quest(db):
    def make(user, order, subject="Calculus", chapter="Limits and Continuity", status=Quest.STATUS_LOCKED, **kwargs):
        kwargs.setdefault("title", f"Quest {order}")
        kwargs.setdefault("description", f"Stage {order} of the chain")
        kwargs.setdefault("difficulty", "beginner")
        return Quest.objects.create(
            user=user, order=order, subject=subject, chapter=chapter, status=status, **kwargs
        )
    return make


@pytest.fixture
def chain(learner, make_quest):
    """Three linked quests over three chapters; the first is available."""
    quests = [
        make_quest(learner, 1, chapter="Limits and Continuity", status=Quest.STATUS_AVAILABLE,
                   questions_to_complete=5, min_accuracy=70, reward_badges=[]),
        make_quest(learner, 2, chapter="Derivatives and Differentials",
                   questions_to_complete=2, min_accuracy=50, reward_badges=["Derivative Expert"]),
        make_quest(learner, 3, chapter="Integration", questions_to_complete=2, min_accuracy=50),
    ]
    graph = QuestGraph(learner)
    graph.link(quests[1], [quests[0]])
    graph.link(quests[2], [quests[1]])
    return quests


@pytest.fixture
def profile(learner):
    return LearnerProfile.objects.create(user=learner)
