import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from questApp.models import LearnerProfile, ProgressionEvent, Quest
from questApp.progression import ExternalServiceError, chain_status, generate_chain
from questApp.progression.text_generation import TextGenerationClient, extract_json


def _descriptor(index, **overrides):
    descriptor = {
        "title": f"Trial {index}",
        "description": f"Stage {index} of the journey",
        "difficulty": "intermediate",
        "subject": "Linear Algebra",
        "chapter": f"Chapter {index}",
        "requirements": {"questionsToComplete": 4, "minAccuracy": 75, "timeLimit": 48},
        "rewards": {"experience": 120, "coins": 60, "badges": [f"Badge {index}"]},
        "isMainQuest": True,
    }
    descriptor.update(overrides)
    return descriptor


def _reply(content):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"choices": [{"message": {"content": content}}]}
    return response


@pytest.fixture
def configured(settings):
    settings.TEXT_GENERATION_API_KEY = "test-key"
    settings.TEXT_GENERATION_API_URL = "https://text.example.test/"


def test_default_chain_without_collaborator(learner):
    quests, created = generate_chain(learner)

    assert created is True
    assert [quest.order for quest in quests] == [1, 2, 3, 4, 5]
    assert [quest.status for quest in quests] == [Quest.STATUS_AVAILABLE] + [Quest.STATUS_LOCKED] * 4
    assert quests[0].chapter == "Functions and Limits"
    assert quests[-1].reward_badges == ["Calculus Master", "Math Hero"]
    assert list(quests[0].prerequisites.all()) == []
    for previous, quest in zip(quests, quests[1:]):
        assert list(quest.prerequisites.all()) == [previous]
    event = ProgressionEvent.objects.get(user=learner, event_type="chain_generated")
    assert event.event_data == {"source": "default", "quest_count": 5}


def test_generate_chain_is_idempotent(learner):
    first, _ = generate_chain(learner)

    second, created = generate_chain(learner)

    assert created is False
    assert [quest.pk for quest in second] == [quest.pk for quest in first]
    assert Quest.objects.filter(user=learner).count() == 5


def test_background_sets_middle_difficulty(learner, other_learner):
    LearnerProfile.objects.create(user=learner, completed_survey=True, survey_data={"mathBackground": "intermediate"})

    quests, _ = generate_chain(learner)
    baseline, _ = generate_chain(other_learner)

    assert [quest.difficulty for quest in quests] == [
        "beginner", "intermediate", "intermediate", "intermediate", "advanced",
    ]
    assert [quest.difficulty for quest in baseline] == ["beginner"] * 4 + ["advanced"]


@pytest.mark.usefixtures("configured")
def test_valid_collaborator_chain_is_used(learner):
    descriptors = [_descriptor(index) for index in range(1, 7)]
    content = "Here is your path:\n```json\n" + json.dumps(descriptors) + "\n```"

    with patch("questApp.progression.text_generation.requests.post", return_value=_reply(content)) as post:
        quests, created = generate_chain(learner)

    assert created is True
    assert [quest.title for quest in quests] == [f"Trial {index}" for index in range(1, 7)]
    assert quests[2].questions_to_complete == 4
    assert quests[2].reward_badges == ["Badge 3"]
    url = post.call_args.args[0]
    assert url == "https://text.example.test/chat/completions"
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert post.call_args.kwargs["timeout"] == 30.0


@pytest.mark.usefixtures("configured")
@pytest.mark.parametrize("descriptors", [
    [_descriptor(1), _descriptor(2), _descriptor(3, difficulty="legendary"), _descriptor(4), _descriptor(5)],
    [_descriptor(index) for index in range(1, 5)] + [{"title": "Incomplete"}],
    [_descriptor(1, requirements={"questionsToComplete": 0, "minAccuracy": 70})] + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(1, rewards={"experience": -5, "coins": 0, "badges": []})] + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(1, rewards={"experience": 1e19, "coins": 0, "badges": []})] + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(1, rewards={"experience": 10, "coins": 2**40, "badges": []})] + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(1, requirements={"questionsToComplete": 10**12, "minAccuracy": 70})] + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(1, requirements={"questionsToComplete": 5, "minAccuracy": 70, "timeLimit": 10**10})]
    + [_descriptor(i) for i in range(2, 6)],
    [_descriptor(index) for index in range(1, 4)],
    {"quests": "not a list"},
])
def test_any_invalid_descriptor_falls_back(learner, descriptors):
    with patch("questApp.progression.text_generation.requests.post", return_value=_reply(json.dumps(descriptors))):
        quests, _ = generate_chain(learner)

    assert quests[0].title == "Expedition into Mathematical Foundations"
    assert len(quests) == 5


@pytest.mark.usefixtures("configured")
def test_unreachable_collaborator_falls_back(learner):
    with patch("questApp.progression.text_generation.requests.post", side_effect=requests.Timeout("slow")):
        quests, _ = generate_chain(learner)

    assert quests[0].subject == "Calculus"


@pytest.mark.usefixtures("configured")
def test_non_json_reply_falls_back(learner):
    with patch("questApp.progression.text_generation.requests.post", return_value=_reply("I cannot help with that.")):
        quests, _ = generate_chain(learner)

    assert len(quests) == 5


def test_client_without_key_never_calls_out():
    with patch("questApp.progression.text_generation.requests.post") as post:
        with pytest.raises(ExternalServiceError):
            TextGenerationClient(api_key="").complete([{"role": "user", "content": "hi"}])
    post.assert_not_called()


def test_client_rejects_malformed_envelope():
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"choices": []}
    with patch("questApp.progression.text_generation.requests.post", return_value=response):
        with pytest.raises(ExternalServiceError):
            TextGenerationClient(api_key="k", api_url="https://x.test", model="m", timeout=1).complete([])


@pytest.mark.parametrize("text, expected", [
    ('```json\n{"a": 1}\n```', {"a": 1}),
    ('Sure!\n[1, 2, 3]\nHope it helps', [1, 2, 3]),
    ('{"nested": {"b": [1]}}', {"nested": {"b": [1]}}),
])
def test_extract_json(text, expected):
    assert extract_json(text) == expected


def test_extract_json_without_json():
    with pytest.raises(ExternalServiceError):
        extract_json("no structured data here")


def test_chain_status(learner):
    assert chain_status(learner) == {"hasCompletedSurvey": False, "hasQuestChain": False, "questCount": 0}
    generate_chain(learner)
    assert chain_status(learner)["questCount"] == 5
