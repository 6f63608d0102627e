from questApp.progression.store import upsert_attempt


def outcome(correct=True, status="completed", **extra):
    payload = {
        "status": status,
        "is_correct": correct,
        "user_answer": "42",
        "time_spent": 30,
    }
    payload.update(extra)
    return payload


def cleaned(correct=True, status="completed", **extra):
    data = {
        "status": status,
        "is_correct": correct,
        "user_answer": "42",
        "time_spent": 30,
        "difficulty": None,
        "notes": "",
    }
    data.update(extra)
    return data


def answer(user, question, correct=True, status="completed"):
    return upsert_attempt(user, question, cleaned(correct=correct, status=status))
