"""Running per-user progress sums and site-wide statistics."""
import math

PROGRESS_FIELDS = (
    "total_quizzes",
    "total_score",
    "total_percentage",
    "average_score",
    "best_score",
    "total_time_spent",
    "last_quiz_date",
)


def round_half_up(value):
    return int(math.floor(value + 0.5))


def percentage_of(score, total):
    if not total:
        return 0
    return round_half_up(score / total * 100)


def initial_progress():
    return {
        "total_quizzes": 0,
        "total_score": 0,
        "total_percentage": 0,
        "average_score": 0,
        "best_score": 0,
        "total_time_spent": 0,
        "last_quiz_date": None,
    }


def apply_attempt(progress, score, percentage, time_spent=0, when=None):
    """Return ``progress`` updated with one more completed attempt.

    ``average_score`` and ``best_score`` are percentages so quizzes of
    different lengths compare fairly; ``total_score`` keeps the raw count of
    correct answers.
    """
    current = {**initial_progress(), **(progress or {})}
    total_quizzes = current["total_quizzes"] + 1
    total_percentage = current["total_percentage"] + percentage

    return {
        **current,
        "total_quizzes": total_quizzes,
        "total_score": current["total_score"] + score,
        "total_percentage": total_percentage,
        "average_score": round_half_up(total_percentage / total_quizzes),
        "best_score": max(current["best_score"], percentage),
        "total_time_spent": current["total_time_spent"] + (time_spent or 0),
        "last_quiz_date": when,
    }


def summarize_attempts(attempts, total_users):
    total_attempts = 0
    total_score = 0
    total_questions = 0
    total_time_spent = 0

    for attempt in attempts:
        total_attempts += 1
        total_score += attempt.get("score", 0)
        total_questions += attempt.get("total_questions", 0)
        total_time_spent += attempt.get("time_spent") or 0

    return {
        "total_attempts": total_attempts,
        "total_users": total_users,
        "average_score": percentage_of(total_score, total_questions),
        "average_time_per_quiz": round_half_up(total_time_spent / total_attempts) if total_attempts else 0,
        "total_time_spent": total_time_spent,
    }
