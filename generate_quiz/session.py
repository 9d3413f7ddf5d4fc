"""The quiz currently being played lives in the user's session."""
from django.utils import timezone

from .parsing import questions_from_dicts, questions_to_dicts

SESSION_KEY = "image_quiz"


def store_session_quiz(request, image_url, result):
    request.session[SESSION_KEY] = {
        "image_url": image_url,
        "questions": questions_to_dicts(result.questions),
        "provider": result.provider,
        "started_at": timezone.now().isoformat(),
    }


def get_session_quiz(request):
    """Return the session quiz with ``questions`` as ``QuizQuestion`` objects, or None."""
    data = request.session.get(SESSION_KEY)
    if not data or not data.get("questions"):
        return None
    return {**data, "questions": questions_from_dicts(data["questions"])}


def clear_session_quiz(request):
    request.session.pop(SESSION_KEY, None)
