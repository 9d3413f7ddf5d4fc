import pytest

from generate_quiz.parsing import QuizQuestion, questions_to_dicts
from generate_quiz.service import GenerationResult
from quizzes.progress import percentage_of
from quizzes.store import AttemptRecord
from users.models import CustomUser


@pytest.fixture(autouse=True)
def quiz_settings(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.QUIZ_STORE_BACKEND = "quizzes.store.DjangoQuizStore"
    settings.GEMINI_API_KEYS = []
    settings.OPENAI_API_KEY = ""
    settings.COHERE_API_KEY = ""
    settings.AI_DEFAULT_PROVIDER = "huggingface"
    settings.AI_FALLBACK_PROVIDERS = ["huggingface", "cohere", "openai", "gemini"]
    settings.FIREBASE_WEB_CONFIG = {"apiKey": "", "authDomain": "", "projectId": ""}
    return settings


@pytest.fixture
def user(db):
    return CustomUser.objects.create_user(
        username="alice",
        email="alice@example.com",
        password="s3cret-pass",
        display_name="Alice",
    )


@pytest.fixture
def other_user(db):
    return CustomUser.objects.create_user(
        username="bob",
        email="bob@example.com",
        password="s3cret-pass",
    )


@pytest.fixture
def questions():
    return [
        QuizQuestion("What is shown?", ["A cat", "A dog", "A car", "A tree"], 0, "It is a cat."),
        QuizQuestion("What colour is the sky?", ["Red", "Blue", "Green", "Black"], 1, "Daytime sky."),
        QuizQuestion("Indoor or outdoor?", ["Indoor", "Outdoor", "Both", "Neither"], 1),
        QuizQuestion("How many animals?", ["One", "Two", "Three", "None"], 0),
    ]


@pytest.fixture
def generation(questions):
    return GenerationResult(questions=questions, provider="gemini")


@pytest.fixture
def make_record(questions):
    def _make(score, total=None, time_spent=30, provider="gemini"):
        total = len(questions) if total is None else total
        return AttemptRecord(
            image_url="https://picsum.photos/800/600?random=1",
            questions=questions_to_dicts(questions),
            user_answers=[0] * len(questions),
            score=score,
            total_questions=total,
            percentage=percentage_of(score, total),
            time_spent=time_spent,
            provider=provider,
        )

    return _make
