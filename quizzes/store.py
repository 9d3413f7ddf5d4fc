"""Persistence for quiz attempts and user progress.

Two interchangeable backends share one interface:

- ``DjangoQuizStore`` keeps everything in the project database.
- ``FirestoreQuizStore`` writes to the ``quiz_attempts`` and ``user_progress``
  collections of a Firestore document database.

``get_quiz_store()`` returns the backend named by ``QUIZ_STORE_BACKEND``.
Attempts and progress are exchanged as plain dicts with snake_case keys.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from users.firebase import get_app

from .models import QuizAttempt, UserProgress
from .progress import PROGRESS_FIELDS, apply_attempt, initial_progress, summarize_attempts

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


class QuizStoreError(Exception):
    """The backend failed to read or write quiz data."""


@dataclass
class AttemptRecord:
    image_url: str
    questions: list
    user_answers: list
    score: int
    total_questions: int
    percentage: int
    time_spent: int = 0
    provider: str = ""
    quiz_type: str = "image-based"


@dataclass
class SaveResult:
    attempt_id: str
    attempt_number: int


class BaseQuizStore:
    def user_key(self, user):
        return str(user.pk)

    def save_attempt(self, user, attempt: AttemptRecord) -> SaveResult:
        raise NotImplementedError

    def update_progress(self, user, attempt: AttemptRecord) -> dict:
        raise NotImplementedError

    def get_user_attempts(self, user, limit=DEFAULT_LIMIT) -> list[dict]:
        raise NotImplementedError

    def get_progress(self, user) -> dict:
        raise NotImplementedError

    def get_leaderboard(self, limit=DEFAULT_LIMIT) -> list[dict]:
        raise NotImplementedError

    def get_statistics(self) -> dict:
        raise NotImplementedError

    def delete_attempt(self, attempt_id) -> bool:
        raise NotImplementedError

    def get_attempt(self, attempt_id):
        raise NotImplementedError


# -----------------------------
# Django ORM backend
# -----------------------------
def _attempt_to_dict(attempt):
    return {
        "id": str(attempt.pk),
        "user_id": str(attempt.user_id),
        "user_name": attempt.user_name,
        "image_url": attempt.image_url,
        "questions": attempt.questions,
        "user_answers": attempt.user_answers,
        "score": attempt.score,
        "total_questions": attempt.total_questions,
        "percentage": attempt.percentage,
        "time_spent": attempt.time_spent,
        "provider": attempt.provider,
        "quiz_type": attempt.quiz_type,
        "completed_at": attempt.completed_at,
        "deleted": attempt.deleted,
    }


def _progress_to_dict(progress):
    return {name: getattr(progress, name) for name in PROGRESS_FIELDS}


@contextmanager
def _database_errors(action):
    try:
        yield
    except DatabaseError as e:
        logger.error(f"Error {action}: {e}")
        raise QuizStoreError(f"Failed {action}") from e


class DjangoQuizStore(BaseQuizStore):

    @staticmethod
    def _attempt_pk(attempt_id):
        attempt_id = str(attempt_id)
        return int(attempt_id) if attempt_id.isdigit() else None

    def save_attempt(self, user, attempt):
        with _database_errors("saving quiz attempt"), transaction.atomic():
            obj = QuizAttempt.objects.create(
                user=user,
                user_name=user.name_for_display(),
                image_url=attempt.image_url,
                questions=attempt.questions,
                user_answers=attempt.user_answers,
                score=attempt.score,
                total_questions=attempt.total_questions,
                percentage=attempt.percentage,
                time_spent=attempt.time_spent,
                provider=attempt.provider,
                quiz_type=attempt.quiz_type,
            )
            self.update_progress(user, attempt)
            attempt_number = QuizAttempt.objects.filter(user=user).count()

        return SaveResult(attempt_id=str(obj.pk), attempt_number=attempt_number)

    def update_progress(self, user, attempt):
        with _database_errors("updating user progress"), transaction.atomic():
            progress, _ = UserProgress.objects.select_for_update().get_or_create(user=user)
            updated = apply_attempt(
                _progress_to_dict(progress),
                attempt.score,
                attempt.percentage,
                attempt.time_spent,
                when=timezone.now(),
            )
            for name in PROGRESS_FIELDS:
                setattr(progress, name, updated[name])
            progress.save()
        return updated

    def get_user_attempts(self, user, limit=DEFAULT_LIMIT):
        with _database_errors("retrieving quiz attempts"):
            qs = QuizAttempt.objects.filter(user=user, deleted=False).order_by("-completed_at", "-id")[:limit]
            return [_attempt_to_dict(a) for a in qs]

    def get_progress(self, user):
        with _database_errors("retrieving user progress"):
            progress, _ = UserProgress.objects.get_or_create(user=user)
        return _progress_to_dict(progress)

    def get_leaderboard(self, limit=DEFAULT_LIMIT):
        with _database_errors("retrieving leaderboard"):
            qs = (
                UserProgress.objects.select_related("user")
                .filter(total_quizzes__gt=0)
                .order_by("-average_score", "-best_score", "user_id")[:limit]
            )
            return [
                {
                    "user_id": str(p.user_id),
                    "user_name": p.user.name_for_display(),
                    "average_score": p.average_score,
                    "total_quizzes": p.total_quizzes,
                    "best_score": p.best_score,
                    "total_time_spent": p.total_time_spent,
                }
                for p in qs
            ]

    def get_statistics(self):
        with _database_errors("retrieving quiz statistics"):
            attempts = list(QuizAttempt.objects.filter(deleted=False).values("score", "total_questions", "time_spent"))
            total_users = UserProgress.objects.count()
        return summarize_attempts(attempts, total_users)

    def delete_attempt(self, attempt_id):
        pk = self._attempt_pk(attempt_id)
        if pk is None:
            return False
        with _database_errors("deleting quiz attempt"):
            updated = QuizAttempt.objects.filter(pk=pk, deleted=False).update(deleted=True, deleted_at=timezone.now())
        return updated > 0

    def get_attempt(self, attempt_id):
        pk = self._attempt_pk(attempt_id)
        if pk is None:
            return None
        with _database_errors("retrieving quiz attempt"):
            attempt = QuizAttempt.objects.filter(pk=pk, deleted=False).first()
        return _attempt_to_dict(attempt) if attempt else None



# -----------------------------
# Firestore backend
# -----------------------------
ATTEMPT_DOCUMENT_FIELDS = {
    "user_id": "userId",
    "user_name": "userName",
    "image_url": "imageUrl",
    "questions": "questions",
    "user_answers": "userAnswers",
    "score": "score",
    "total_questions": "totalQuestions",
    "percentage": "percentage",
    "time_spent": "timeSpent",
    "provider": "provider",
    "quiz_type": "quizType",
    "completed_at": "completedAt",
    "deleted": "deleted",
}

PROGRESS_DOCUMENT_FIELDS = {
    "total_quizzes": "totalQuizzes",
    "total_score": "totalScore",
    "total_percentage": "totalPercentage",
    "average_score": "averageScore",
    "best_score": "bestScore",
    "total_time_spent": "totalTimeSpent",
    "last_quiz_date": "lastQuizDate",
}


def to_document(data, fields):
    return {fields[key]: value for key, value in data.items() if key in fields}


def from_document(document, fields):
    return {key: document.get(doc_key) for key, doc_key in fields.items() if doc_key in document}


@contextmanager
def _firestore_errors(action):
    try:
        yield
    except google_exceptions.GoogleAPIError as e:
        logger.error(f"Error {action}: {e}")
        raise QuizStoreError(f"Failed {action}") from e


class FirestoreQuizStore(BaseQuizStore):
    attempts_collection = "quiz_attempts"
    progress_collection = "user_progress"

    def __init__(self, client=None):
        self._client = client

    @property
    def db(self):
        if self._client is None:
            self._client = firestore.client(app=get_app())
        return self._client

    def user_key(self, user):
        return user.firebase_uid or str(user.pk)

    def _attempt_from_snapshot(self, snapshot):
        data = {"id": snapshot.id, "deleted": False, **from_document(snapshot.to_dict() or {}, ATTEMPT_DOCUMENT_FIELDS)}
        data.setdefault("time_spent", 0)
        return data

    def _count(self, query):
        """Count matching documents with an aggregation query."""
        results = query.count().get()
        return int(results[0][0].value) if results and results[0] else 0

    def _apply_progress(self, transaction, progress_ref, user, attempt):
        """Read-modify-write of a progress document inside ``transaction``."""
        snapshot = progress_ref.get(transaction=transaction)
        current = from_document(snapshot.to_dict() or {}, PROGRESS_DOCUMENT_FIELDS) if snapshot.exists else None
        updated = apply_attempt(current, attempt.score, attempt.percentage, attempt.time_spent)

        document = to_document(updated, PROGRESS_DOCUMENT_FIELDS)
        document["userName"] = user.name_for_display()
        document["lastQuizDate"] = firestore.SERVER_TIMESTAMP
        document["updatedAt"] = firestore.SERVER_TIMESTAMP
        if not snapshot.exists:
            document["createdAt"] = firestore.SERVER_TIMESTAMP
        transaction.set(progress_ref, document, merge=True)
        return updated

    def save_attempt(self, user, attempt):
        key = self.user_key(user)
        document = to_document({
            "user_id": key,
            "user_name": user.name_for_display(),
            "image_url": attempt.image_url,
            "questions": attempt.questions,
            "user_answers": attempt.user_answers,
            "score": attempt.score,
            "total_questions": attempt.total_questions,
            "percentage": attempt.percentage,
            "time_spent": attempt.time_spent,
            "provider": attempt.provider,
            "quiz_type": attempt.quiz_type,
            "deleted": False,
        }, ATTEMPT_DOCUMENT_FIELDS)
        document["completedAt"] = firestore.SERVER_TIMESTAMP
        document["createdAt"] = firestore.SERVER_TIMESTAMP

        attempts = self.db.collection(self.attempts_collection)
        doc_ref = attempts.document()
        progress_ref = self.db.collection(self.progress_collection).document(key)

        # Reads must precede writes in a Firestore transaction
        @firestore.transactional
        def write(transaction):
            self._apply_progress(transaction, progress_ref, user, attempt)
            transaction.set(doc_ref, document)

        with _firestore_errors("saving quiz attempt"):
            write(self.db.transaction())
            attempt_number = self._count(attempts.where(filter=FieldFilter("userId", "==", key)))

        return SaveResult(attempt_id=doc_ref.id, attempt_number=attempt_number)

    def update_progress(self, user, attempt):
        progress_ref = self.db.collection(self.progress_collection).document(self.user_key(user))

        @firestore.transactional
        def write(transaction):
            return self._apply_progress(transaction, progress_ref, user, attempt)

        with _firestore_errors("updating user progress"):
            return write(self.db.transaction())

    def get_user_attempts(self, user, limit=DEFAULT_LIMIT):
        query = (
            self.db.collection(self.attempts_collection)
            .where(filter=FieldFilter("userId", "==", self.user_key(user)))
            .where(filter=FieldFilter("deleted", "==", False))
            .order_by("completedAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        with _firestore_errors("retrieving quiz attempts"):
            return [self._attempt_from_snapshot(s) for s in query.stream()]

    def get_progress(self, user):
        progress_ref = self.db.collection(self.progress_collection).document(self.user_key(user))
        with _firestore_errors("retrieving user progress"):
            snapshot = progress_ref.get()
            if snapshot.exists:
                return {**initial_progress(), **from_document(snapshot.to_dict() or {}, PROGRESS_DOCUMENT_FIELDS)}

            progress = initial_progress()
            document = to_document(progress, PROGRESS_DOCUMENT_FIELDS)
            document["userName"] = user.name_for_display()
            document["createdAt"] = firestore.SERVER_TIMESTAMP
            progress_ref.set(document)
        return progress

    def get_leaderboard(self, limit=DEFAULT_LIMIT):
        query = (
            self.db.collection(self.progress_collection)
            .order_by("averageScore", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        leaderboard = []
        with _firestore_errors("retrieving leaderboard"):
            for snapshot in query.stream():
                data = snapshot.to_dict() or {}
                leaderboard.append({
                    "user_id": snapshot.id,
                    "user_name": data.get("userName") or "Anonymous User",
                    "average_score": data.get("averageScore", 0),
                    "total_quizzes": data.get("totalQuizzes", 0),
                    "best_score": data.get("bestScore", 0),
                    "total_time_spent": data.get("totalTimeSpent", 0),
                })
        return leaderboard

    def get_statistics(self):
        with _firestore_errors("retrieving quiz statistics"):
            attempts = [
                self._attempt_from_snapshot(s)
                for s in self.db.collection(self.attempts_collection).stream()
            ]
            total_users = self._count(self.db.collection(self.progress_collection))
        return summarize_attempts([a for a in attempts if not a.get("deleted")], total_users)

    def delete_attempt(self, attempt_id):
        attempt_ref = self.db.collection(self.attempts_collection).document(str(attempt_id))
        try:
            attempt_ref.update({"deleted": True, "deletedAt": firestore.SERVER_TIMESTAMP})
        except google_exceptions.NotFound:
            return False
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Error deleting quiz attempt {attempt_id}: {e}")
            raise QuizStoreError("Failed to delete quiz attempt") from e
        return True

    def get_attempt(self, attempt_id):
        with _firestore_errors("retrieving quiz attempt"):
            snapshot = self.db.collection(self.attempts_collection).document(str(attempt_id)).get()
        if not snapshot.exists:
            return None
        attempt = self._attempt_from_snapshot(snapshot)
        return None if attempt.get("deleted") else attempt


def get_quiz_store() -> BaseQuizStore:
    return import_string(settings.QUIZ_STORE_BACKEND)()
