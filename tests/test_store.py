"""Tests for the Django and Firestore quiz stores."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import firestore
from django.db import DatabaseError
from google.api_core import exceptions as google_exceptions

from quizzes.models import QuizAttempt, UserProgress
from quizzes.store import (
    DjangoQuizStore,
    FirestoreQuizStore,
    QuizStoreError,
    from_document,
    get_quiz_store,
    ATTEMPT_DOCUMENT_FIELDS,
)


@pytest.mark.django_db
class TestDjangoQuizStore:

    def test_save_attempt_numbers_attempts(self, user, make_record):
        store = DjangoQuizStore()

        first = store.save_attempt(user, make_record(2))
        second = store.save_attempt(user, make_record(4))

        assert (first.attempt_number, second.attempt_number) == (1, 2)
        attempt = QuizAttempt.objects.get(pk=int(second.attempt_id))
        assert attempt.user_name == "Alice"
        assert attempt.percentage == 100
        assert attempt.provider == "gemini"

    def test_save_attempt_updates_progress(self, user, make_record):
        store = DjangoQuizStore()
        store.save_attempt(user, make_record(4, time_spent=20))
        store.save_attempt(user, make_record(1, time_spent=40))

        progress = UserProgress.objects.get(user=user)
        assert progress.total_quizzes == 2
        assert progress.total_score == 5
        assert progress.average_score == 63
        assert progress.best_score == 100
        assert progress.total_time_spent == 60
        assert progress.last_quiz_date is not None

    def test_user_attempts_newest_first_and_limited(self, user, other_user, make_record):
        store = DjangoQuizStore()
        for score in range(4):
            store.save_attempt(user, make_record(score))
        store.save_attempt(other_user, make_record(4))

        attempts = store.get_user_attempts(user, limit=3)

        assert [a["score"] for a in attempts] == [3, 2, 1]
        assert all(a["user_id"] == str(user.pk) for a in attempts)

    def test_get_progress_creates_initial_record(self, user):
        progress = DjangoQuizStore().get_progress(user)

        assert progress["total_quizzes"] == 0
        assert progress["average_score"] == 0
        assert UserProgress.objects.filter(user=user).exists()

    def test_leaderboard_ordered_by_average(self, user, other_user, make_record):
        store = DjangoQuizStore()
        store.save_attempt(user, make_record(2))
        store.save_attempt(other_user, make_record(4))

        board = store.get_leaderboard()

        assert [e["user_name"] for e in board] == ["bob@example.com", "Alice"]
        assert board[0]["average_score"] == 100

    def test_leaderboard_skips_users_without_quizzes(self, user, other_user, make_record):
        store = DjangoQuizStore()
        store.get_progress(other_user)
        store.save_attempt(user, make_record(1))

        assert [e["user_id"] for e in store.get_leaderboard()] == [str(user.pk)]

    def test_statistics(self, user, other_user, make_record):
        store = DjangoQuizStore()
        store.save_attempt(user, make_record(4, time_spent=10))
        store.save_attempt(other_user, make_record(2, time_spent=20))

        stats = store.get_statistics()

        assert stats["total_attempts"] == 2
        assert stats["total_users"] == 2
        assert stats["average_score"] == 75
        assert stats["average_time_per_quiz"] == 15

    def test_soft_delete_hides_attempt(self, user, make_record):
        store = DjangoQuizStore()
        saved = store.save_attempt(user, make_record(3))

        assert store.delete_attempt(saved.attempt_id) is True

        assert store.get_attempt(saved.attempt_id) is None
        assert store.get_user_attempts(user) == []
        assert QuizAttempt.objects.get(pk=int(saved.attempt_id)).deleted_at is not None
        assert store.get_progress(user)["total_quizzes"] == 1

    def test_delete_missing_attempt(self, user):
        store = DjangoQuizStore()
        assert store.delete_attempt("9999") is False
        assert store.delete_attempt("not-a-number") is False

    def test_get_attempt(self, user, make_record):
        store = DjangoQuizStore()
        saved = store.save_attempt(user, make_record(3))

        attempt = store.get_attempt(saved.attempt_id)

        assert attempt["id"] == saved.attempt_id
        assert attempt["questions"][0]["correctAnswer"] == 0
        assert store.get_attempt("abc") is None

    @pytest.mark.parametrize("call", [
        lambda store, user: store.get_user_attempts(user),
        lambda store, user: store.get_attempt("1"),
        lambda store, user: store.delete_attempt("1"),
        lambda store, user: store.get_statistics(),
    ])
    def test_attempt_query_errors_become_store_errors(self, user, call):
        with patch.object(QuizAttempt.objects, "filter", side_effect=DatabaseError("db down")):
            with pytest.raises(QuizStoreError):
                call(DjangoQuizStore(), user)

    def test_progress_errors_become_store_errors(self, user):
        store = DjangoQuizStore()
        with patch.object(UserProgress.objects, "get_or_create", side_effect=DatabaseError("db down")):
            with pytest.raises(QuizStoreError):
                store.get_progress(user)
        with patch.object(UserProgress.objects, "select_related", side_effect=DatabaseError("db down")):
            with pytest.raises(QuizStoreError):
                store.get_leaderboard()

    def test_failed_progress_update_rolls_back_attempt(self, user, make_record):
        with patch.object(UserProgress.objects, "select_for_update", side_effect=DatabaseError("db down")):
            with pytest.raises(QuizStoreError):
                DjangoQuizStore().save_attempt(user, make_record(3))

        assert not QuizAttempt.objects.filter(user=user).exists()


def _snapshot(doc_id, data, exists=True):
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = data
    return snapshot


@pytest.fixture
def firestore_client():
    client = MagicMock()
    collections = {"quiz_attempts": MagicMock(), "user_progress": MagicMock()}
    client.collection.side_effect = collections.__getitem__
    client.collections = collections
    return client


@pytest.fixture
def fs_user():
    return SimpleNamespace(pk=7, firebase_uid="uid-7", name_for_display=lambda: "Alice")


class TestFirestoreQuizStore:

    @pytest.fixture(autouse=True)
    def run_transactions_inline(self):
        with patch("quizzes.store.firestore.transactional", new=lambda fn: fn):
            yield

    def test_user_key_prefers_firebase_uid(self, fs_user):
        store = FirestoreQuizStore(client=MagicMock())
        assert store.user_key(fs_user) == "uid-7"
        assert store.user_key(SimpleNamespace(pk=3, firebase_uid=None)) == "3"

    def test_save_attempt_writes_in_one_transaction(self, firestore_client, fs_user, make_record):
        attempts = firestore_client.collections["quiz_attempts"]
        progress = firestore_client.collections["user_progress"]
        transaction = firestore_client.transaction.return_value
        attempts.document.return_value.id = "att-1"
        progress.document.return_value.get.return_value = _snapshot("uid-7", None, exists=False)
        attempts.where.return_value.count.return_value.get.return_value = [[SimpleNamespace(value=2)]]

        saved = FirestoreQuizStore(client=firestore_client).save_attempt(fs_user, make_record(3))

        assert (saved.attempt_id, saved.attempt_number) == ("att-1", 2)
        progress.document.return_value.get.assert_called_once_with(transaction=transaction)
        writes = {c.args[0]: c for c in transaction.set.call_args_list}

        attempt_write = writes[attempts.document.return_value]
        document = attempt_write.args[1]
        assert document["userId"] == "uid-7"
        assert document["userName"] == "Alice"
        assert document["percentage"] == 75
        assert document["deleted"] is False
        assert document["completedAt"] is firestore.SERVER_TIMESTAMP
        attempts.document.return_value.set.assert_not_called()

        progress.document.assert_called_with("uid-7")
        progress_write = writes[progress.document.return_value]
        assert progress_write.args[1]["totalQuizzes"] == 1
        assert progress_write.args[1]["averageScore"] == 75
        assert "createdAt" in progress_write.args[1]
        assert progress_write.kwargs == {"merge": True}

        count_filter = attempts.where.call_args.kwargs["filter"]
        assert (count_filter.field_path, count_filter.op_string, count_filter.value) == ("userId", "==", "uid-7")
        attempts.where.return_value.select.assert_not_called()

    def test_failed_progress_write_leaves_attempt_unsaved(self, firestore_client, fs_user, make_record):
        attempts = firestore_client.collections["quiz_attempts"]
        progress = firestore_client.collections["user_progress"]
        transaction = firestore_client.transaction.return_value
        progress.document.return_value.get.return_value = _snapshot("uid-7", None, exists=False)
        transaction.set.side_effect = google_exceptions.ServiceUnavailable("offline")

        with pytest.raises(QuizStoreError):
            FirestoreQuizStore(client=firestore_client).save_attempt(fs_user, make_record(3))

        assert [c.args[0] for c in transaction.set.call_args_list] == [progress.document.return_value]
        attempts.document.return_value.set.assert_not_called()
        attempts.where.assert_not_called()

    def test_update_progress_builds_on_existing(self, firestore_client, fs_user, make_record):
        progress = firestore_client.collections["user_progress"]
        transaction = firestore_client.transaction.return_value
        progress.document.return_value.get.return_value = _snapshot("uid-7", {
            "totalQuizzes": 1,
            "totalScore": 4,
            "totalPercentage": 100,
            "averageScore": 100,
            "bestScore": 100,
            "totalTimeSpent": 30,
        })

        updated = FirestoreQuizStore(client=firestore_client).update_progress(fs_user, make_record(2))

        assert updated["total_quizzes"] == 2
        assert updated["average_score"] == 75
        assert updated["best_score"] == 100
        ref, document = transaction.set.call_args.args
        assert ref is progress.document.return_value
        assert "createdAt" not in document
        progress.document.return_value.set.assert_not_called()

    def test_get_user_attempts_query(self, firestore_client, fs_user):
        attempts = firestore_client.collections["quiz_attempts"]
        query = attempts.where.return_value.where.return_value.order_by.return_value.limit.return_value
        query.stream.return_value = [
            _snapshot("a2", {"userId": "uid-7", "score": 3, "totalQuestions": 5, "percentage": 60}),
        ]

        result = FirestoreQuizStore(client=firestore_client).get_user_attempts(fs_user, limit=5)

        assert result == [{
            "id": "a2",
            "deleted": False,
            "user_id": "uid-7",
            "score": 3,
            "total_questions": 5,
            "percentage": 60,
            "time_spent": 0,
        }]
        user_filter = attempts.where.call_args.kwargs["filter"]
        deleted_filter = attempts.where.return_value.where.call_args.kwargs["filter"]
        assert (user_filter.field_path, user_filter.op_string, user_filter.value) == ("userId", "==", "uid-7")
        assert (deleted_filter.field_path, deleted_filter.value) == ("deleted", False)
        attempts.where.return_value.where.return_value.order_by.assert_called_once_with(
            "completedAt", direction=firestore.Query.DESCENDING,
        )
        attempts.where.return_value.where.return_value.order_by.return_value.limit.assert_called_once_with(5)

    def test_get_progress_creates_missing_document(self, firestore_client, fs_user):
        progress = firestore_client.collections["user_progress"]
        progress.document.return_value.get.return_value = _snapshot("uid-7", None, exists=False)

        result = FirestoreQuizStore(client=firestore_client).get_progress(fs_user)

        assert result["total_quizzes"] == 0
        document = progress.document.return_value.set.call_args.args[0]
        assert document["totalQuizzes"] == 0
        assert document["userName"] == "Alice"

    def test_leaderboard(self, firestore_client):
        progress = firestore_client.collections["user_progress"]
        progress.order_by.return_value.limit.return_value.stream.return_value = [
            _snapshot("u1", {"userName": "Alice", "averageScore": 90, "totalQuizzes": 3, "bestScore": 100}),
            _snapshot("u2", {"averageScore": 50, "totalQuizzes": 1, "bestScore": 50}),
        ]

        board = FirestoreQuizStore(client=firestore_client).get_leaderboard()

        assert [e["user_name"] for e in board] == ["Alice", "Anonymous User"]
        assert board[0]["average_score"] == 90
        progress.order_by.assert_called_once_with("averageScore", direction=firestore.Query.DESCENDING)

    def test_statistics_ignore_deleted(self, firestore_client):
        attempts = firestore_client.collections["quiz_attempts"]
        progress = firestore_client.collections["user_progress"]
        attempts.stream.return_value = [
            _snapshot("a1", {"score": 4, "totalQuestions": 5, "timeSpent": 20}),
            _snapshot("a2", {"score": 0, "totalQuestions": 5, "timeSpent": 90, "deleted": True}),
        ]
        progress.count.return_value.get.return_value = [[SimpleNamespace(value=1)]]

        stats = FirestoreQuizStore(client=firestore_client).get_statistics()

        assert stats["total_attempts"] == 1
        assert stats["average_score"] == 80
        assert stats["total_users"] == 1

    def test_delete_attempt(self, firestore_client):
        attempts = firestore_client.collections["quiz_attempts"]

        assert FirestoreQuizStore(client=firestore_client).delete_attempt("a1") is True

        attempts.document.assert_called_with("a1")
        update = attempts.document.return_value.update.call_args.args[0]
        assert update["deleted"] is True
        assert update["deletedAt"] is firestore.SERVER_TIMESTAMP

    def test_delete_missing_attempt(self, firestore_client):
        attempts = firestore_client.collections["quiz_attempts"]
        attempts.document.return_value.update.side_effect = google_exceptions.NotFound("gone")

        assert FirestoreQuizStore(client=firestore_client).delete_attempt("a1") is False

    def test_get_attempt_hides_deleted(self, firestore_client):
        attempts = firestore_client.collections["quiz_attempts"]
        attempts.document.return_value.get.return_value = _snapshot("a1", {"score": 1, "deleted": True})

        assert FirestoreQuizStore(client=firestore_client).get_attempt("a1") is None

    def test_backend_errors_become_store_errors(self, firestore_client, fs_user):
        attempts = firestore_client.collections["quiz_attempts"]
        query = attempts.where.return_value.where.return_value.order_by.return_value.limit.return_value
        query.stream.side_effect = google_exceptions.ServiceUnavailable("offline")

        with pytest.raises(QuizStoreError):
            FirestoreQuizStore(client=firestore_client).get_user_attempts(fs_user)


class TestDocumentMapping:

    def test_from_document_only_maps_present_fields(self):
        data = from_document({"userId": "u", "timeSpent": 12, "other": 1}, ATTEMPT_DOCUMENT_FIELDS)
        assert data == {"user_id": "u", "time_spent": 12}


class TestGetQuizStore:

    def test_uses_configured_backend(self, settings):
        settings.QUIZ_STORE_BACKEND = "quizzes.store.FirestoreQuizStore"
        assert isinstance(get_quiz_store(), FirestoreQuizStore)

        settings.QUIZ_STORE_BACKEND = "quizzes.store.DjangoQuizStore"
        assert isinstance(get_quiz_store(), DjangoQuizStore)
