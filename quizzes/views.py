import logging
from datetime import datetime

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import render, redirect
from django.utils import timezone
from django.views.decorators.http import require_POST

from generate_quiz.parsing import questions_from_dicts, questions_to_dicts
from generate_quiz.session import clear_session_quiz, get_session_quiz

from .scoring import completion_message, parse_answers, score_answers
from .store import AttemptRecord, QuizStoreError, get_quiz_store

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _parse_iso(dt_str):
    if not dt_str:
        return None
    dt = datetime.fromisoformat(dt_str)
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, timezone.get_current_timezone())
    return dt


def _seconds_since(started_at):
    start = _parse_iso(started_at)
    if not start:
        return 0
    return max(0, round((timezone.now() - start).total_seconds()))


def _owned_attempt(store, user, attempt_id):
    attempt = store.get_attempt(attempt_id)
    if not attempt or attempt.get("user_id") != store.user_key(user):
        raise Http404("Quiz attempt not found")
    return attempt


def _store_unavailable(error):
    return JsonResponse({"ok": False, "error": str(error)}, status=503)


# -----------------------------
# Submit & results
# -----------------------------
@require_POST
def submit_quiz(request):
    quiz = get_session_quiz(request)
    if not quiz:
        messages.info(request, "Please complete a quiz first.")
        return redirect("generate_quiz")

    questions = quiz["questions"]
    result = score_answers(questions, parse_answers(request.POST, len(questions)))
    time_spent = _seconds_since(quiz.get("started_at"))
    summary = completion_message(result.score, result.total, result.percentage)

    attempt_number = None
    if request.user.is_authenticated:
        record = AttemptRecord(
            image_url=quiz["image_url"],
            questions=questions_to_dicts(questions),
            user_answers=result.answers,
            score=result.score,
            total_questions=result.total,
            percentage=result.percentage,
            time_spent=time_spent,
            provider=quiz.get("provider", ""),
        )
        try:
            saved = get_quiz_store().save_attempt(request.user, record)
        except QuizStoreError as e:
            messages.error(request, f"Failed to save quiz result: {e}. You can try again by completing another quiz.")
        else:
            attempt_number = saved.attempt_number
            messages.success(request, f"Quiz result saved to your account! Attempt #{attempt_number}")
    else:
        messages.info(request, "Sign in to save your progress and track your improvement!")

    clear_session_quiz(request)
    return render(request, "quiz_result.html", {
        "summary": summary,
        "score": result.score,
        "total": result.total,
        "percentage": result.percentage,
        "time_spent": time_spent,
        "results": result.results,
        "image_url": quiz["image_url"],
        "provider": quiz.get("provider", ""),
        "attempt_number": attempt_number,
    })


# -----------------------------
# History
# -----------------------------
@login_required
def history(request):
    try:
        attempts = get_quiz_store().get_user_attempts(request.user)
    except QuizStoreError as e:
        messages.error(request, f"Failed to retrieve quiz attempts: {e}")
        attempts = []
    return render(request, "quiz_history.html", {"attempts": attempts})


@login_required
def attempts_data(request):
    try:
        limit = max(1, min(50, int(request.GET.get("limit", 10))))
    except ValueError:
        limit = 10
    try:
        attempts = get_quiz_store().get_user_attempts(request.user, limit=limit)
    except QuizStoreError as e:
        return _store_unavailable(e)
    return JsonResponse({"ok": True, "attempts": attempts})


@login_required
def attempt_detail(request, attempt_id):
    store = get_quiz_store()
    try:
        attempt = _owned_attempt(store, request.user, attempt_id)
    except QuizStoreError as e:
        messages.error(request, f"Failed to retrieve quiz attempt: {e}")
        return redirect("quiz_history")

    result = score_answers(questions_from_dicts(attempt["questions"]), attempt.get("user_answers") or [])
    return render(request, "quiz_attempt.html", {"attempt": attempt, "results": result.results})


@login_required
@require_POST
def delete_attempt(request, attempt_id):
    store = get_quiz_store()
    try:
        _owned_attempt(store, request.user, attempt_id)
        store.delete_attempt(attempt_id)
    except QuizStoreError as e:
        messages.error(request, f"Failed to delete quiz attempt: {e}")
    else:
        messages.success(request, "Quiz attempt deleted successfully")
    return redirect("quiz_history")


# -----------------------------
# Progress, leaderboard, statistics
# -----------------------------
@login_required
def progress_view(request):
    try:
        progress = get_quiz_store().get_progress(request.user)
    except QuizStoreError as e:
        messages.error(request, f"Failed to retrieve user progress: {e}")
        progress = None
    return render(request, "quiz_progress.html", {"progress": progress})


# Polled by the progress page in place of a live listener
@login_required
def progress_data(request):
    try:
        progress = get_quiz_store().get_progress(request.user)
    except QuizStoreError as e:
        return _store_unavailable(e)
    return JsonResponse({"ok": True, "progress": progress})


def leaderboard(request):
    store = get_quiz_store()
    try:
        entries = store.get_leaderboard()
    except QuizStoreError as e:
        messages.error(request, f"Failed to retrieve leaderboard: {e}")
        entries = []
    me = store.user_key(request.user) if request.user.is_authenticated else None
    for idx, entry in enumerate(entries, start=1):
        entry["rank"] = idx
        entry["is_me"] = entry["user_id"] == me
    return render(request, "quiz_leaderboard.html", {"entries": entries})


def statistics(request):
    try:
        stats = get_quiz_store().get_statistics()
    except QuizStoreError as e:
        return _store_unavailable(e)
    return JsonResponse({"ok": True, "statistics": stats})


# -----------------------------
# Progress PDF
# -----------------------------
from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import letter


@login_required
def progress_pdf(request):
    store = get_quiz_store()
    try:
        progress = store.get_progress(request.user)
        attempts = store.get_user_attempts(request.user)
    except QuizStoreError as e:
        messages.error(request, f"Failed to build progress report: {e}")
        return redirect("quiz_progress")

    resp = HttpResponse(content_type="application/pdf")
    resp["Content-Disposition"] = 'attachment; filename="quiz_progress.pdf"'

    p = canvas.Canvas(resp, pagesize=letter)
    p.setFont("Helvetica-Bold", 16)
    p.drawString(72, 760, f"Quiz progress - {request.user.name_for_display()}")

    p.setFont("Helvetica", 12)
    y = 730
    for line in (
        f"Quizzes taken: {progress['total_quizzes']}",
        f"Average score: {progress['average_score']}%",
        f"Best score: {progress['best_score']}%",
        f"Correct answers: {progress['total_score']}",
        f"Time spent: {progress['total_time_spent']} seconds",
    ):
        p.drawString(72, y, line)
        y -= 18

    y -= 12
    p.setFont("Helvetica-Bold", 13)
    p.drawString(72, y, "Recent attempts")
    y -= 20
    p.setFont("Helvetica", 11)
    for a in attempts:
        completed = a.get("completed_at")
        when = completed.strftime("%Y-%m-%d %H:%M") if completed else "-"
        p.drawString(72, y, f"{when}  {a['score']}/{a['total_questions']} ({a['percentage']}%)  {a.get('time_spent', 0)}s")
        y -= 16
        if y < 72:
            p.showPage()
            p.setFont("Helvetica", 11)
            y = 760

    p.showPage()
    p.save()
    return resp
