import logging

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import render, redirect
from django.views.decorators.http import require_POST

from .forms import ImageQuizForm
from .images import ImageLoadError, ImageSource, sample_image_url, save_upload, validate_image_url
from .providers import QuizOptions
from .service import MultiAIService
from .session import clear_session_quiz, get_session_quiz, store_session_quiz

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _resolve_image_url(form):
    upload = form.cleaned_data.get("image_file")
    if upload:
        return save_upload(upload)
    return validate_image_url(form.cleaned_data["image_url"])


def _options_from_form(form):
    data = form.cleaned_data
    return QuizOptions(
        num_questions=data.get("num_questions") or 5,
        difficulty=data.get("difficulty") or "medium",
        subject=data.get("subject") or "general",
    )


# -----------------------------
# Views
# -----------------------------
def generate_view(request):
    if request.method == "POST":
        form = ImageQuizForm(request.POST, request.FILES)
        if not form.is_valid():
            messages.error(request, "Please fix the errors.")
            return render(request, "generate_quiz.html", {"form": form})

        try:
            image_url = _resolve_image_url(form)
        except ImageLoadError as e:
            messages.error(request, str(e))
            return render(request, "generate_quiz.html", {"form": form})

        service = MultiAIService(provider=form.cleaned_data.get("provider") or None)
        result = service.generate_quiz_from_image(ImageSource(image_url), _options_from_form(form))
        store_session_quiz(request, image_url, result)
        logger.info(f"Quiz for {image_url} generated by {result.provider} ({len(result.questions)} questions)")

        if result.is_fallback:
            messages.warning(request, "AI services are temporarily unavailable. Showing general questions instead.")
        else:
            messages.success(request, "AI-generated quiz ready!")
        return redirect("play_quiz")

    initial = {}
    if request.GET.get("sample"):
        initial["image_url"] = sample_image_url()
    elif request.GET.get("image_url"):
        initial["image_url"] = request.GET["image_url"]
    service = MultiAIService()
    return render(request, "generate_quiz.html", {
        "form": ImageQuizForm(initial={**initial, "provider": service.current_provider}),
        "current_quiz": get_session_quiz(request),
    })


@require_POST
def reset_view(request):
    clear_session_quiz(request)
    return redirect("generate_quiz")


def play_view(request):
    quiz = get_session_quiz(request)
    if not quiz:
        messages.info(request, "Load an image to generate a quiz first.")
        return redirect("generate_quiz")

    return render(request, "play_quiz.html", {
        "quiz": quiz,
        "questions": list(enumerate(quiz["questions"])),
        "signed_in": request.user.is_authenticated,
    })


def providers_status(request):
    service = MultiAIService()
    return JsonResponse({
        "current": service.current_provider,
        "fallback": service.fallback_providers,
        "providers": service.get_available_providers(),
    })
