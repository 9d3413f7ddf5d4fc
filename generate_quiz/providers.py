"""AI backends that turn an image into multiple-choice quiz questions.

Every provider exposes the same static metadata (display name, whether it is
free, needs an API key or runs locally) plus ``is_available()`` and
``generate_quiz_from_image()``. Failures are raised as ``ProviderError`` so
the fallback chain in ``generate_quiz.service`` can move on to the next one.
"""
import logging
import random
import re
from dataclasses import dataclass, field

import google.generativeai as genai
import requests
from django.conf import settings
from google.api_core import exceptions as google_exceptions
from openai import APIError, OpenAI, RateLimitError

from .parsing import QuizQuestion, parse_quiz_questions

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 10
DIFFICULTIES = ("easy", "medium", "hard")

DIFFICULTY_TEXT = {
    "easy": "easy (suitable for beginners)",
    "medium": "medium (moderate difficulty)",
    "hard": "hard (challenging for experts)",
}


# -----------------------------
# Errors
# -----------------------------
class ProviderError(Exception):
    """A provider failed to produce questions."""


class ProviderUnavailable(ProviderError):
    pass


class QuotaExceeded(ProviderError):
    pass


def _is_quota_message(message):
    message = message.lower()
    return "quota" in message or "billing" in message


# -----------------------------
# Options & prompt
# -----------------------------
@dataclass
class QuizOptions:
    num_questions: int = 5
    difficulty: str = "medium"
    subject: str = "general"
    question_types: list[str] = field(default_factory=lambda: ["multiple_choice"])

    def __post_init__(self):
        try:
            self.num_questions = int(self.num_questions)
        except (TypeError, ValueError):
            self.num_questions = 5
        self.num_questions = max(1, min(MAX_QUESTIONS, self.num_questions))
        if self.difficulty not in DIFFICULTIES:
            self.difficulty = "medium"
        self.subject = (self.subject or "").strip() or "general"


def build_prompt(options: QuizOptions) -> str:
    difficulty_text = DIFFICULTY_TEXT[options.difficulty]
    type_text = "multiple choice" if "multiple_choice" in options.question_types else "various types"
    n = options.num_questions

    return f"""Analyze the provided image and generate {n} quiz questions about what you see in the image.

Requirements:
- Generate {n} questions of {type_text} format
- Difficulty level: {difficulty_text}
- Subject focus: {options.subject}
- Each question should have 4 answer options (A, B, C, D)
- Mark the correct answer clearly
- Questions should be based on observable elements in the image
- Make questions educational and engaging

Format your response as a JSON array with this structure:
[
  {{
    "question": "What is the main subject of this image?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 1,
    "explanation": "Brief explanation of why this answer is correct"
  }}
]

Please ensure the JSON is valid and properly formatted."""


# -----------------------------
# Base provider
# -----------------------------
class QuizProvider:
    name = ""
    display_name = ""
    is_free = False
    requires_api_key = False
    is_local = False

    def is_available(self) -> bool:
        return False

    def generate_quiz_from_image(self, image, options: QuizOptions) -> list[QuizQuestion]:
        raise ProviderUnavailable(f"{self.display_name} is not configured")

    def metadata(self) -> dict:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "isFree": self.is_free,
            "requiresApiKey": self.requires_api_key,
            "isLocal": self.is_local,
            "available": self.is_available(),
        }


# -----------------------------
# Hugging Face: URL heuristics
# -----------------------------
_DIMENSIONS = re.compile(r"(\d+)[x/](\d+)")


def source_type_answer(url):
    if "picsum.photos" in url or "unsplash.com" in url:
        return 0
    if "instagram.com" in url or "twitter.com" in url:
        return 1
    if "news" in url or "article" in url:
        return 2
    return 3


def aspect_ratio_answer(url):
    match = _DIMENSIONS.search(url)
    if not match:
        return 1
    width, height = int(match.group(1)), int(match.group(2))
    if height == 0:
        return 1
    ratio = width / height
    if abs(ratio - 1) < 0.1:
        return 0
    if ratio > 1.5:
        return 3
    if ratio > 1:
        return 1
    return 2


class HuggingFaceProvider(QuizProvider):
    """Builds questions from patterns in the image URL; no network call."""

    name = "huggingface"
    display_name = "Hugging Face (Free)"
    is_free = True

    def is_available(self):
        return True

    def generate_quiz_from_image(self, image, options):
        url = image.url
        logger.info("HuggingFace: analysing image URL patterns")
        questions = [
            QuizQuestion(
                question="What type of image source is this most likely from?",
                options=[
                    "A photography website or stock photo service",
                    "A social media platform",
                    "A news or article website",
                    "A personal blog or portfolio",
                ],
                correct_answer=source_type_answer(url),
                explanation="AI-generated based on URL analysis",
            ),
            QuizQuestion(
                question="Based on typical web images, what might be the primary focus?",
                options=[
                    "People or portraits",
                    "Nature or landscapes",
                    "Objects or products",
                    "Abstract art or graphics",
                ],
                correct_answer=1,
                explanation="AI-generated based on common image patterns",
            ),
            QuizQuestion(
                question="What aspect ratio or orientation might this image have?",
                options=[
                    "Square (1:1 ratio)",
                    "Landscape (wider than tall)",
                    "Portrait (taller than wide)",
                    "Panoramic (very wide)",
                ],
                correct_answer=aspect_ratio_answer(url),
                explanation="AI-generated based on URL dimensions",
            ),
            QuizQuestion(
                question="If this is a random image, what colors might be prominent?",
                options=[
                    "Warm colors (reds, oranges, yellows)",
                    "Cool colors (blues, greens, purples)",
                    "Earth tones (browns, beiges, grays)",
                    "Bright, vibrant colors",
                ],
                correct_answer=random.randrange(4),
                explanation="AI-generated based on statistical color analysis",
            ),
            QuizQuestion(
                question="What time of day might be shown if this is an outdoor scene?",
                options=[
                    "Early morning or sunrise",
                    "Midday with bright sunlight",
                    "Late afternoon or golden hour",
                    "Evening, night, or indoor scene",
                ],
                correct_answer=random.randrange(4),
                explanation="AI-generated based on lighting patterns",
            ),
        ]
        return questions[:options.num_questions]


# -----------------------------
# Google Gemini
# -----------------------------
PREFERRED_GEMINI_MODELS = [
    'gemini-1.5-flash-latest',
    'gemini-1.5-flash',
    'gemini-1.5-pro-latest',
    'gemini-1.5-pro',
    'gemini-pro-vision',
    'gemini-pro',
]

GEMINI_GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_k": 40,
    "top_p": 0.95,
    "max_output_tokens": 1024,
    "response_mime_type": "application/json",
}


def find_best_image_model(models, default=None):
    """Pick the first preferred model that supports generateContent.

    ``models`` are objects with ``name`` ("models/<id>") and
    ``supported_generation_methods`` as returned by ``genai.list_models()``.
    """
    by_name = {m.name: m for m in models}
    for model_name in PREFERRED_GEMINI_MODELS:
        model = by_name.get(f"models/{model_name}")
        if model and "generateContent" in (model.supported_generation_methods or []):
            return model_name

    for model in models:
        if any(part in model.name for part in ("vision", "flash", "pro")):
            return model.name.replace("models/", "", 1)

    return default


class GeminiProvider(QuizProvider):
    name = "gemini"
    display_name = "Google Gemini"
    is_free = True
    requires_api_key = True

    def is_available(self):
        return bool(settings.GEMINI_API_KEYS)

    def _configure(self):
        if not settings.GEMINI_API_KEYS:
            raise ProviderUnavailable("No Gemini API keys configured.")
        genai.configure(api_key=random.choice(settings.GEMINI_API_KEYS))

    def _model_name(self):
        try:
            models = list(genai.list_models())
        except google_exceptions.GoogleAPIError as e:
            logger.warning(f"Could not list Gemini models, using {settings.GEMINI_MODEL}: {e}")
            return settings.GEMINI_MODEL
        model_name = find_best_image_model(models, default=settings.GEMINI_MODEL)
        if not model_name:
            raise ProviderError("No suitable model found for image processing")
        return model_name

    def generate_quiz_from_image(self, image, options):
        self._configure()
        model_name = self._model_name()
        image_part = {"mime_type": image.mime_type, "data": image.read()}

        try:
            model = genai.GenerativeModel(model_name, generation_config=GEMINI_GENERATION_CONFIG)
            resp = model.generate_content([build_prompt(options), image_part])
            text = getattr(resp, "text", "")
        except google_exceptions.ResourceExhausted as e:
            raise QuotaExceeded(f"Gemini quota exceeded: {e}") from e
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            message = str(e)
            if _is_quota_message(message):
                raise QuotaExceeded(f"Gemini quota exceeded: {message}") from e
            raise ProviderError(f"Gemini API Error: {message}") from e

        if not text:
            raise ProviderError("No quiz questions generated")
        return parse_quiz_questions(text)


# -----------------------------
# OpenAI (and compatible gateways)
# -----------------------------
class OpenAIProvider(QuizProvider):
    name = "openai"
    display_name = "OpenAI"
    requires_api_key = True

    def is_available(self):
        return bool(settings.OPENAI_API_KEY)

    def _client(self):
        return OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.AI_REQUEST_TIMEOUT,
        )

    def generate_quiz_from_image(self, image, options):
        if not self.is_available():
            raise ProviderUnavailable("OpenAI requires API key setup")

        try:
            resp = self._client().chat.completions.create(
                model=settings.OPENAI_VISION_MODEL,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": build_prompt(options)},
                            {"type": "image_url", "image_url": {"url": image.as_data_url()}},
                        ],
                    },
                ],
                temperature=0.7,
            )
        except RateLimitError as e:
            raise QuotaExceeded(f"OpenAI quota exceeded: {e}") from e
        except APIError as e:
            raise ProviderError(f"OpenAI API error: {e}") from e

        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not text:
            raise ProviderError("No quiz questions generated")
        return parse_quiz_questions(text)


# -----------------------------
# Ollama (local)
# -----------------------------
class OllamaProvider(QuizProvider):
    name = "ollama"
    display_name = "Ollama (Local)"
    is_free = True
    is_local = True

    AVAILABILITY_TIMEOUT = 2

    def is_available(self):
        try:
            response = requests.get(f"{settings.OLLAMA_BASE_URL}/tags", timeout=self.AVAILABILITY_TIMEOUT)
        except requests.RequestException:
            return False
        return response.ok

    def generate_quiz_from_image(self, image, options):
        try:
            response = requests.post(
                f"{settings.OLLAMA_BASE_URL}/generate",
                json={
                    "model": settings.OLLAMA_MODEL,
                    "prompt": build_prompt(options),
                    "images": [image.as_base64()],
                    "format": "json",
                    "stream": False,
                },
                timeout=settings.AI_REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise ProviderUnavailable(f"Ollama not running: {e}") from e

        if not response.ok:
            raise ProviderError(f"Ollama API error: {response.status_code} - {response.text}")
        return parse_quiz_questions(response.json().get("response", ""))


# -----------------------------
# Cohere (text only)
# -----------------------------
class CohereProvider(QuizProvider):
    """Cohere has no image input, so it gets a generic image-quiz prompt."""

    name = "cohere"
    display_name = "Cohere"
    is_free = True
    requires_api_key = True

    def is_available(self):
        return bool(settings.COHERE_API_KEY)

    def build_prompt(self, options):
        return (
            f"Generate {options.num_questions} multiple choice quiz questions about "
            f"{options.subject} images at {DIFFICULTY_TEXT[options.difficulty]} level. "
            "Each question needs exactly 4 options. Return only a JSON array of objects "
            'with keys "question", "options", "correctAnswer" (0-3) and "explanation".'
        )

    def generate_quiz_from_image(self, image, options):
        if not self.is_available():
            raise ProviderUnavailable("Cohere not configured")

        try:
            response = requests.post(
                f"{settings.COHERE_BASE_URL}/generate",
                headers={
                    "Authorization": f"Bearer {settings.COHERE_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": "command",
                    "prompt": self.build_prompt(options),
                    "max_tokens": 1000,
                    "temperature": 0.7,
                },
                timeout=settings.AI_REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise ProviderError(f"Cohere API request failed: {e}") from e

        if not response.ok:
            if response.status_code == 429 or _is_quota_message(response.text):
                raise QuotaExceeded(f"Cohere quota exceeded: {response.text}")
            raise ProviderError(f"Cohere API request failed: {response.status_code}")

        generations = response.json().get("generations") or [{}]
        return parse_quiz_questions(generations[0].get("text", ""))


PROVIDER_CLASSES = [
    HuggingFaceProvider,
    OpenAIProvider,
    GeminiProvider,
    OllamaProvider,
    CohereProvider,
]
