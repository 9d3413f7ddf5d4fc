import logging
from dataclasses import dataclass

from django.conf import settings

from .parsing import QuizQuestion
from .providers import PROVIDER_CLASSES, QuizOptions, QuotaExceeded

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER = "fallback"
FALLBACK_EXPLANATION = "This is a fallback question. AI services are temporarily unavailable."


@dataclass
class GenerationResult:
    questions: list[QuizQuestion]
    provider: str

    @property
    def is_fallback(self):
        return self.provider == FALLBACK_PROVIDER


def create_fallback_questions() -> list[QuizQuestion]:
    return [
        QuizQuestion(
            question="What is the main subject or focus of this image?",
            options=[
                "A person or people",
                "An animal or animals",
                "A landscape or building",
                "An object or abstract art",
            ],
            correct_answer=0,
            explanation=FALLBACK_EXPLANATION,
        ),
        QuizQuestion(
            question="What colors appear to be most prominent in this image?",
            options=[
                "Warm colors (red, orange, yellow)",
                "Cool colors (blue, green, purple)",
                "Neutral colors (black, white, gray)",
                "Bright, vibrant colors",
            ],
            correct_answer=1,
            explanation=FALLBACK_EXPLANATION,
        ),
        QuizQuestion(
            question="What is the general composition or framing of this image?",
            options=[
                "Close-up or macro view",
                "Medium or portrait view",
                "Wide or landscape view",
                "Aerial or bird's eye view",
            ],
            correct_answer=2,
            explanation=FALLBACK_EXPLANATION,
        ),
        QuizQuestion(
            question="What lighting conditions are present in this image?",
            options=[
                "Bright daylight",
                "Soft or diffused light",
                "Dramatic or high contrast",
                "Low light or evening",
            ],
            correct_answer=0,
            explanation=FALLBACK_EXPLANATION,
        ),
        QuizQuestion(
            question="What type of setting or environment is shown?",
            options=[
                "Indoor/interior space",
                "Outdoor natural setting",
                "Urban or city environment",
                "Studio or controlled setting",
            ],
            correct_answer=1,
            explanation=FALLBACK_EXPLANATION,
        ),
    ]


class MultiAIService:
    """Tries the selected provider, then the configured fallback order."""

    def __init__(self, provider=None, fallback_providers=None, providers=None):
        if providers is None:
            providers = [cls() for cls in PROVIDER_CLASSES]
        self.providers = {p.name: p for p in providers}

        self.current_provider = settings.AI_DEFAULT_PROVIDER
        if provider and provider in self.providers:
            self.current_provider = provider
        if fallback_providers is None:
            fallback_providers = settings.AI_FALLBACK_PROVIDERS
        self.fallback_providers = [name for name in fallback_providers if name in self.providers]

    def set_provider(self, provider_name):
        if provider_name in self.providers:
            self.current_provider = provider_name
            return True
        return False

    def get_available_providers(self):
        return [self.providers[name].metadata() for name in self.providers]

    def check_provider_availability(self, provider_name):
        provider = self.providers.get(provider_name)
        if provider is None:
            return False
        try:
            return bool(provider.is_available())
        except Exception as e:
            logger.error(f"Error checking {provider_name} availability: {e}")
            return False

    def _providers_to_try(self):
        order = []
        for name in [self.current_provider, *self.fallback_providers]:
            if name in self.providers and name not in order:
                order.append(name)
        return order

    def generate_quiz_from_image(self, image, options=None) -> GenerationResult:
        options = options or QuizOptions()

        for provider_name in self._providers_to_try():
            provider = self.providers[provider_name]

            if not self.check_provider_availability(provider_name):
                logger.warning(f"Provider {provider_name} not available, trying next...")
                continue

            try:
                logger.info(f"Trying to generate quiz with {provider_name}...")
                questions = provider.generate_quiz_from_image(image, options)
            except QuotaExceeded as e:
                logger.warning(f"Provider {provider_name} failed: {e}")
                continue
            except Exception as e:
                logger.error(f"Provider {provider_name} error: {e}")
                continue

            if not questions:
                logger.warning(f"Provider {provider_name} returned no questions")
                continue

            logger.info(f"Successfully generated quiz with {provider_name}")
            return GenerationResult(questions=questions, provider=provider_name)

        logger.warning("All AI providers failed, returning fallback questions")
        return GenerationResult(questions=create_fallback_questions(), provider=FALLBACK_PROVIDER)
