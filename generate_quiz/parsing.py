import json
import re
from dataclasses import dataclass

DEFAULT_EXPLANATION = "No explanation provided"
OPTION_COUNT = 4

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class QuizParseError(ValueError):
    """Model output could not be turned into valid quiz questions."""


@dataclass
class QuizQuestion:
    question: str
    options: list[str]
    correct_answer: int
    explanation: str = DEFAULT_EXPLANATION

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuizQuestion":
        return cls(
            question=data["question"],
            options=list(data["options"]),
            correct_answer=int(data["correctAnswer"]),
            explanation=data.get("explanation") or DEFAULT_EXPLANATION,
        )


def _strip_fences(raw: str) -> str:
    raw = (raw or "").strip()
    if raw.startswith("```"):
        raw = raw.strip("`")
        if raw.startswith("json"):
            raw = raw[4:]
    return raw.strip()


def _validate(item, index: int) -> QuizQuestion:
    if not isinstance(item, dict):
        raise QuizParseError(f"Invalid question structure at index {index}")

    text = item.get("question")
    options = item.get("options")
    if not text or not isinstance(text, str) or not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise QuizParseError(f"Invalid question structure at index {index}")

    answer = item.get("correctAnswer", item.get("answer_index"))
    # bool is an int subclass
    if not isinstance(answer, int) or isinstance(answer, bool) or not 0 <= answer < OPTION_COUNT:
        raise QuizParseError(f"Invalid correctAnswer at index {index}")

    return QuizQuestion(
        question=text.strip(),
        options=[str(o) for o in options],
        correct_answer=answer,
        explanation=item.get("explanation") or DEFAULT_EXPLANATION,
    )


def parse_quiz_questions(text: str) -> list[QuizQuestion]:
    """Extract and validate the JSON question array from a model response.

    Accepts responses wrapped in markdown fences or surrounded by prose;
    the first ``[...]`` span is taken as the payload.
    """
    match = _JSON_ARRAY.search(_strip_fences(text))
    if not match:
        raise QuizParseError("No valid JSON found in response")

    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise QuizParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(items, list):
        raise QuizParseError("Response is not an array")
    if not items:
        raise QuizParseError("Response contains no questions")

    return [_validate(item, index) for index, item in enumerate(items)]


def questions_to_dicts(questions) -> list[dict]:
    return [q.to_dict() for q in questions]


def questions_from_dicts(items) -> list[QuizQuestion]:
    return [QuizQuestion.from_dict(item) for item in items]
