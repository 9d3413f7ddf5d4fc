from dataclasses import dataclass, field

from .progress import percentage_of


@dataclass
class ScoreResult:
    score: int
    total: int
    percentage: int
    answers: list = field(default_factory=list)
    results: list = field(default_factory=list)


def parse_answers(data, count):
    """Read ``q_<index>`` option indices from submitted form data."""
    answers = []
    for idx in range(count):
        raw = data.get(f"q_{idx}")
        try:
            answers.append(int(raw))
        except (TypeError, ValueError):
            answers.append(None)
    return answers


def score_answers(questions, answers) -> ScoreResult:
    checked = []
    results = []
    score = 0

    for idx, q in enumerate(questions):
        answer = answers[idx] if idx < len(answers) else None
        if not isinstance(answer, int) or not 0 <= answer < len(q.options):
            answer = None
        is_correct = answer is not None and answer == q.correct_answer
        if is_correct:
            score += 1

        checked.append(answer)
        results.append({
            "question": q.question,
            "options": q.options,
            "correct_answer": q.correct_answer,
            "user_answer": answer,
            "is_correct": is_correct,
            "explanation": q.explanation,
        })

    total = len(questions)
    return ScoreResult(
        score=score,
        total=total,
        percentage=percentage_of(score, total),
        answers=checked,
        results=results,
    )


def completion_message(score, total, percentage):
    message = f"Quiz completed! Your score: {score}/{total} ({percentage}%)"
    if percentage == 100:
        message += " Perfect! You were very observant!"
    elif percentage >= 80:
        message += " Great job! You paid good attention!"
    elif percentage >= 60:
        message += " Good effort! Maybe look at the image again?"
    else:
        message += " You might want to look at the image more carefully next time!"
    return message
