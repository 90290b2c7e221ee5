"""Auto-grading for online tests.

Objective answers are compared with the stored correct answer after
normalization: strings are stripped and case-folded, numeric strings compare as
numbers, booleans compare as ``"true"``/``"false"`` and lists compare as
multisets. Theory questions are left for the teacher and finished later with
:func:`apply_theory_grades`.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

OBJECTIVE_TYPES = ("objective", "multiple_choice", "true_false", "short_answer", "fill_blank")


def letter_grade(percentage: Optional[float]) -> str:
    if percentage is None:
        return "F"
    if percentage >= 90:
        return "A"
    if percentage >= 80:
        return "B"
    if percentage >= 70:
        return "C"
    if percentage >= 60:
        return "D"
    return "F"


def percentage_of(score: Optional[float], max_score: Optional[float]) -> float:
    if not max_score or score is None:
        return 0.0
    return round(score / max_score * 100, 2)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def _normalize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_key(float(value))
    text = str(value).strip().casefold()
    try:
        return _number_key(float(text))
    except ValueError:
        return text


def _number_key(number: float) -> str:
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _option_aliases(correct: Any, options: Optional[List[Any]]) -> List[Any]:
    """An integer correct answer may be an index into ``options``; accept its text too."""
    if not options or isinstance(correct, bool):
        return []
    index = None
    if isinstance(correct, int):
        index = correct
    elif isinstance(correct, str) and correct.strip().isdigit():
        index = int(correct.strip())
    if index is not None and 0 <= index < len(options):
        return [options[index]]
    return []


def answers_match(student_answer: Any, correct_answer: Any, options: Optional[List[Any]] = None) -> bool:
    if _is_empty(student_answer) or _is_empty(correct_answer):
        return False

    student_items = _as_list(student_answer)
    correct_items = _as_list(correct_answer)

    if len(student_items) != len(correct_items):
        return False

    if len(correct_items) == 1:
        candidate = _normalize(student_items[0])
        accepted = {_normalize(correct_items[0])}
        accepted.update(_normalize(alias) for alias in _option_aliases(correct_items[0], options))
        return candidate in accepted

    if any(_is_empty(item) for item in student_items):
        return False
    return Counter(_normalize(i) for i in student_items) == Counter(_normalize(i) for i in correct_items)


@dataclass
class GradingResult:
    objective_score: float = 0.0
    objective_max_score: float = 0.0
    theory_max_score: float = 0.0
    graded_answers: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def needs_manual_grading(self) -> bool:
        return self.theory_max_score > 0

    @property
    def max_score(self) -> float:
        return self.objective_max_score + self.theory_max_score

    def to_content(self, answers: Dict[str, Any], time_spent: Optional[int], auto_submit: bool) -> Dict[str, Any]:
        return {
            "answers": answers,
            "graded_answers": self.graded_answers,
            "objective_score": self.objective_score,
            "objective_max_score": self.objective_max_score,
            "theory_max_score": self.theory_max_score,
            "theory_score": None,
            "time_spent": time_spent,
            "auto_submit": auto_submit,
        }


def question_key(question: Dict[str, Any], index: int) -> str:
    return str(question.get("id") or index)


def grade_submission(questions: List[Dict[str, Any]], answers: Dict[str, Any]) -> GradingResult:
    result = GradingResult()
    for index, question in enumerate(questions):
        key = question_key(question, index)
        marks = float(question.get("marks") or 1)
        answer = answers.get(key)
        q_type = question.get("type", "multiple_choice")

        if q_type in OBJECTIVE_TYPES:
            correct = answers_match(answer, question.get("correct_answer"), question.get("options"))
            awarded = marks if correct else 0.0
            result.objective_max_score += marks
            result.objective_score += awarded
            result.graded_answers.append({
                "question_id": key,
                "type": q_type,
                "answer": answer,
                "is_correct": correct,
                "marks": marks,
                "awarded": awarded,
                "needs_grading": False,
            })
        else:
            result.theory_max_score += marks
            result.graded_answers.append({
                "question_id": key,
                "type": q_type,
                "answer": answer,
                "is_correct": None,
                "marks": marks,
                "awarded": None,
                "needs_grading": True,
            })
    return result


def apply_theory_grades(content: Dict[str, Any], theory_grades: Dict[str, float], feedback: Optional[str] = None) -> float:
    """Write manual marks into a graded submission's ``content`` and return the total score.

    Marks are clamped to each question's maximum. Raises ``ValueError`` when a
    theory question is left ungraded or an unknown question id is given.
    """
    graded = content.get("graded_answers") or []
    theory = {item["question_id"]: item for item in graded if item.get("needs_grading")}

    unknown = set(theory_grades) - set(theory)
    if unknown:
        raise ValueError(f"Unknown theory question(s): {', '.join(sorted(unknown))}")
    missing = set(theory) - set(theory_grades)
    if missing:
        raise ValueError(f"Missing grades for question(s): {', '.join(sorted(missing))}")

    theory_score = 0.0
    for question_id, item in theory.items():
        awarded = max(0.0, min(float(theory_grades[question_id]), float(item["marks"])))
        item["awarded"] = awarded
        item["needs_grading"] = False
        theory_score += awarded

    content["theory_score"] = theory_score
    if feedback is not None:
        content["teacher_feedback"] = feedback
    return float(content.get("objective_score") or 0) + theory_score
