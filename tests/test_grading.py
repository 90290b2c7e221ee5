import pytest

from schooldesk.services.grading import (
    answers_match,
    apply_theory_grades,
    grade_submission,
    letter_grade,
    percentage_of,
)


@pytest.mark.parametrize(
    "student, correct",
    [
        ("Paris", "paris"),
        ("  Abuja ", "abuja"),
        ("2", 2),
        (2.0, "2"),
        ("3.50", 3.5),
        (True, "true"),
        ("FALSE", False),
        (["b", "a"], ["A", "B"]),
        (["x"], "X"),
    ],
)
def test_answers_match_equivalent_forms(student, correct):
    assert answers_match(student, correct)


@pytest.mark.parametrize(
    "student, correct",
    [
        (None, "a"),
        ("", "a"),
        ("   ", "a"),
        ([], ["a"]),
        ("London", "Paris"),
        (["a", "a"], ["a", "b"]),
        (["a"], ["a", "b"]),
        ("2.1", 2),
    ],
)
def test_answers_match_rejects(student, correct):
    assert not answers_match(student, correct)


def test_answers_match_accepts_option_text_for_index():
    options = ["Lagos", "Abuja", "Kano"]
    assert answers_match("Abuja", 1, options)
    assert answers_match(1, 1, options)
    assert not answers_match("Lagos", 1, options)


def test_letter_grade_boundaries():
    assert letter_grade(95) == "A"
    assert letter_grade(90) == "A"
    assert letter_grade(89.9) == "B"
    assert letter_grade(70) == "C"
    assert letter_grade(60) == "D"
    assert letter_grade(59.99) == "F"
    assert letter_grade(None) == "F"


def test_percentage_of():
    assert percentage_of(15, 20) == 75.0
    assert percentage_of(5, 0) == 0.0
    assert percentage_of(None, 10) == 0.0


QUESTIONS = [
    {"id": "q1", "type": "multiple_choice", "question": "Capital?", "options": ["Lagos", "Abuja"], "correct_answer": 1, "marks": 2},
    {"id": "q2", "type": "true_false", "question": "Sky is blue", "correct_answer": True, "marks": 1},
    {"id": "q3", "type": "short_answer", "question": "2+2", "correct_answer": "4", "marks": 1},
    {"id": "q4", "type": "essay", "question": "Discuss", "marks": 6},
]


def test_grade_submission_splits_objective_and_theory():
    answers = {"q1": "Abuja", "q2": "true", "q3": "5", "q4": "Long answer"}
    result = grade_submission(QUESTIONS, answers)

    assert result.objective_score == 3
    assert result.objective_max_score == 4
    assert result.theory_max_score == 6
    assert result.max_score == 10
    assert result.needs_manual_grading

    by_id = {g["question_id"]: g for g in result.graded_answers}
    assert by_id["q1"]["is_correct"] is True
    assert by_id["q3"]["is_correct"] is False
    assert by_id["q3"]["awarded"] == 0
    assert by_id["q4"]["needs_grading"] is True
    assert by_id["q4"]["awarded"] is None


def test_grade_submission_uses_index_when_question_has_no_id():
    questions = [{"type": "short_answer", "correct_answer": "x"}, {"type": "short_answer", "correct_answer": "y"}]
    result = grade_submission(questions, {"0": "X", "1": "nope"})
    assert result.objective_score == 1
    assert not result.needs_manual_grading


def test_apply_theory_grades_clamps_and_totals():
    result = grade_submission(QUESTIONS, {"q1": 1, "q2": True, "q3": "4"})
    content = result.to_content({}, 120, False)

    total = apply_theory_grades(content, {"q4": 9}, feedback="Good effort")

    assert total == 4 + 6
    assert content["theory_score"] == 6
    assert content["teacher_feedback"] == "Good effort"
    theory = [g for g in content["graded_answers"] if g["question_id"] == "q4"][0]
    assert theory["awarded"] == 6
    assert theory["needs_grading"] is False


def test_apply_theory_grades_rejects_unknown_and_missing():
    content = grade_submission(QUESTIONS, {}).to_content({}, None, True)
    with pytest.raises(ValueError):
        apply_theory_grades(content, {"q4": 3, "q9": 1})
    with pytest.raises(ValueError):
        apply_theory_grades(content, {})


def test_objective_type_is_auto_graded():
    questions = [{"id": "q1", "type": "objective", "options": ["a", "b"], "correct_answer": 1, "marks": 2}]
    result = grade_submission(questions, {"q1": 1})
    assert result.objective_score == 2
    assert result.objective_max_score == 2
    assert not result.needs_manual_grading
