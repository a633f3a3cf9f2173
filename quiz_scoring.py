#!/usr/bin/env python3
"""
Quiz Scoring - Answer keys and per-type grading rules
Every question type stores its key in exactly one of three fields:
correct_answer (option index), correct_answer_text (free text) or
correct_answer_json (matching / ordering structures).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    SINGLE_CHOICE = "single_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"
    MATCHING = "matching"
    ORDERING = "ordering"


QUESTION_TYPES = [t.value for t in QuestionType]
CHOICE_TYPES = {QuestionType.MULTIPLE_CHOICE.value, QuestionType.SINGLE_CHOICE.value, QuestionType.TRUE_FALSE.value}
TEXT_TYPES = {QuestionType.FILL_BLANK.value, QuestionType.ESSAY.value}
STRUCTURED_TYPES = {QuestionType.MATCHING.value, QuestionType.ORDERING.value}


@dataclass
class QuestionKey:
    """A stored question together with its answer key"""
    question_id: str
    question_type: str
    question: str = ""
    options: List[Any] = field(default_factory=list)
    correct_answer: Optional[int] = None
    correct_answer_text: Optional[str] = None
    correct_answer_json: Any = None
    explanation: Optional[str] = None
    points: int = 1
    partial_credit: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QuestionKey":
        return cls(
            question_id=str(row.get('id') or row.get('question_id') or ''),
            question_type=row.get('question_type') or QuestionType.MULTIPLE_CHOICE.value,
            question=row.get('question') or '',
            options=list(row.get('options') or []),
            correct_answer=row.get('correct_answer'),
            correct_answer_text=row.get('correct_answer_text'),
            correct_answer_json=row.get('correct_answer_json'),
            explanation=row.get('explanation'),
            points=row.get('points') or 1,
            partial_credit=bool(row.get('partial_credit')),
        )

    @property
    def weight(self) -> float:
        return self.points if self.points and self.points > 0 else 1


@dataclass
class QuestionGrade:
    question_id: str
    question_type: str
    answered: bool
    is_correct: bool
    points_possible: float
    points_earned: float
    requires_manual_grading: bool = False
    key_missing: bool = False
    user_answer_display: str = "No answer"
    correct_answer_display: str = ""


@dataclass
class ScoreResult:
    total_points: float
    earned_points: float
    correct_count: int
    total_questions: int
    percentage: float
    passed: bool
    pending_manual_grading: int
    grades: List[QuestionGrade]


def normalize_text(value: Any) -> str:
    return str(value).strip().lower() if value is not None else ""


def coerce_index(value: Any) -> Optional[int]:
    """Accept ints and digit strings as option indices; bools are rejected"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    return None


def is_unanswered(answer: Any) -> bool:
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    if isinstance(answer, (list, dict)):
        return len(answer) == 0
    return False


def option_label(option: Any) -> str:
    if isinstance(option, dict):
        if 'left' in option or 'right' in option:
            return f"{option.get('left', '')} = {option.get('right', '')}"
        return str(option.get('text') or option.get('label') or '')
    return str(option)


def normalize_matching(value: Any) -> Dict[int, int]:
    """Normalize a matching key or answer to {left_index: right_index}

    Accepts a mapping, a list whose position is the left index, or a list
    of [left, right] pairs. Entries that are not indices are dropped.
    """
    pairs: Dict[int, int] = {}
    if isinstance(value, dict):
        items = value.items()
    elif isinstance(value, list):
        if value and all(isinstance(v, (list, tuple)) and len(v) == 2 for v in value):
            items = [(v[0], v[1]) for v in value]
        else:
            items = enumerate(value)
    else:
        return pairs

    for left, right in items:
        left_idx = coerce_index(left)
        right_idx = coerce_index(right)
        if left_idx is not None and right_idx is not None:
            pairs[left_idx] = right_idx
    return pairs


def normalize_ordering(value: Any, options: List[Any]) -> Dict[int, int]:
    """Normalize an ordering key or answer to {option_index: position}

    Positions are 1-based. A mapping is taken as-is; a list is read as the
    items in correct order, given either as option texts or option indices.
    """
    positions: Dict[int, int] = {}
    if isinstance(value, dict):
        for idx, pos in value.items():
            idx_i = coerce_index(idx)
            pos_i = coerce_index(pos)
            if idx_i is not None and pos_i is not None:
                positions[idx_i] = pos_i
        return positions

    if not isinstance(value, list):
        return positions

    labels = [option_label(o) for o in options]
    for position, item in enumerate(value, start=1):
        idx = coerce_index(item)
        if idx is None or (isinstance(item, str) and item in labels):
            text = option_label(item)
            idx = labels.index(text) if text in labels else None
        if idx is not None and idx not in positions:
            positions[idx] = position
    return positions


def _grade_choice(question: QuestionKey, answer: Any) -> bool:
    expected = coerce_index(question.correct_answer)
    if expected is None:
        return False
    selected = coerce_index(answer)
    if selected is None and question.question_type == QuestionType.TRUE_FALSE.value:
        if isinstance(answer, bool):
            selected = 0 if answer else 1
        else:
            selected = {"true": 0, "false": 1}.get(normalize_text(answer))
    return selected == expected


def _fraction_matched(expected: Dict[int, int], actual: Dict[int, int]) -> float:
    if not expected:
        return 0.0
    matched = sum(1 for k, v in expected.items() if actual.get(k) == v)
    return matched / len(expected)


def describe_answer(question: QuestionKey, answer: Any) -> str:
    """Human-readable rendering of a submitted answer for results review"""
    if is_unanswered(answer):
        return "No answer"
    qtype = question.question_type
    if qtype in CHOICE_TYPES:
        idx = coerce_index(answer)
        if idx is not None and 0 <= idx < len(question.options):
            return option_label(question.options[idx])
        return str(answer)
    if qtype == QuestionType.ORDERING.value:
        positions = normalize_ordering(answer, question.options)
        ordered = sorted(positions.items(), key=lambda kv: kv[1])
        return " → ".join(
            option_label(question.options[idx]) if 0 <= idx < len(question.options) else str(idx)
            for idx, _ in ordered
        )
    if qtype == QuestionType.MATCHING.value:
        return f"{len(normalize_matching(answer))} matches made"
    return str(answer)


def describe_correct_answer(question: QuestionKey) -> str:
    qtype = question.question_type
    if qtype in CHOICE_TYPES:
        idx = coerce_index(question.correct_answer)
        if idx is not None and 0 <= idx < len(question.options):
            return option_label(question.options[idx])
        return ""
    if qtype in TEXT_TYPES:
        return question.correct_answer_text or ""
    if qtype == QuestionType.ORDERING.value:
        return describe_answer(question, question.correct_answer_json)
    if qtype == QuestionType.MATCHING.value:
        lines = []
        for left, right in sorted(normalize_matching(question.correct_answer_json).items()):
            if left < len(question.options) and right < len(question.options):
                left_opt = question.options[left]
                right_opt = question.options[right]
                left_text = left_opt.get('left', '') if isinstance(left_opt, dict) else str(left_opt)
                right_text = right_opt.get('right', '') if isinstance(right_opt, dict) else str(right_opt)
                lines.append(f"{left_text} = {right_text}")
        return "; ".join(lines)
    return ""


def grade_question(question: QuestionKey, answer: Any) -> QuestionGrade:
    """Grade one answer against the question's key"""
    possible = question.weight
    grade = QuestionGrade(
        question_id=question.question_id,
        question_type=question.question_type,
        answered=not is_unanswered(answer),
        is_correct=False,
        points_possible=possible,
        points_earned=0,
        user_answer_display=describe_answer(question, answer),
        correct_answer_display=describe_correct_answer(question),
    )
    qtype = question.question_type

    if qtype == QuestionType.ESSAY.value:
        grade.requires_manual_grading = grade.answered
        return grade

    if qtype in STRUCTURED_TYPES:
        if qtype == QuestionType.MATCHING.value:
            expected = normalize_matching(question.correct_answer_json)
        else:
            expected = normalize_ordering(question.correct_answer_json, question.options)
        if not expected:
            grade.key_missing = True
            return grade
    elif qtype not in CHOICE_TYPES and qtype != QuestionType.FILL_BLANK.value:
        logger.warning(f"Cannot grade question {question.question_id}: unknown type '{qtype}'")
        return grade

    if not grade.answered:
        return grade

    if qtype in CHOICE_TYPES:
        grade.is_correct = _grade_choice(question, answer)
    elif qtype == QuestionType.FILL_BLANK.value:
        expected_text = question.correct_answer_text
        if not expected_text and question.correct_answer is not None:
            expected_text = str(question.correct_answer)
        if not expected_text:
            grade.key_missing = True
            return grade
        grade.is_correct = normalize_text(answer) == normalize_text(expected_text)
    else:
        if qtype == QuestionType.MATCHING.value:
            actual = normalize_matching(answer)
        else:
            actual = normalize_ordering(answer, question.options)
        fraction = _fraction_matched(expected, actual)
        grade.is_correct = fraction == 1.0 and len(actual) == len(expected)
        if not grade.is_correct and question.partial_credit:
            grade.points_earned = round(possible * fraction, 2)
            return grade

    if grade.is_correct:
        grade.points_earned = possible
    return grade


def percentage_of(earned: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(min(max(earned / total * 100, 0.0), 100.0), 2)


def score_submission(questions: List[QuestionKey],
                     answers: Dict[str, Any],
                     passing_score: Optional[float] = None) -> ScoreResult:
    """Score a full submission; answers are keyed by question id"""
    grades = [grade_question(q, answers.get(q.question_id)) for q in questions]

    total_points = sum(g.points_possible for g in grades)
    earned_points = sum(g.points_earned for g in grades)
    percentage = percentage_of(earned_points, total_points)
    passed = percentage >= passing_score if passing_score else True

    return ScoreResult(
        total_points=total_points,
        earned_points=earned_points,
        correct_count=sum(1 for g in grades if g.is_correct),
        total_questions=len(questions),
        percentage=percentage,
        passed=passed,
        pending_manual_grading=sum(1 for g in grades if g.requires_manual_grading),
        grades=grades,
    )


def attempt_percentage(score: Optional[float], total_questions: Optional[int],
                       percentage_score: Optional[float] = None) -> int:
    """Percentage for a stored attempt, preferring the stored percentage"""
    if percentage_score is not None:
        value = float(percentage_score)
    elif total_questions:
        value = float(score or 0) / total_questions * 100
    else:
        value = 0.0
    return int(round(min(max(value, 0.0), 100.0)))
