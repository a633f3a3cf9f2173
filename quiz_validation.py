#!/usr/bin/env python3
"""
Quiz Validation - Authoring checks for questions and quiz settings
Errors block saving a quiz, warnings are advisory
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from quiz_scoring import (
    QUESTION_TYPES, QuestionType, coerce_index, normalize_matching, normalize_ordering, option_label
)

class ValidationLevel(Enum):
    ERROR = "error"
    WARNING = "warning"

@dataclass
class ValidationIssue:
    level: ValidationLevel
    field: str
    message: str
    code: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level.value,
            'field': self.field,
            'message': self.message,
            'code': self.code,
            'suggestion': self.suggestion,
        }

@dataclass
class QuestionValidation:
    is_valid: bool = True
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    def error(self, field_name: str, message: str, code: str, suggestion: Optional[str] = None):
        self.errors.append(ValidationIssue(ValidationLevel.ERROR, field_name, message, code, suggestion))
        self.is_valid = False

    def warn(self, field_name: str, message: str, code: str, suggestion: Optional[str] = None):
        self.warnings.append(ValidationIssue(ValidationLevel.WARNING, field_name, message, code, suggestion))

    def merge(self, other: "QuestionValidation", prefix: str = ""):
        for issue in other.errors:
            self.error(prefix + issue.field, issue.message, issue.code, issue.suggestion)
        for issue in other.warnings:
            self.warn(prefix + issue.field, issue.message, issue.code, issue.suggestion)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
            'warnings': [w.to_dict() for w in self.warnings],
        }


# Option count limits per question type
VALIDATION_RULES: Dict[str, Dict[str, int]] = {
    QuestionType.MULTIPLE_CHOICE.value: {'min_options': 2, 'max_options': 6},
    QuestionType.SINGLE_CHOICE.value: {'min_options': 2, 'max_options': 6},
    QuestionType.TRUE_FALSE.value: {'min_options': 2, 'max_options': 2},
    QuestionType.FILL_BLANK.value: {'min_options': 0, 'max_options': 0},
    QuestionType.ESSAY.value: {'min_options': 0, 'max_options': 0},
    QuestionType.MATCHING.value: {'min_options': 2, 'max_options': 10},
    QuestionType.ORDERING.value: {'min_options': 2, 'max_options': 8},
}

MIN_POINTS = 1
MAX_POINTS = 10
MAX_QUESTIONS_PER_QUIZ = 50
VALID_DIFFICULTIES = ('beginner', 'intermediate', 'advanced')

BLANK_PATTERN = re.compile(r'_{3,}')


def _numeric_points(question: Dict[str, Any]) -> Optional[float]:
    points = question.get('points')
    if points is None:
        return 1
    if isinstance(points, bool) or not isinstance(points, (int, float)):
        return None
    return points


def _validate_basic_fields(question: Dict[str, Any], result: QuestionValidation):
    text = str(question.get('question') or '').strip()
    if not text:
        result.error('question', 'Question text is required', 'REQUIRED_FIELD',
                     'Enter the question prompt')
    elif len(text) < 10:
        result.warn('question', 'Question text is very short', 'SHORT_QUESTION',
                    'Consider providing more context')
    elif len(text) > 500:
        result.warn('question', 'Question text is very long', 'LONG_QUESTION',
                    'Consider splitting into multiple questions')

    qtype = question.get('question_type')
    if qtype not in QUESTION_TYPES:
        result.error('question_type', f"Invalid question type '{qtype}'", 'INVALID_TYPE',
                     f"Use one of: {', '.join(QUESTION_TYPES)}")

    points = question.get('points', 1)
    if points is None:
        points = 1
    if isinstance(points, bool) or not isinstance(points, (int, float)) \
            or points < MIN_POINTS or points > MAX_POINTS:
        result.error('points', f'Points must be between {MIN_POINTS} and {MAX_POINTS}',
                     'INVALID_POINTS')


def _validate_choice(question: Dict[str, Any], result: QuestionValidation, rules: Dict[str, int]):
    options = question.get('options')
    if not isinstance(options, list):
        result.error('options', 'Options must be a list', 'INVALID_OPTIONS')
        return

    if len(options) < rules['min_options']:
        result.error('options', f"At least {rules['min_options']} options are required",
                     'TOO_FEW_OPTIONS')
    if len(options) > rules['max_options']:
        result.error('options', f"No more than {rules['max_options']} options are allowed",
                     'TOO_MANY_OPTIONS')

    labels = [option_label(o).strip() for o in options]
    empty = [i + 1 for i, label in enumerate(labels) if not label]
    if empty:
        result.error('options', f"Options cannot be empty (option {', '.join(map(str, empty))})",
                     'EMPTY_OPTION')

    lowered = [label.lower() for label in labels if label]
    if len(set(lowered)) != len(lowered):
        result.warn('options', 'Duplicate options found', 'DUPLICATE_OPTIONS',
                    'Each option should be distinct')

    answer = coerce_index(question.get('correct_answer'))
    if answer is None:
        result.error('correct_answer', 'A correct answer must be selected', 'MISSING_ANSWER')
    elif answer < 0 or answer >= len(options):
        result.error('correct_answer', 'Correct answer index is out of range', 'INVALID_ANSWER_INDEX')


def _validate_true_false(question: Dict[str, Any], result: QuestionValidation):
    options = question.get('options')
    if options != ['True', 'False']:
        result.error('options', 'True/False questions must have options ["True", "False"]',
                     'INVALID_TF_OPTIONS')

    answer = coerce_index(question.get('correct_answer'))
    if answer not in (0, 1):
        result.error('correct_answer', 'Correct answer must be 0 (True) or 1 (False)',
                     'INVALID_TF_ANSWER')


def _validate_fill_blank(question: Dict[str, Any], result: QuestionValidation):
    text = str(question.get('question') or '')
    blanks = BLANK_PATTERN.findall(text)
    if not blanks:
        result.warn('question', 'Question has no blank placeholder', 'NO_BLANK',
                    'Mark the blank with ___')
    elif len(blanks) > 3:
        result.warn('question', 'Question has more than 3 blanks', 'TOO_MANY_BLANKS',
                    'Consider splitting into several questions')

    answer = str(question.get('correct_answer_text') or '').strip()
    if not answer:
        result.error('correct_answer_text', 'Expected answer text is required', 'MISSING_ANSWER')
        return
    if len(answer) > 100:
        result.warn('correct_answer_text', 'Expected answer is very long', 'LONG_ANSWER',
                    'Short answers are graded more reliably')
    elif len(answer) < 2:
        result.warn('correct_answer_text', 'Expected answer is very short', 'SHORT_ANSWER')
    if answer != answer.lower():
        result.warn('correct_answer_text', 'Answers are compared case-insensitively',
                    'CASE_INSENSITIVE')


def _validate_essay(question: Dict[str, Any], result: QuestionValidation):
    if not str(question.get('correct_answer_text') or '').strip():
        result.warn('correct_answer_text', 'No sample answer or rubric provided', 'NO_RUBRIC',
                    'Add a sample answer to guide manual grading')
    if not str(question.get('explanation') or '').strip():
        result.warn('explanation', 'No grading guidance provided', 'NO_EXPLANATION')
    if len(str(question.get('question') or '').strip()) < 20:
        result.warn('question', 'Essay prompt is short', 'SHORT_ESSAY_PROMPT',
                    'Describe what the answer should cover')
    points = _numeric_points(question)
    if points is not None and points < 2:
        result.warn('points', 'Essay questions usually carry more than 1 point', 'LOW_POINTS')


def _validate_matching(question: Dict[str, Any], result: QuestionValidation, rules: Dict[str, int]):
    pairs = question.get('options')
    if not isinstance(pairs, list):
        result.error('options', 'Matching pairs must be a list', 'INVALID_OPTIONS')
        return

    if len(pairs) < rules['min_options']:
        result.error('options', f"At least {rules['min_options']} pairs are required", 'TOO_FEW_OPTIONS')
    if len(pairs) > rules['max_options']:
        result.error('options', f"No more than {rules['max_options']} pairs are allowed", 'TOO_MANY_OPTIONS')

    lefts, rights = [], []
    for i, pair in enumerate(pairs):
        left = str(pair.get('left') or '').strip() if isinstance(pair, dict) else ''
        right = str(pair.get('right') or '').strip() if isinstance(pair, dict) else ''
        if not left or not right:
            result.error(f'options.{i}', f'Pair {i + 1} needs both a left and right item', 'INCOMPLETE_PAIR')
        lefts.append(left.lower())
        rights.append(right.lower())

    if len(set(filter(None, lefts))) != len(list(filter(None, lefts))):
        result.warn('options', 'Duplicate left items found', 'DUPLICATE_LEFT')
    if len(set(filter(None, rights))) != len(list(filter(None, rights))):
        result.warn('options', 'Duplicate right items found', 'DUPLICATE_RIGHT')

    key = normalize_matching(question.get('correct_answer_json'))
    if not key:
        result.error('correct_answer_json', 'Matching answer key is required', 'MISSING_ANSWER')
        return
    out_of_range = [k for k, v in key.items()
                    if not 0 <= k < len(pairs) or not 0 <= v < len(pairs)]
    if out_of_range:
        result.error('correct_answer_json', 'Answer key refers to pairs that do not exist',
                     'INVALID_ANSWER_INDEX')


def _validate_ordering(question: Dict[str, Any], result: QuestionValidation, rules: Dict[str, int]):
    items = question.get('options')
    if not isinstance(items, list):
        result.error('options', 'Ordering items must be a list', 'INVALID_OPTIONS')
        return

    if len(items) < rules['min_options']:
        result.error('options', f"At least {rules['min_options']} items are required", 'TOO_FEW_OPTIONS')
    if len(items) > rules['max_options']:
        result.error('options', f"No more than {rules['max_options']} items are allowed", 'TOO_MANY_OPTIONS')

    labels = [option_label(i).strip() for i in items]
    if any(not label for label in labels):
        result.error('options', 'Ordering items cannot be empty', 'EMPTY_OPTION')
    if len(set(labels)) != len(labels):
        result.error('options', 'Ordering items must be unique', 'DUPLICATE_OPTIONS')

    key = question.get('correct_answer_json')
    if isinstance(key, dict) and key:
        positions = normalize_ordering(key, items)
        if len(positions) != len(key) or sorted(positions) != list(range(len(items))) \
                or sorted(positions.values()) != list(range(1, len(items) + 1)):
            result.error('correct_answer_json', 'Order positions must cover every item exactly once',
                         'ORDER_MISMATCH', 'Give each item a distinct position from 1 to the item count')
        return
    if not isinstance(key, list) or not key:
        result.error('correct_answer_json', 'Correct order is required', 'MISSING_ANSWER')
        return

    key_labels = []
    for entry in key:
        idx = coerce_index(entry)
        if idx is not None and not (isinstance(entry, str) and entry in labels) and 0 <= idx < len(labels):
            key_labels.append(labels[idx])
        else:
            key_labels.append(option_label(entry).strip())

    if sorted(key_labels) != sorted(labels):
        result.error('correct_answer_json', 'Correct order must contain every item exactly once',
                     'ORDER_MISMATCH', 'Reorder the existing items instead of adding new ones')


def _validate_complex_question(question: Dict[str, Any], result: QuestionValidation):
    if not str(question.get('explanation') or '').strip():
        result.warn('explanation', 'Complex questions benefit from an explanation', 'NO_EXPLANATION')
    points = _numeric_points(question)
    if points is not None and points < 2:
        result.warn('points', 'Consider awarding more points for this question type', 'LOW_POINTS')


def validate_question(question: Dict[str, Any]) -> QuestionValidation:
    """Validate a single question dict in the three-field answer form"""
    result = QuestionValidation()
    _validate_basic_fields(question, result)

    qtype = question.get('question_type')
    rules = VALIDATION_RULES.get(qtype)
    if rules is None:
        return result

    if qtype in (QuestionType.MULTIPLE_CHOICE.value, QuestionType.SINGLE_CHOICE.value):
        _validate_choice(question, result, rules)
    elif qtype == QuestionType.TRUE_FALSE.value:
        _validate_true_false(question, result)
    elif qtype == QuestionType.FILL_BLANK.value:
        _validate_fill_blank(question, result)
    elif qtype == QuestionType.ESSAY.value:
        _validate_essay(question, result)
    elif qtype == QuestionType.MATCHING.value:
        _validate_matching(question, result, rules)
        _validate_complex_question(question, result)
    elif qtype == QuestionType.ORDERING.value:
        _validate_ordering(question, result, rules)
        _validate_complex_question(question, result)

    return result


def validate_quiz_form(questions: List[Dict[str, Any]]) -> QuestionValidation:
    """Validate every question plus quiz-wide consistency"""
    result = QuestionValidation()
    if not questions:
        result.error('questions', 'At least one question is required', 'NO_QUESTIONS')
        return result

    for i, question in enumerate(questions, start=1):
        result.merge(validate_question(question), prefix=f'question_{i}.')

    texts = [str(q.get('question') or '').strip().lower() for q in questions]
    duplicates = [t for t, n in Counter(filter(None, texts)).items() if n > 1]
    if duplicates:
        result.warn('questions', f'{len(duplicates)} duplicate question(s) found', 'DUPLICATE_QUESTIONS')

    types = {q.get('question_type') for q in questions}
    if len(types) == 1 and len(questions) > 5:
        result.warn('questions', 'All questions use the same type', 'SINGLE_TYPE',
                    'Mixing question types keeps the quiz engaging')

    total_points = sum((q.get('points') or 1) for q in questions
                       if isinstance(q.get('points') or 1, (int, float)))
    if total_points > 100:
        result.warn('points', f'Total points ({total_points}) exceed 100', 'HIGH_TOTAL_POINTS')

    if len(questions) > MAX_QUESTIONS_PER_QUIZ:
        result.warn('questions', f'Quiz has more than {MAX_QUESTIONS_PER_QUIZ} questions', 'LONG_QUIZ',
                    'Consider splitting into several quizzes')

    return result


def validate_quiz_settings(quiz: Dict[str, Any]) -> List[str]:
    """Validate quiz-level settings, returning error messages"""
    errors = []
    if not str(quiz.get('title') or '').strip():
        errors.append('Quiz title is required')
    if not str(quiz.get('category') or '').strip():
        errors.append('Category is required')
    if quiz.get('difficulty') not in VALID_DIFFICULTIES:
        errors.append(f"Difficulty must be one of: {', '.join(VALID_DIFFICULTIES)}")

    duration = quiz.get('duration_minutes')
    if duration is not None and (not isinstance(duration, (int, float)) or duration <= 0):
        errors.append('Duration must be greater than 0')

    passing = quiz.get('passing_score')
    if passing is not None and (not isinstance(passing, (int, float)) or not 0 <= passing <= 100):
        errors.append('Passing score must be between 0 and 100')

    max_attempts = quiz.get('max_attempts')
    if max_attempts is not None and (not isinstance(max_attempts, int) or max_attempts < 0):
        errors.append('Max attempts cannot be negative')

    return errors


def get_validation_summary(questions: List[Dict[str, Any]]) -> Dict[str, Any]:
    results = [validate_question(q) for q in questions]
    return {
        'total_questions': len(questions),
        'valid_questions': sum(1 for r in results if r.is_valid),
        'questions_with_warnings': sum(1 for r in results if r.warnings),
        'questions_with_errors': sum(1 for r in results if not r.is_valid),
        'total_errors': sum(len(r.errors) for r in results),
        'total_warnings': sum(len(r.warnings) for r in results),
    }
