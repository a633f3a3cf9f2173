#!/usr/bin/env python3
"""
AI Quiz Generator - Drafts quizzes with Gemini
Builds the prompts, repairs the loosely formatted JSON the model returns,
normalizes it and converts it into an editable quiz draft using the
three-field answer system.
"""

import json
import logging
import os
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from google import genai

from quiz_scoring import QuestionType, coerce_index

load_dotenv()

logger = logging.getLogger(__name__)

GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')

MIN_QUESTIONS = 3
MAX_QUESTIONS = 25
TOPIC_LENGTH = (3, 200)
SUBJECT_LENGTH = (2, 100)
DIFFICULTIES = ('beginner', 'intermediate', 'advanced')
CATEGORIES = [
    'Grammar', 'Vocabulary', 'Pronunciation', 'Speaking', 'Listening', 'Reading',
    'Writing', 'Business English', 'Test Preparation', 'Literature', 'Conversation', 'Other',
]
DEFAULT_QUESTION_TYPES = ['multiple_choice', 'true_false', 'fill_blank']


class AIGenerationError(ValueError):
    pass


@dataclass
class QuizGenerationRequest:
    topic: str
    subject: str
    question_count: int = 10
    difficulty: str = 'intermediate'
    language: str = 'english'
    explanation_language: str = 'english'
    question_types: List[str] = field(default_factory=lambda: list(DEFAULT_QUESTION_TYPES))
    custom_prompt: Optional[str] = None

    def validate(self) -> List[str]:
        errors = []
        topic = (self.topic or '').strip()
        subject = (self.subject or '').strip()
        if not TOPIC_LENGTH[0] <= len(topic) <= TOPIC_LENGTH[1]:
            errors.append(f'Topic must be between {TOPIC_LENGTH[0]} and {TOPIC_LENGTH[1]} characters')
        if not SUBJECT_LENGTH[0] <= len(subject) <= SUBJECT_LENGTH[1]:
            errors.append(f'Subject must be between {SUBJECT_LENGTH[0]} and {SUBJECT_LENGTH[1]} characters')
        if not MIN_QUESTIONS <= self.question_count <= MAX_QUESTIONS:
            errors.append(f'Question count must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}')
        if self.difficulty not in DIFFICULTIES:
            errors.append(f"Difficulty must be one of: {', '.join(DIFFICULTIES)}")
        if not self.question_types:
            errors.append('At least one question type is required')
        unknown = [t for t in self.question_types if t not in QUESTION_EXAMPLES]
        if unknown:
            errors.append(f"Unsupported question types: {', '.join(unknown)}")
        return errors

    @property
    def duration_minutes(self) -> int:
        return max(self.question_count * 2, 15)


QUESTION_EXAMPLES = {
    'multiple_choice': {
        "question": "What is the process by which plants make food?",
        "question_type": "multiple_choice",
        "options": ["Photosynthesis", "Respiration", "Transpiration", "Germination"],
        "correct_answer": 0,
        "explanation": "Photosynthesis is the process where plants use sunlight, water, and carbon dioxide to produce glucose and oxygen.",
    },
    'single_choice': {
        "question": "Which word is a synonym of 'rapid'?",
        "question_type": "single_choice",
        "options": ["Slow", "Quick", "Heavy", "Late"],
        "correct_answer": 1,
        "explanation": "'Rapid' and 'quick' both describe something that happens at high speed.",
    },
    'true_false': {
        "question": "The sun is a star.",
        "question_type": "true_false",
        "options": ["True", "False"],
        "correct_answer": 0,
        "explanation": "The sun is classified as a star, a yellow dwarf that provides light and heat to our solar system.",
    },
    'fill_blank': {
        "question": "The capital of France is ___.",
        "question_type": "fill_blank",
        "options": [],
        "correct_answer": 0,
        "correct_answer_text": "Paris",
        "explanation": "Paris has been the capital and largest city of France since the 12th century.",
    },
    'essay': {
        "question": "Explain the importance of biodiversity in ecosystems.",
        "question_type": "essay",
        "options": [],
        "correct_answer": 0,
        "correct_answer_text": "Biodiversity ensures ecosystem stability, provides resources, supports food webs, and increases resilience to environmental changes.",
        "explanation": "A complete answer covers ecosystem stability, food web complexity, resource availability and adaptation.",
    },
    'matching': {
        "question": "Match each planet with its characteristic:",
        "question_type": "matching",
        "options": [
            {"left": "Mars", "right": "Red planet"},
            {"left": "Jupiter", "right": "Largest planet"},
            {"left": "Saturn", "right": "Has rings"},
        ],
        "correct_answer": [0, 1, 2],
        "explanation": "Mars is red due to iron oxide, Jupiter is the largest planet and Saturn is famous for its rings.",
    },
    'ordering': {
        "question": "Put these events in chronological order:",
        "question_type": "ordering",
        "options": ["World War I", "Industrial Revolution", "Renaissance", "World War II"],
        "correct_answer": [2, 1, 0, 3],
        "explanation": "Renaissance (14th-17th century), Industrial Revolution (18th-19th century), World War I (1914-1918), World War II (1939-1945).",
    },
}


def build_system_prompt(request: QuizGenerationRequest) -> str:
    return f"""You are a helpful educational content creator. Create a quiz about "{request.topic}" for students learning {request.subject}.

Instructions:
- Create {request.question_count} questions at {request.difficulty} level
- Make questions clear and educational
- Include helpful explanations for each answer
- Use question types from: {', '.join(request.question_types)}
- Return only valid JSON

Answer formats:
- Multiple choice: correct_answer as option index
- True/False: correct_answer as 0 (True) or 1 (False)
- Fill in blank: correct_answer as 0, correct_answer_text as the answer
- Essay: correct_answer as 0, correct_answer_text as a sample answer"""


def build_content_prompt(request: QuizGenerationRequest) -> str:
    if request.custom_prompt and request.custom_prompt.strip():
        logger.info("Using custom prompt instead of the generated one")
        return request.custom_prompt.strip()

    types = request.question_types
    examples = ",\n".join(
        json.dumps(QUESTION_EXAMPLES[t], indent=2, ensure_ascii=False)
        for t in types if t in QUESTION_EXAMPLES
    )
    skeleton = json.dumps({
        "title": f"Quiz: {request.topic}",
        "description": f"Test your knowledge of {request.topic}",
        "category": request.subject,
        "difficulty": request.difficulty,
        "duration_minutes": request.duration_minutes,
        "questions": [],
    }, indent=2, ensure_ascii=False)

    return f"""Create a {request.difficulty} level quiz about "{request.topic}" in the subject of {request.subject}.

Generate exactly {request.question_count} questions using ONLY these question types: {', '.join(types)}.
Every question must be one of: {' OR '.join(types)}.

LANGUAGE REQUIREMENTS:
- Write questions in {request.language}
- Write ALL explanations in {request.explanation_language}

QUESTION TYPE FORMATS:
{examples}

Return ONLY this JSON structure with the questions array filled in:
{skeleton}

Requirements:
- Exactly {request.question_count} questions
- For multiple_choice: correct_answer is an option index, 4 options
- For true_false: correct_answer is 0 or 1, options ["True", "False"]
- For fill_blank and essay: correct_answer is 0, correct_answer_text holds the answer
- For matching: options are [{{"left": "...", "right": "..."}}], correct_answer lists the right index for each left item
- For ordering: correct_answer lists option indices in the correct order
- Every question has an explanation
- No markdown, no code fences, no trailing commas"""


def _looks_like_quiz(value: Any) -> bool:
    if isinstance(value, dict):
        return any(k in value for k in ('questions', 'quiz', 'quiz_title'))
    if isinstance(value, list):
        return bool(value) and all(isinstance(q, dict) and ('question' in q or 'question_type' in q) for q in value)
    return False


def extract_json_content(content: str) -> Optional[str]:
    """Strip code fences and prose around the JSON payload

    Prose may itself contain brackets, so every candidate start is tried in
    order and the first one that decodes to a quiz shape wins. Responses
    that never decode cleanly fall through to the truncation repair.
    """
    clean = re.sub(r'```(?:json)?\s*|\s*```', '', (content or '').strip())
    logger.info(f"Raw AI response: {len(content or '')} chars")

    decoder = json.JSONDecoder()
    for match in re.finditer(r'[\[{]', clean):
        try:
            value, end = decoder.raw_decode(clean, match.start())
        except json.JSONDecodeError:
            continue
        if _looks_like_quiz(value):
            return clean[match.start():end]

    questions_key = clean.find('"questions"')
    if questions_key != -1:
        first = clean.rfind('{', 0, questions_key)
    else:
        first = clean.find('{')
        list_start = clean.find('[')
        if list_start != -1 and (first == -1 or list_start < first):
            last = clean.rfind(']')
            if last > list_start:
                return clean[list_start:last + 1]
    if first == -1:
        logger.error("No JSON object found in AI response")
        return None

    last = clean.rfind('}')
    if last <= first or _is_truncated(clean[first:]):
        repaired = repair_truncated_json(clean[first:])
        if repaired is None:
            if last <= first:
                logger.error("Cannot repair truncated AI response")
                return None
        else:
            return repaired
    return clean[first:last + 1]


def _is_truncated(text: str) -> bool:
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in '{[':
            depth += 1
        elif ch in '}]':
            depth -= 1
    return depth > 0


def repair_truncated_json(text: str) -> Optional[str]:
    """Cut a truncated response back to its last complete question

    Only responses with a "questions" array can be repaired; everything after
    the last question object that closed cleanly is dropped.
    """
    start = text.find('"questions"')
    if start == -1:
        return None
    array_start = text.find('[', start)
    if array_start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    last_complete = -1
    for i in range(array_start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                last_complete = i
        elif ch == ']' and depth == 0:
            break

    if last_complete == -1:
        return None
    logger.warning("Repaired truncated AI response at the last complete question")
    return text[:last_complete + 1] + ']}'


def fix_common_json_issues(text: str) -> str:
    fixed = re.sub(r',(\s*[}\]])', r'\1', text)
    fixed = re.sub(r'}(\s*){', r'},\1{', fixed)
    fixed = re.sub(r'](\s*)\[', r'],\1[', fixed)

    # close whatever is still open, innermost first
    stack = []
    in_string = False
    escaped = False
    for ch in fixed:
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in '{[':
            stack.append('}' if ch == '{' else ']')
        elif ch in '}]' and stack:
            stack.pop()
    if in_string:
        fixed += '"'
    if stack:
        logger.warning(f"Adding {len(stack)} missing closing brackets to AI response")
        fixed += ''.join(reversed(stack))
    return fixed


def _normalize_structure(raw: Any, request: QuizGenerationRequest) -> Optional[Dict[str, Any]]:
    default_description = f"A {request.difficulty} level quiz about {request.topic}"
    if isinstance(raw, list):
        quiz = {'title': request.topic, 'description': default_description, 'questions': raw}
    elif not isinstance(raw, dict):
        return None
    elif raw.get('quiz_title') and raw.get('questions'):
        quiz = {'title': raw['quiz_title'], 'description': raw.get('quiz_description', ''),
                'questions': raw['questions']}
    elif isinstance(raw.get('quiz'), list):
        quiz = {'title': request.topic, 'description': default_description, 'questions': raw['quiz']}
    elif raw.get('title') and raw.get('questions'):
        quiz = dict(raw)
    elif raw.get('questions'):
        quiz = {'title': request.topic, 'description': default_description, 'questions': raw['questions']}
    else:
        logger.error(f"Unrecognized AI quiz structure with keys: {list(raw.keys())}")
        return None

    if not isinstance(quiz.get('questions'), list):
        return None

    quiz['questions'] = [
        dict(q,
             question=q.get('question') or q.get('question_text') or q.get('text'),
             options=q.get('options') or [])
        for q in quiz['questions'] if isinstance(q, dict)
    ]
    return quiz


def _check_question(q: Dict[str, Any], number: int) -> bool:
    qtype = q.get('question_type')
    answer = q.get('correct_answer')
    is_index = isinstance(answer, int) and not isinstance(answer, bool)

    if qtype in ('multiple_choice', 'single_choice'):
        if len(q['options']) < 2 or not is_index or not 0 <= answer < len(q['options']):
            logger.error(f"Question {number}: choice question needs options and a valid correct_answer")
            return False
    elif qtype == 'true_false':
        q['options'] = ['True', 'False']
        if answer not in (0, 1) or not is_index:
            logger.error(f"Question {number}: true/false correct_answer must be 0 or 1")
            return False
    elif qtype in ('fill_blank', 'essay'):
        if not isinstance(q.get('correct_answer_text'), str) or not q['correct_answer_text'].strip():
            logger.error(f"Question {number}: {qtype} needs correct_answer_text")
            return False
        q['options'] = []
        q['correct_answer'] = 0
    elif qtype == 'matching':
        if not all(isinstance(o, dict) and o.get('left') and o.get('right') for o in q['options']):
            logger.error(f"Question {number}: matching needs left/right pairs")
            return False
        if not isinstance(answer, (list, dict)):
            logger.error(f"Question {number}: matching needs correct_answer as an array")
            return False
    elif qtype == 'ordering':
        if len(q['options']) < 2 or not isinstance(answer, list):
            logger.error(f"Question {number}: ordering needs items and correct_answer as an array")
            return False
    else:
        logger.error(f"Question {number}: unsupported question type '{qtype}'")
        return False
    return True


def parse_ai_response(content: str, request: QuizGenerationRequest) -> Optional[Dict[str, Any]]:
    """Parse and validate a model response; None when it cannot be used"""
    clean = extract_json_content(content)
    if clean is None:
        return None
    try:
        raw = json.loads(fix_common_json_issues(clean))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse AI response JSON: {e}")
        return None

    quiz = _normalize_structure(raw, request)
    if quiz is None or not quiz['questions']:
        return None

    if len(quiz['questions']) != request.question_count:
        logger.warning(f"Expected {request.question_count} questions, got {len(quiz['questions'])}")

    for number, q in enumerate(quiz['questions'], start=1):
        if not q.get('question') or not q.get('question_type'):
            logger.error(f"Question {number} is missing its text or type")
            return None
        if q['question_type'] not in request.question_types:
            logger.error(f"Question {number} has type '{q['question_type']}' which was not requested")
            return None
        if not _check_question(q, number):
            return None

    quiz.setdefault('difficulty', request.difficulty)
    quiz['category'] = quiz.get('category') or request.subject
    quiz['duration_minutes'] = quiz.get('duration_minutes') or request.question_count * 2
    return quiz


def convert_to_quiz_draft(ai_quiz: Dict[str, Any], request: QuizGenerationRequest) -> Dict[str, Any]:
    """Turn a parsed AI quiz into an unpublished, editable draft"""
    questions = []
    for index, q in enumerate(ai_quiz['questions']):
        qtype = q['question_type']
        if qtype == QuestionType.SINGLE_CHOICE.value:
            qtype = QuestionType.MULTIPLE_CHOICE.value

        question = {
            'id': f"temp_{uuid.uuid4()}",
            'question': q['question'],
            'question_type': qtype,
            'options': q.get('options') or [],
            'correct_answer': 0,
            'correct_answer_text': None,
            'correct_answer_json': None,
            'explanation': q.get('explanation') or '',
            'points': coerce_index(q.get('points')) or 1,
            'order_index': index,
            'difficulty_level': q.get('difficulty_level') or 'medium',
        }
        answer = q.get('correct_answer')
        if qtype in ('multiple_choice', 'true_false'):
            question['correct_answer'] = answer if isinstance(answer, int) and not isinstance(answer, bool) else 0
        elif qtype in ('fill_blank', 'essay'):
            question['correct_answer_text'] = q.get('correct_answer_text') or str(answer or '')
        else:
            question['correct_answer_json'] = answer if isinstance(answer, (list, dict)) else []
        questions.append(question)

    return {
        'title': ai_quiz.get('title') or f"Quiz: {request.topic}",
        'description': ai_quiz.get('description') or f"Test your knowledge of {request.topic}",
        'category': ai_quiz.get('category') or request.subject,
        'difficulty': request.difficulty,
        'duration_minutes': request.duration_minutes,
        'is_published': False,
        'passing_score': 70,
        'max_attempts': 0,
        'questions': questions,
    }


class AIQuizGenerator:
    """Gemini-backed quiz drafting"""

    def __init__(self, api_key: Optional[str] = None, model: str = GEMINI_MODEL):
        self.api_key = api_key or os.getenv('GEMINI_API_KEY') or os.getenv('GOOGLE_API_KEY')
        self.model = model
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise AIGenerationError("AI generation is not configured: set GEMINI_API_KEY")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate(self, request: QuizGenerationRequest) -> Dict[str, Any]:
        errors = request.validate()
        if errors:
            raise ValueError('; '.join(errors))

        prompt = f"{build_system_prompt(request)}\n\n{build_content_prompt(request)}"
        logger.info(f"Generating {request.question_count} questions on '{request.topic}' with {self.model}")
        try:
            response = self.client.models.generate_content(model=self.model, contents=prompt)
        except AIGenerationError:
            raise
        except Exception as e:
            logger.error(f"Gemini request failed: {e}")
            raise AIGenerationError(f"AI service request failed: {e}")

        parsed = parse_ai_response(response.text or '', request)
        if parsed is None:
            raise AIGenerationError("AI response could not be parsed into a valid quiz")
        return convert_to_quiz_draft(parsed, request)
