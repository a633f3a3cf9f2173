"""
Shared fixtures: in-memory stand-ins for the Postgres engines so the API
can be exercised without a database
"""

import uuid
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import main
from course_logic import CourseService
from quiz_builder import QuizBuilderStore
from quiz_logic import QuizService, QUIZ_FIELDS, USER_PROFILE_FIELDS


def _new_id() -> str:
    return str(uuid.uuid4())


class FakeQuizEngine:
    """Dict-backed replacement for QuizEngine"""

    def __init__(self):
        self.users = {}
        self.quizzes = {}
        self.questions = {}
        self.attempts = {}

    def ping(self):
        return True

    # users
    def get_user_by_email(self, email):
        for user in self.users.values():
            if user['email'].lower() == email.lower():
                return dict(user)
        return None

    def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def create_user(self, email, password_hash, name=None, role='student'):
        user = {'id': _new_id(), 'email': email, 'name': name, 'password_hash': password_hash,
                'role': role, 'avatar_url': None, 'bio': None}
        self.users[user['id']] = user
        return dict(user)

    def update_user_profile(self, user_id, updates):
        user = self.users.get(user_id)
        if not user:
            return None
        user.update({k: v for k, v in updates.items() if k in USER_PROFILE_FIELDS})
        return dict(user)

    def update_password_hash(self, user_id, password_hash):
        self.users[user_id]['password_hash'] = password_hash

    def list_users(self, search=None, role=None):
        rows = list(self.users.values())
        if search:
            rows = [u for u in rows if search.lower() in (u['email'] + (u['name'] or '')).lower()]
        if role:
            rows = [u for u in rows if u['role'] == role]
        return [{k: v for k, v in u.items() if k != 'password_hash'} for u in rows]

    def update_user_account(self, user_id, updates):
        user = self.users.get(user_id)
        if not user:
            return None
        user.update(updates)
        return dict(user)

    def count_admins(self):
        return sum(1 for u in self.users.values() if u['role'] == 'admin')

    def delete_user(self, user_id):
        return self.users.pop(user_id, None) is not None

    # quizzes
    def list_quizzes(self, published_only=True, category=None, difficulty=None, search=None):
        rows = list(self.quizzes.values())
        if published_only:
            rows = [q for q in rows if q.get('is_published')]
        if category:
            rows = [q for q in rows if q.get('category') == category]
        if difficulty:
            rows = [q for q in rows if q.get('difficulty') == difficulty]
        if search:
            rows = [q for q in rows if search.lower() in q['title'].lower()]
        return [dict(q) for q in rows]

    def get_quiz(self, quiz_id):
        quiz = self.quizzes.get(quiz_id)
        return dict(quiz) if quiz else None

    def get_quiz_questions(self, quiz_id):
        rows = [q for q in self.questions.values() if q['quiz_id'] == quiz_id]
        return [dict(q) for q in sorted(rows, key=lambda q: q['order_index'])]

    def _insert_questions(self, quiz_id, questions, start_index=0):
        for i, question in enumerate(questions):
            row = dict(question, id=_new_id(), quiz_id=quiz_id)
            row.setdefault('order_index', start_index + i)
            if row['order_index'] is None:
                row['order_index'] = start_index + i
            self.questions[row['id']] = row

    def create_quiz_with_questions(self, quiz, questions, created_by=None):
        row = {k: v for k, v in quiz.items() if k in QUIZ_FIELDS}
        row.update(id=_new_id(), created_by=created_by, total_questions=len(questions))
        row.setdefault('is_published', False)
        self.quizzes[row['id']] = row
        self._insert_questions(row['id'], questions)
        return dict(row)

    def update_quiz(self, quiz_id, updates):
        quiz = self.quizzes.get(quiz_id)
        if not quiz:
            return None
        quiz.update({k: v for k, v in updates.items() if k in QUIZ_FIELDS})
        return dict(quiz)

    def set_quiz_published(self, quiz_id, is_published):
        return self.update_quiz(quiz_id, {'is_published': is_published})

    def delete_quiz(self, quiz_id):
        return self.quizzes.pop(quiz_id, None) is not None

    def add_questions(self, quiz_id, questions):
        self._insert_questions(quiz_id, questions, len(self.get_quiz_questions(quiz_id)))
        self.quizzes[quiz_id]['total_questions'] = len(self.get_quiz_questions(quiz_id))
        return len(questions)

    def replace_questions(self, quiz_id, questions):
        for qid in [q['id'] for q in self.get_quiz_questions(quiz_id)]:
            del self.questions[qid]
        self._insert_questions(quiz_id, questions)
        self.quizzes[quiz_id]['total_questions'] = len(questions)
        return len(questions)

    def archive_quiz(self, quiz_id):
        quiz = self.quizzes.get(quiz_id)
        if not quiz:
            return None
        quiz.update(is_published=False, archived_at=datetime.now())
        return dict(quiz)

    def duplicate_quiz(self, quiz_id, created_by=None):
        source = self.quizzes.get(quiz_id)
        if not source:
            return None
        copy = dict(source, id=_new_id(), title=f"{source['title']} (Copy)", is_published=False,
                    created_by=created_by)
        self.quizzes[copy['id']] = copy
        self._insert_questions(copy['id'], [
            {k: v for k, v in q.items() if k not in ('id', 'quiz_id')} for q in self.get_quiz_questions(quiz_id)
        ])
        return dict(copy)

    # attempts
    def get_last_attempt_number(self, quiz_id, user_id):
        numbers = [a['attempt_number'] for a in self.attempts.values()
                   if a['quiz_id'] == quiz_id and a['user_id'] == user_id]
        return max(numbers, default=0)

    def insert_attempt(self, quiz_id, user_id, answers, result, time_taken_seconds, attempt_number):
        row = {
            'id': _new_id(), 'quiz_id': quiz_id, 'user_id': user_id, 'answers': answers,
            'score': result.earned_points, 'total_questions': result.total_questions,
            'percentage_score': result.percentage, 'passed': result.passed,
            'time_taken_seconds': time_taken_seconds, 'attempt_number': attempt_number,
            'completed_at': datetime.now(),
        }
        self.attempts[row['id']] = row
        return dict(row)

    def refresh_quiz_stats(self, quiz_id):
        attempts = self.get_quiz_attempts(quiz_id)
        self.quizzes[quiz_id]['attempts_count'] = len(attempts)

    def get_attempt(self, attempt_id):
        attempt = self.attempts.get(attempt_id)
        if not attempt:
            return None
        quiz = self.quizzes[attempt['quiz_id']]
        return dict(attempt, quiz_title=quiz['title'], passing_score=quiz.get('passing_score'))

    def get_user_attempts(self, user_id, limit=None, offset=0):
        rows = sorted((a for a in self.attempts.values() if a['user_id'] == user_id),
                      key=lambda a: a['completed_at'], reverse=True)
        rows = [dict(a, quiz_title=self.quizzes[a['quiz_id']]['title']) for a in rows]
        return rows[offset:offset + limit] if limit else rows[offset:]

    def count_user_attempts(self, user_id):
        return sum(1 for a in self.attempts.values() if a['user_id'] == user_id)

    def get_quiz_attempts(self, quiz_id):
        return [dict(a) for a in self.attempts.values() if a['quiz_id'] == quiz_id]


class FakeCourseEngine:
    """Dict-backed replacement for CourseEngine"""

    def __init__(self):
        self.courses = {}
        self.lessons = {}
        self.enrollments = {}
        self.progress = {}

    def list_courses(self, published_only=True, category=None, level=None, search=None):
        rows = [c for c in self.courses.values() if c.get('status') != 'archived']
        if published_only:
            rows = [c for c in rows if c.get('is_published')]
        if category:
            rows = [c for c in rows if c.get('category') == category]
        if level:
            rows = [c for c in rows if c.get('level') == level]
        if search:
            rows = [c for c in rows if search.lower() in c['title'].lower()]
        return [dict(c) for c in rows]

    def get_course(self, course_id):
        course = self.courses.get(course_id)
        return dict(course) if course else None

    def create_course(self, course):
        row = dict(course, id=_new_id(), is_published=False, status='draft', student_count=0)
        self.courses[row['id']] = row
        return dict(row)

    def update_course(self, course_id, updates):
        course = self.courses.get(course_id)
        if not course:
            return None
        course.update(updates)
        return dict(course)

    def set_course_published(self, course_id, is_published):
        return self.update_course(course_id, {
            'is_published': is_published,
            'status': 'published' if is_published else 'draft',
        })

    def archive_course(self, course_id):
        if course_id not in self.courses:
            return False
        self.courses[course_id].update(status='archived', is_published=False)
        return True

    def list_lessons(self, course_id, published_only=False):
        rows = [l for l in self.lessons.values() if l['course_id'] == course_id]
        if published_only:
            rows = [l for l in rows if l.get('is_published', True)]
        return [dict(l) for l in sorted(rows, key=lambda l: l['order_index'])]

    def add_lesson(self, course_id, lesson):
        row = dict(lesson, id=_new_id(), course_id=course_id)
        if row.get('order_index') is None:
            row['order_index'] = len(self.list_lessons(course_id))
        self.lessons[row['id']] = row
        return dict(row)

    def get_enrollment(self, course_id, user_id):
        enrollment = self.enrollments.get((course_id, user_id))
        return dict(enrollment) if enrollment else None

    def create_enrollment(self, course_id, user_id):
        if (course_id, user_id) in self.enrollments:
            return None
        row = {'id': _new_id(), 'course_id': course_id, 'user_id': user_id, 'progress': 0,
               'enrolled_at': datetime.now(), 'completed_at': None, 'last_accessed_at': None,
               'total_watch_time_minutes': 0}
        self.enrollments[(course_id, user_id)] = row
        self.courses[course_id]['student_count'] += 1
        return dict(row)

    def mark_lesson_complete(self, lesson_id, user_id, watch_time_minutes=0):
        entry = self.progress.setdefault((lesson_id, user_id), {'watch_time_minutes': 0})
        entry['watch_time_minutes'] += watch_time_minutes

    def count_completed_lessons(self, course_id, user_id):
        lessons = self.list_lessons(course_id, published_only=True)
        done = [self.progress[(l['id'], user_id)] for l in lessons if (l['id'], user_id) in self.progress]
        return {'total': len(lessons), 'completed': len(done),
                'watch_minutes': sum(p['watch_time_minutes'] for p in done)}

    def update_enrollment_progress(self, course_id, user_id, progress, watch_minutes):
        enrollment = self.enrollments.get((course_id, user_id))
        if not enrollment:
            return None
        enrollment.update(progress=progress, total_watch_time_minutes=watch_minutes,
                          last_accessed_at=datetime.now(),
                          completed_at=datetime.now() if progress >= 100 else None)
        return dict(enrollment)

    def get_user_courses(self, user_id):
        return [dict(e, title=self.courses[e['course_id']]['title'])
                for (course_id, uid), e in self.enrollments.items() if uid == user_id]

    def list_enrollments(self, course_id):
        return [dict(e) for (cid, _), e in self.enrollments.items() if cid == course_id]

    def search_enrollments(self, search=None, status='all', limit=50, offset=0):
        rows = [dict(e, course_title=self.courses[e['course_id']]['title'],
                     price=self.courses[e['course_id']].get('price', 0))
                for e in self.enrollments.values()]
        if search:
            rows = [r for r in rows if search.lower() in r['course_title'].lower()]
        if status == 'completed':
            rows = [r for r in rows if r['completed_at'] is not None]
        elif status == 'active':
            rows = [r for r in rows if r['completed_at'] is None]
        return {'rows': rows[offset:offset + limit], 'total': len(rows)}

    def enrollment_stats(self):
        rows = list(self.enrollments.values())
        completed = sum(1 for e in rows if e['completed_at'] is not None)
        return {'total_enrollments': len(rows), 'active_enrollments': len(rows) - completed,
                'completed_enrollments': completed,
                'total_revenue': float(sum(self.courses[e['course_id']].get('price', 0) for e in rows))}

    def delete_enrollment(self, enrollment_id):
        for key, enrollment in list(self.enrollments.items()):
            if enrollment['id'] == enrollment_id:
                del self.enrollments[key]
                course = self.courses[enrollment['course_id']]
                course['student_count'] = max(course['student_count'] - 1, 0)
                return True
        return False


class FakeGenerator:
    """Returns a canned draft instead of calling the model"""

    def __init__(self, draft=None, error=None):
        self.draft = draft
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.draft


@pytest.fixture
def quiz_engine():
    return FakeQuizEngine()


@pytest.fixture
def course_engine():
    return FakeCourseEngine()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(quiz_engine, course_engine, generator):
    quiz_service = QuizService()
    quiz_service.engine = quiz_engine
    course_service = CourseService()
    course_service.engine = course_engine
    store = QuizBuilderStore()

    main.app.dependency_overrides[main.get_quiz_service] = lambda: quiz_service
    main.app.dependency_overrides[main.get_course_service] = lambda: course_service
    main.app.dependency_overrides[main.get_ai_generator] = lambda: generator
    main.app.dependency_overrides[main.get_builder_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def _headers_for(user):
    token = main.create_access_token({"sub": user['id'], "email": user['email'], "role": user['role']})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student(quiz_engine):
    return quiz_engine.create_user("student@example.com", main.get_password_hash("studentpass1"),
                                   "Student", "student")


@pytest.fixture
def admin(quiz_engine):
    return quiz_engine.create_user("admin@example.com", main.get_password_hash("adminpass1"),
                                   "Admin", "admin")


@pytest.fixture
def auth_headers(student):
    return _headers_for(student)


@pytest.fixture
def admin_headers(admin):
    return _headers_for(admin)


@pytest.fixture
def published_quiz(quiz_engine):
    """A published quiz covering every auto-graded question type"""
    quiz = {
        'title': 'IELTS Reading Warm-up', 'category': 'reading', 'difficulty': 'beginner',
        'duration_minutes': 15, 'passing_score': 60, 'max_attempts': 2, 'is_published': True,
    }
    questions = [
        {'question': 'Which word is a synonym of "rapid"?', 'question_type': 'multiple_choice',
         'options': ['slow', 'fast', 'late', 'calm'], 'correct_answer': 1, 'points': 1},
        {'question': 'The Thames flows through London.', 'question_type': 'true_false',
         'options': ['True', 'False'], 'correct_answer': 0, 'points': 1},
        {'question': 'The capital of France is ___.', 'question_type': 'fill_blank',
         'options': [], 'correct_answer_text': 'Paris', 'points': 1},
        {'question': 'Match each country to its capital', 'question_type': 'matching',
         'options': [{'left': 'Japan', 'right': 'Tokyo'}, {'left': 'Kenya', 'right': 'Nairobi'}],
         'correct_answer_json': {'0': 0, '1': 1}, 'points': 2},
        {'question': 'Put the steps in order', 'question_type': 'ordering',
         'options': ['Read', 'Plan', 'Write'], 'correct_answer_json': ['Read', 'Plan', 'Write'],
         'points': 2},
    ]
    created = quiz_engine.create_quiz_with_questions(quiz, questions)
    return quiz_engine.get_quiz(created['id'])
