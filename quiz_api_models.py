#!/usr/bin/env python3
"""
API Models - Request and response schemas for the Acadex REST API
"""

from __future__ import annotations
from typing import List, Dict, Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field
from enum import Enum

# === Enumerations ===

class QuestionTypeEnum(str, Enum):
    """Question types supported by the scoring engine"""
    MULTIPLE_CHOICE = "multiple_choice"
    SINGLE_CHOICE = "single_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"
    MATCHING = "matching"
    ORDERING = "ordering"

class DifficultyEnum(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class QuestionDifficultyEnum(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class UserRoleEnum(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

class BulkQuizActionEnum(str, Enum):
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    DELETE = "delete"
    DUPLICATE = "duplicate"
    ARCHIVE = "archive"
    EXPORT = "export"

class EnrollmentStatusEnum(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

# === Auth & Settings Models ===

class UserRegister(BaseModel):
    email: str = Field(..., min_length=3, description="Login email")
    password: str = Field(..., min_length=8)
    name: Optional[str] = None

class UserLogin(BaseModel):
    email: str
    password: str

class UserProfile(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str = "student"
    avatar_url: Optional[str] = None
    bio: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    user: UserProfile

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

class AdminUserUpdate(BaseModel):
    """Full user record as edited by an admin"""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3)
    role: UserRoleEnum

# === Quiz Authoring Models ===

class QuestionInput(BaseModel):
    """A question in the three-field answer form"""
    question: str = Field(..., description="Question prompt")
    question_type: QuestionTypeEnum = QuestionTypeEnum.MULTIPLE_CHOICE
    options: List[Any] = Field(default_factory=list, description="Choices, matching pairs or ordering items")
    correct_answer: Optional[int] = Field(None, description="Option index for choice and true/false questions")
    correct_answer_text: Optional[str] = Field(None, description="Expected text for fill-in-the-blank, sample answer for essays")
    correct_answer_json: Optional[Any] = Field(None, description="Matching map or ordering sequence")
    explanation: Optional[str] = None
    points: int = 1
    difficulty_level: QuestionDifficultyEnum = QuestionDifficultyEnum.MEDIUM
    partial_credit: bool = False
    order_index: Optional[int] = None

class QuizSettings(BaseModel):
    title: str
    description: Optional[str] = None
    category: str
    difficulty: DifficultyEnum = DifficultyEnum.BEGINNER
    duration_minutes: int = Field(15, gt=0)
    passing_score: int = Field(70, ge=0, le=100)
    max_attempts: int = Field(0, ge=0, description="0 means unlimited")
    is_published: bool = False
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    shuffle_questions: bool = False
    shuffle_options: bool = False
    reading_passage: Optional[str] = None
    passage_title: Optional[str] = None
    image_url: Optional[str] = None

class QuizCreateRequest(QuizSettings):
    questions: List[QuestionInput] = Field(default_factory=list)

class QuizUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[DifficultyEnum] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=0)
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    reading_passage: Optional[str] = None
    passage_title: Optional[str] = None
    image_url: Optional[str] = None

class QuestionsReplaceRequest(BaseModel):
    questions: List[QuestionInput]

class PublishRequest(BaseModel):
    is_published: bool

class BulkQuizActionRequest(BaseModel):
    action: BulkQuizActionEnum
    quiz_ids: List[str] = Field(..., min_length=1, max_length=50)

class QuizGenerateRequest(BaseModel):
    topic: str = Field(..., min_length=3, max_length=200)
    subject: str = Field(..., min_length=2, max_length=100)
    question_count: int = Field(10, ge=3, le=25)
    difficulty: DifficultyEnum = DifficultyEnum.INTERMEDIATE
    language: str = "english"
    explanation_language: str = "english"
    question_types: List[QuestionTypeEnum] = Field(
        default_factory=lambda: [QuestionTypeEnum.MULTIPLE_CHOICE, QuestionTypeEnum.TRUE_FALSE,
                                 QuestionTypeEnum.FILL_BLANK]
    )
    custom_prompt: Optional[str] = None

class BuilderCreateRequest(BaseModel):
    settings: Dict[str, Any] = Field(default_factory=dict)
    questions: Optional[List[QuestionInput]] = Field(None, description="Start editing directly with these questions")

# === Quiz Taking Models ===

class QuizSubmissionRequest(BaseModel):
    answers: Any = Field(..., description="Answers keyed by question id")
    time_taken: Any = Field(0, description="Seconds spent on the attempt")

class SubmissionResult(BaseModel):
    attempt_id: str
    attempt_number: int
    score: float
    total_points: float
    correct_answers: int
    total_questions: int
    percentage: float
    passed: bool
    pending_manual_grading: int = 0
    time_taken_seconds: int

class AttemptReviewQuestion(BaseModel):
    question_id: str
    question: str
    question_type: str
    options: List[Any] = Field(default_factory=list)
    user_answer: Optional[Any] = None
    user_answer_display: str
    correct_answer_display: str
    is_correct: bool
    points_earned: float
    points_possible: float
    requires_manual_grading: bool = False
    explanation: Optional[str] = None

class AttemptReview(BaseModel):
    attempt_id: str
    quiz_id: str
    quiz_title: str
    attempt_number: int
    score: Optional[float] = None
    percentage: Optional[float] = None
    passed: Optional[bool] = None
    time_taken_seconds: Optional[int] = None
    completed_at: Optional[datetime] = None
    questions: List[AttemptReviewQuestion]

# === Course Models ===

class CourseCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    instructor_name: Optional[str] = None
    category: Optional[str] = None
    level: DifficultyEnum = DifficultyEnum.BEGINNER
    price: float = Field(0, ge=0)
    duration: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    discount_percentage: int = Field(0, ge=0, le=100)
    is_free: bool = False

class CourseUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    instructor_name: Optional[str] = None
    category: Optional[str] = None
    level: Optional[DifficultyEnum] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[str] = None
    image_url: Optional[str] = None
    tags: Optional[List[str]] = None
    learning_objectives: Optional[List[str]] = None
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    is_free: Optional[bool] = None

class LessonCreateRequest(BaseModel):
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: int = Field(0, ge=0)
    order_index: Optional[int] = None
    is_published: bool = True
    quiz_id: Optional[str] = None

class LessonCompleteRequest(BaseModel):
    watch_time_minutes: int = Field(0, ge=0)

class AdminEnrollmentRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)

# === Dashboard Models ===

class RecentCourse(BaseModel):
    course_id: str
    title: Optional[str] = None
    progress: int = 0
    last_accessed_at: Optional[datetime] = None

class RecentQuiz(BaseModel):
    attempt_id: Optional[str] = None
    quiz_id: Optional[str] = None
    quiz_title: Optional[str] = None
    score: int
    passed: Optional[bool] = None
    completed_at: datetime

class DashboardResponse(BaseModel):
    total_courses: int
    completed_courses: int
    total_quizzes: int
    average_score: int
    study_hours: float
    streak: int
    recent_courses: List[RecentCourse]
    recent_quizzes: List[RecentQuiz]

# === CSV Import Models ===

class CSVUploadResponse(BaseModel):
    upload_id: str
    is_valid: bool
    can_import: bool
    validation_summary: Dict[str, Any]
    validation_report: str

class CSVImportResponse(BaseModel):
    success: bool
    upload_id: str
    import_results: Dict[str, Any]
    validation_summary: Dict[str, Any]
    error: Optional[str] = None

# === Error Models ===

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    message: str
    details: Optional[Any] = None


# Resolve postponed annotations
TokenResponse.model_rebuild()
AttemptReview.model_rebuild()
DashboardResponse.model_rebuild()
