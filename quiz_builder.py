#!/usr/bin/env python3
"""
Quiz Builder - Server-held authoring sessions
A session walks an admin through configure -> generating -> editing ->
preview -> saving -> saved, dropping to error when generation or saving
fails. The session only tracks the draft; persistence is done by the caller.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from quiz_validation import QuestionValidation, validate_quiz_form, validate_quiz_settings


class BuilderStep(Enum):
    CONFIGURE = "configure"
    GENERATING = "generating"
    EDITING = "editing"
    PREVIEW = "preview"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


TRANSITIONS = {
    BuilderStep.CONFIGURE: {BuilderStep.GENERATING, BuilderStep.EDITING},
    BuilderStep.GENERATING: {BuilderStep.EDITING, BuilderStep.ERROR},
    BuilderStep.EDITING: {BuilderStep.PREVIEW, BuilderStep.CONFIGURE},
    BuilderStep.PREVIEW: {BuilderStep.EDITING, BuilderStep.SAVING},
    BuilderStep.SAVING: {BuilderStep.SAVED, BuilderStep.ERROR},
    BuilderStep.SAVED: set(),
    BuilderStep.ERROR: {BuilderStep.EDITING, BuilderStep.CONFIGURE},
}


class InvalidTransitionError(ValueError):
    pass


@dataclass
class QuizBuilderSession:
    session_id: str
    owner_id: str
    step: BuilderStep = BuilderStep.CONFIGURE
    settings: Dict[str, Any] = field(default_factory=dict)
    questions: List[Dict[str, Any]] = field(default_factory=list)
    validation: Optional[QuestionValidation] = None
    error: Optional[str] = None
    quiz_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def _move(self, target: BuilderStep):
        if target not in TRANSITIONS[self.step]:
            raise InvalidTransitionError(
                f"Cannot go from '{self.step.value}' to '{target.value}'"
            )
        self.step = target
        self.updated_at = datetime.now()

    def configure(self, settings: Dict[str, Any]):
        if self.step not in (BuilderStep.CONFIGURE, BuilderStep.EDITING, BuilderStep.ERROR):
            raise InvalidTransitionError(f"Settings cannot change while '{self.step.value}'")
        self.settings.update(settings)
        if self.step != BuilderStep.EDITING:
            self.step = BuilderStep.CONFIGURE
        self.updated_at = datetime.now()

    def begin_generation(self):
        self._move(BuilderStep.GENERATING)
        self.error = None

    def finish_generation(self, draft: Dict[str, Any]):
        """Load an AI draft into the editor"""
        self._move(BuilderStep.EDITING)
        for key, value in draft.items():
            if key != 'questions':
                self.settings.setdefault(key, value)
        self.questions = list(draft.get('questions') or [])

    def start_editing(self, questions: Optional[List[Dict[str, Any]]] = None):
        self._move(BuilderStep.EDITING)
        if questions is not None:
            self.questions = list(questions)
        self.error = None

    def update_questions(self, questions: List[Dict[str, Any]]):
        if self.step != BuilderStep.EDITING:
            raise InvalidTransitionError(f"Questions can only be edited in 'editing', not '{self.step.value}'")
        self.questions = list(questions)
        self.validation = None
        self.updated_at = datetime.now()

    def preview(self) -> QuestionValidation:
        if self.step != BuilderStep.PREVIEW:
            self._move(BuilderStep.PREVIEW)
        self.validation = validate_quiz_form(self.questions)
        for message in validate_quiz_settings(self.settings):
            self.validation.error('settings', message, 'INVALID_SETTINGS')
        return self.validation

    def back_to_editing(self):
        self._move(BuilderStep.EDITING)

    def begin_save(self):
        if self.step == BuilderStep.PREVIEW:
            validation = self.preview()
            if not validation.is_valid:
                raise InvalidTransitionError("Quiz has validation errors and cannot be saved")
        self._move(BuilderStep.SAVING)

    def mark_saved(self, quiz_id: str):
        self._move(BuilderStep.SAVED)
        self.quiz_id = quiz_id

    def fail(self, message: str):
        self._move(BuilderStep.ERROR)
        self.error = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'step': self.step.value,
            'settings': self.settings,
            'questions': self.questions,
            'validation': self.validation.to_dict() if self.validation else None,
            'error': self.error,
            'quiz_id': self.quiz_id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


class QuizBuilderStore:
    """In-memory session registry keyed by session id"""

    def __init__(self):
        self.sessions: Dict[str, QuizBuilderSession] = {}

    def create(self, owner_id: str, settings: Optional[Dict[str, Any]] = None) -> QuizBuilderSession:
        session = QuizBuilderSession(session_id=str(uuid.uuid4()), owner_id=owner_id)
        if settings:
            session.configure(settings)
        self.sessions[session.session_id] = session
        return session

    def get(self, session_id: str, owner_id: str) -> Optional[QuizBuilderSession]:
        session = self.sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            return None
        return session

    def discard(self, session_id: str):
        self.sessions.pop(session_id, None)
