#!/usr/bin/env python3
"""
Dashboard statistics for the student home page
Pure aggregation over enrollment and quiz attempt rows
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from quiz_scoring import attempt_percentage


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
        except ValueError:
            return None
    return None


def calculate_streak(activity_days: Iterable[date], today: date) -> int:
    """Consecutive days with activity, ending today or yesterday"""
    days = set(activity_days)
    if not days:
        return 0

    current = today if today in days else today - timedelta(days=1)
    streak = 0
    while current in days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def recent_quizzes(attempts: List[Dict[str, Any]], limit: int = 5) -> List[Dict[str, Any]]:
    completed = [a for a in attempts if a.get('completed_at')]
    completed.sort(key=lambda a: str(a['completed_at']), reverse=True)
    return [{
        'attempt_id': a.get('id'),
        'quiz_id': a.get('quiz_id'),
        'quiz_title': a.get('quiz_title'),
        'score': attempt_percentage(a.get('score'), a.get('total_questions'), a.get('percentage_score')),
        'passed': a.get('passed'),
        'completed_at': a['completed_at'],
    } for a in completed[:limit]]


def recent_courses(enrollments: List[Dict[str, Any]], limit: int = 5) -> List[Dict[str, Any]]:
    ordered = sorted(enrollments,
                     key=lambda e: str(e.get('last_accessed_at') or e.get('enrolled_at') or ''),
                     reverse=True)
    return [{
        'course_id': e.get('course_id'),
        'title': e.get('title'),
        'progress': e.get('progress') or 0,
        'last_accessed_at': e.get('last_accessed_at'),
    } for e in ordered[:limit]]


def build_dashboard_stats(enrollments: List[Dict[str, Any]],
                          attempts: List[Dict[str, Any]],
                          today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    completed_attempts = [a for a in attempts if a.get('completed_at')]

    percentages = [
        attempt_percentage(a.get('score'), a.get('total_questions'), a.get('percentage_score'))
        for a in completed_attempts
    ]
    average_score = round(sum(percentages) / len(percentages)) if percentages else 0

    watch_minutes = sum(e.get('total_watch_time_minutes') or 0 for e in enrollments)
    activity_days = filter(None, (_as_date(a['completed_at']) for a in completed_attempts))

    return {
        'total_courses': len(enrollments),
        'completed_courses': sum(1 for e in enrollments if (e.get('progress') or 0) >= 100),
        'total_quizzes': len(completed_attempts),
        'average_score': average_score,
        'study_hours': round(watch_minutes / 60, 1),
        'streak': calculate_streak(activity_days, today),
        'recent_courses': recent_courses(enrollments),
        'recent_quizzes': recent_quizzes(completed_attempts),
    }
