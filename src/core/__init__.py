"""
Core layer: 화면 상태 규칙.

I/O 없는 순수 로직 (storage, images 제외) → 단위 테스트 대상.

역할:
- editor_state/quiz: 강의 편집기 리듀서, 폼 검증
- progress: 뷰어 진행률, 자동 완료 추적
- validation/permissions: 계정·커뮤니티 폼, 역할 규칙
- storage: 드래프트, 사용자별 로컬 저장소
"""

from .editor_state import apply_operation, first_error_anchor, validate_course_form
from .progress import AutoCompleteTracker, calculate_progress, chapter_completion
from .quiz import QuizSession, validate_question
from .storage import DraftStore, LocalStore, atomic_write_json

__all__ = [
    # editor_state
    "apply_operation",
    "validate_course_form",
    "first_error_anchor",
    # quiz
    "QuizSession",
    "validate_question",
    # progress
    "AutoCompleteTracker",
    "calculate_progress",
    "chapter_completion",
    # storage
    "atomic_write_json",
    "LocalStore",
    "DraftStore",
]
