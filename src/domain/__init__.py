"""Domain layer: constants, errors and schemas."""

from .errors import ErrorCodes, FormValidationError, PortalError
from .schemas import (
    ChapterForm,
    CourseForm,
    CourseView,
    LessonForm,
    QuizOptionForm,
    QuizQuestionForm,
)

__all__ = [
    "PortalError",
    "FormValidationError",
    "ErrorCodes",
    "CourseForm",
    "ChapterForm",
    "LessonForm",
    "QuizQuestionForm",
    "QuizOptionForm",
    "CourseView",
]
