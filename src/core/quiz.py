"""
Quiz rules: 퀴즈 문항 편집 규칙 + 뷰어 채점.

불변식:
- radio: 보기 2개 이상, 정답 정확히 1개
- checkbox: 보기 4개 이상, 정답 2개 이상

편집 함수는 QuizQuestionForm을 제자리에서 수정하고
거부된 경우 False를 반환한다 (상태는 그대로).
"""

import logging
from dataclasses import dataclass, field

from src.domain.constants import (
    CHECKBOX_MIN_CORRECT,
    CHECKBOX_MIN_OPTIONS,
    QUESTION_CHECKBOX,
    QUESTION_RADIO,
    RADIO_MIN_OPTIONS,
)
from src.domain.schemas import QuizOptionForm, QuizQuestion, QuizQuestionForm

logger = logging.getLogger(__name__)


# =============================================================================
# Editor: 문항 생성/타입 전환
# =============================================================================

def new_question(order: int = 0) -> QuizQuestionForm:
    """기본 문항: radio, 보기 2개, 첫 번째가 정답."""
    return QuizQuestionForm(
        question="",
        question_type=QUESTION_RADIO,
        order=order,
        options=[
            QuizOptionForm(text="", is_correct=True, order=0),
            QuizOptionForm(text="", is_correct=False, order=1),
        ],
    )


def _renumber(question: QuizQuestionForm) -> None:
    for i, opt in enumerate(question.options):
        opt.order = i


def switch_to_radio(question: QuizQuestionForm) -> None:
    """
    radio로 전환.

    앞의 2개 보기만 유지하고 정답은 첫 번째 정답 하나만 남긴다.
    정답이 없으면 첫 보기를 정답으로.
    """
    options = question.options[:RADIO_MIN_OPTIONS]
    while len(options) < RADIO_MIN_OPTIONS:
        options.append(QuizOptionForm(text="", is_correct=False))

    first_correct = next((i for i, opt in enumerate(options) if opt.is_correct), 0)
    for i, opt in enumerate(options):
        opt.is_correct = i == first_correct

    question.question_type = QUESTION_RADIO
    question.options = options
    _renumber(question)


def switch_to_checkbox(question: QuizQuestionForm) -> None:
    """checkbox로 전환: 보기 4개까지 채우고 앞의 2개를 정답으로."""
    options = list(question.options)
    while len(options) < CHECKBOX_MIN_OPTIONS:
        options.append(QuizOptionForm(text="", is_correct=False))

    for i, opt in enumerate(options):
        opt.is_correct = i < CHECKBOX_MIN_CORRECT

    question.question_type = QUESTION_CHECKBOX
    question.options = options
    _renumber(question)


def set_question_type(question: QuizQuestionForm, question_type: str) -> None:
    if question_type == QUESTION_CHECKBOX:
        switch_to_checkbox(question)
    else:
        switch_to_radio(question)


# =============================================================================
# Editor: 정답 토글/보기 추가·삭제
# =============================================================================

def toggle_option(question: QuizQuestionForm, option_index: int) -> bool:
    """
    정답 토글.

    radio: 클릭한 보기만 정답.
    checkbox: 정답이 2개 이하일 때 정답 해제는 거부.

    Returns:
        변경 여부
    """
    if not 0 <= option_index < len(question.options):
        return False

    if question.question_type == QUESTION_RADIO:
        for i, opt in enumerate(question.options):
            opt.is_correct = i == option_index
        return True

    target = question.options[option_index]
    if target.is_correct and question.correct_count() <= CHECKBOX_MIN_CORRECT:
        return False
    target.is_correct = not target.is_correct
    return True


def min_options(question: QuizQuestionForm) -> int:
    if question.question_type == QUESTION_CHECKBOX:
        return CHECKBOX_MIN_OPTIONS
    return RADIO_MIN_OPTIONS


def add_option(question: QuizQuestionForm) -> None:
    question.options.append(
        QuizOptionForm(text="", is_correct=False, order=len(question.options))
    )


def remove_option(question: QuizQuestionForm, option_index: int) -> bool:
    """
    보기 삭제.

    최소 개수에서는 거부. 삭제로 정답 규칙이 깨지면
    앞쪽 보기를 정답으로 채워 복구한다.
    """
    if not 0 <= option_index < len(question.options):
        return False
    if len(question.options) <= min_options(question):
        return False

    question.options.pop(option_index)
    _renumber(question)

    if question.question_type == QUESTION_RADIO:
        if question.correct_count() != 1:
            for i, opt in enumerate(question.options):
                opt.is_correct = i == 0
    else:
        for opt in question.options:
            if question.correct_count() >= CHECKBOX_MIN_CORRECT:
                break
            opt.is_correct = True
    return True


def set_question_text(question: QuizQuestionForm, text: str) -> None:
    question.question = text


def set_option_text(question: QuizQuestionForm, option_index: int, text: str) -> bool:
    if not 0 <= option_index < len(question.options):
        return False
    question.options[option_index].text = text
    return True


def add_question(questions: list[QuizQuestionForm]) -> QuizQuestionForm:
    question = new_question(order=len(questions))
    questions.append(question)
    return question


def remove_question(questions: list[QuizQuestionForm], question_index: int) -> bool:
    if not 0 <= question_index < len(questions):
        return False
    questions.pop(question_index)
    for i, q in enumerate(questions):
        q.order = i
    return True


# =============================================================================
# Validation
# =============================================================================

def validate_question(question: QuizQuestionForm, qi: int, prefix: str) -> dict[str, str]:
    """
    문항 검증.

    Args:
        question: 검증할 문항
        qi: 문항 인덱스 (메시지 번호는 qi + 1)
        prefix: 에러 키 접두사 (예: "lesson_0_1_quiz")

    Returns:
        에러 키 → 메시지 (문제가 없으면 빈 dict)
    """
    errors: dict[str, str] = {}
    label = f"שאלה {qi + 1}"

    if not question.question.strip():
        errors[f"{prefix}_{qi}_question"] = f"{label}: יש להזין טקסט לשאלה"

    if question.question_type == QUESTION_RADIO:
        if len(question.options) < RADIO_MIN_OPTIONS:
            errors[f"{prefix}_{qi}_options"] = f"{label}: נדרשות לפחות 2 אפשרויות"
        if question.correct_count() != 1:
            errors[f"{prefix}_{qi}_correct"] = f"{label}: יש לבחור תשובה נכונה אחת"
    else:
        if len(question.options) < CHECKBOX_MIN_OPTIONS:
            errors[f"{prefix}_{qi}_options"] = (
                f"{label}: נדרשות לפחות 4 אפשרויות לבחירה מרובה"
            )
        if question.correct_count() < CHECKBOX_MIN_CORRECT:
            errors[f"{prefix}_{qi}_correct"] = f"{label}: יש לבחור לפחות 2 תשובות נכונות"

    for oi, opt in enumerate(question.options):
        if not opt.text.strip():
            errors[f"{prefix}_{qi}_opt_{oi}"] = f"{label}: אפשרות {oi + 1} חייבת להכיל טקסט"

    return errors


# =============================================================================
# Viewer: 답안 선택/제출
# =============================================================================

def is_answer_correct(question: QuizQuestion, selected_ids: set[str]) -> bool:
    """선택한 보기 집합이 정답 집합과 정확히 같은지."""
    return set(selected_ids) == question.correct_ids()


@dataclass
class QuizSession:
    """
    레슨 하나의 퀴즈 풀이 상태.

    제출된 문항은 이후 선택이 바뀌지 않는다.
    """
    questions: list[QuizQuestion]
    answers: dict[str, set[str]] = field(default_factory=dict)
    submitted: dict[str, bool] = field(default_factory=dict)

    def _question(self, question_id: str) -> QuizQuestion | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def select(self, question_id: str, option_id: str) -> bool:
        """
        보기 선택.

        radio는 선택을 교체, checkbox는 토글.
        """
        question = self._question(question_id)
        if question is None or question_id in self.submitted:
            return False
        if option_id not in {opt.id for opt in question.options}:
            return False

        current = self.answers.setdefault(question_id, set())
        if question.question_type == QUESTION_RADIO:
            self.answers[question_id] = {option_id}
        elif option_id in current:
            current.discard(option_id)
        else:
            current.add(option_id)
        return True

    def submit(self, question_id: str) -> bool:
        """
        문항 제출.

        Returns:
            모든 문항이 제출되었고 전부 정답이면 True (레슨 완료 트리거)
        """
        question = self._question(question_id)
        if question is None or question_id in self.submitted:
            return self.all_correct()
        if not self.answers.get(question_id):
            return False

        correct = is_answer_correct(question, self.answers[question_id])
        self.submitted[question_id] = correct
        logger.debug(f"Quiz answer submitted: question={question_id} correct={correct}")
        return self.all_correct()

    def retry(self, question_id: str) -> bool:
        """오답 문항 다시 풀기: 선택과 제출 상태 초기화."""
        if self.submitted.get(question_id) is not False:
            return False
        self.submitted.pop(question_id, None)
        self.answers[question_id] = set()
        return True

    def all_correct(self) -> bool:
        return bool(self.questions) and all(
            self.submitted.get(q.id) is True for q in self.questions
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "answers": {qid: sorted(ids) for qid, ids in self.answers.items()},
            "submitted": dict(self.submitted),
            "all_correct": self.all_correct(),
        }
