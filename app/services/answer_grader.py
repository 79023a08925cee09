"""Pure grading rules: one response against one question's answer key.

Answer keys are a tagged variant built from the question row. Each variant has
its own grading function; `grade_answer` dispatches on the key's type. Nothing
here touches the database and nothing here raises for a bad *response*: a
missing, malformed or stale response is simply incorrect. A corrupt *key*
(authoring data that breaks the invariants) raises `AnswerKeyError`.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, Optional, Union

from app.core.constants import QuestionTypeEnum
from app.core.exceptions import AnswerKeyError


@dataclass(frozen=True)
class SingleChoiceKey:
    correct_id: str
    option_ids: FrozenSet[str]


@dataclass(frozen=True)
class MultiChoiceKey:
    correct_ids: FrozenSet[str]
    option_ids: FrozenSet[str]


@dataclass(frozen=True)
class NumericKey:
    value: Decimal
    tolerance: Decimal


@dataclass(frozen=True)
class ManualKey:
    pass


AnswerKey = Union[SingleChoiceKey, MultiChoiceKey, NumericKey, ManualKey]


@dataclass(frozen=True)
class GradeResult:
    is_correct: Optional[bool]
    awarded_points: float


@dataclass(frozen=True)
class GradingPolicy:
    negative_marking: bool = False
    negative_fraction: float = 0.25


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def build_answer_key(question) -> AnswerKey:
    """Derives the answer key from a Question row and its options."""
    question_type = QuestionTypeEnum(question.type)
    options = list(question.options or [])
    option_ids = frozenset(str(option.id) for option in options)
    correct = [option for option in options if option.is_correct]

    if question_type in (QuestionTypeEnum.MCQ_SINGLE, QuestionTypeEnum.TRUE_FALSE):
        if len(correct) != 1:
            raise AnswerKeyError(question.id, f"expected exactly one correct option, found {len(correct)}")
        return SingleChoiceKey(correct_id=str(correct[0].id), option_ids=option_ids)

    if question_type == QuestionTypeEnum.MCQ_MULTI:
        if not correct:
            raise AnswerKeyError(question.id, "no correct option")
        return MultiChoiceKey(correct_ids=frozenset(str(option.id) for option in correct), option_ids=option_ids)

    if question_type == QuestionTypeEnum.NUMBER:
        if len(correct) != 1:
            raise AnswerKeyError(question.id, f"expected one correct value, found {len(correct)}")
        value = _to_decimal(correct[0].label)
        if value is None:
            raise AnswerKeyError(question.id, f"correct value {correct[0].label!r} is not numeric")
        tolerance = _to_decimal(question.tolerance_numeric) if question.tolerance_numeric is not None else Decimal(0)
        if tolerance is None or tolerance < 0:
            raise AnswerKeyError(question.id, "tolerance must be a non-negative number")
        return NumericKey(value=value, tolerance=tolerance)

    return ManualKey()


def _selected(response: Any) -> Any:
    if not isinstance(response, dict):
        return None
    return response.get("selected")


def _grade_single(key: SingleChoiceKey, response: Any, points: float, policy: GradingPolicy,
                  manual_points: Optional[float]) -> GradeResult:
    selected = _selected(response)
    if selected is None or isinstance(selected, (list, dict, bool)) or str(selected) == "":
        return GradeResult(is_correct=False, awarded_points=0.0)

    selected_id = str(selected)
    if selected_id == key.correct_id:
        return GradeResult(is_correct=True, awarded_points=float(points))

    # Stale option ids (edited after the attempt started) score zero without penalty.
    if policy.negative_marking and selected_id in key.option_ids:
        return GradeResult(is_correct=False, awarded_points=-float(points) * policy.negative_fraction)
    return GradeResult(is_correct=False, awarded_points=0.0)


def _grade_multi(key: MultiChoiceKey, response: Any, points: float, policy: GradingPolicy,
                 manual_points: Optional[float]) -> GradeResult:
    selected = _selected(response)
    if not isinstance(selected, list) or not selected:
        return GradeResult(is_correct=False, awarded_points=0.0)
    if any(isinstance(item, (list, dict, bool)) or item is None for item in selected):
        return GradeResult(is_correct=False, awarded_points=0.0)

    if frozenset(str(item) for item in selected) == key.correct_ids:
        return GradeResult(is_correct=True, awarded_points=float(points))
    return GradeResult(is_correct=False, awarded_points=0.0)


def _grade_numeric(key: NumericKey, response: Any, points: float, policy: GradingPolicy,
                   manual_points: Optional[float]) -> GradeResult:
    value = _to_decimal(response.get("value")) if isinstance(response, dict) else None
    if value is None:
        return GradeResult(is_correct=False, awarded_points=0.0)

    if abs(value - key.value) <= key.tolerance:
        return GradeResult(is_correct=True, awarded_points=float(points))
    return GradeResult(is_correct=False, awarded_points=0.0)


def _grade_manual(key: ManualKey, response: Any, points: float, policy: GradingPolicy,
                  manual_points: Optional[float]) -> GradeResult:
    if manual_points is None:
        return GradeResult(is_correct=None, awarded_points=0.0)
    return GradeResult(is_correct=None, awarded_points=min(max(float(manual_points), 0.0), float(points)))


_GRADERS: Dict[type, Callable[..., GradeResult]] = {
    SingleChoiceKey: _grade_single,
    MultiChoiceKey: _grade_multi,
    NumericKey: _grade_numeric,
    ManualKey: _grade_manual,
}


def grade_answer(key: AnswerKey, response: Any, points: float,
                 policy: Optional[GradingPolicy] = None,
                 manual_points: Optional[float] = None) -> GradeResult:
    """Grades one response.

    `manual_points` is the instructor's award for a text answer, if one was
    given; auto-graded keys ignore it.
    """
    grader = _GRADERS[type(key)]
    return grader(key, response, points, policy or GradingPolicy(), manual_points)
