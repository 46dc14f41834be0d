"""
Questionnaire answer vocabulary and the validated answer set.

Each question accepts values from exactly one closed vocabulary. Raw intake
payloads are parsed against the catalog at the boundary; anything outside
the vocabulary is rejected instead of silently scoring zero.
"""
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Type


class AnswerKind(str, Enum):
    BINARY = "binary"            # yes / no
    TERNARY = "ternary"          # yes / no / partial
    CONTINUITY = "continuity"    # four-level business continuity ordinal
    DATA_VOLUME = "data_volume"  # bucketed record count


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"


class YesNoPartial(str, Enum):
    YES = "yes"
    NO = "no"
    PARTIAL = "partial"


class ContinuityLevel(str, Enum):
    """How long operations survive an IT outage."""
    FULL = "full"
    MOST_FOR_A_WEEK = "most_for_a_week"
    MOST_FOR_A_DAY = "most_for_a_day"
    FAILS_IMMEDIATELY = "fails_immediately"


class DataVolume(str, Enum):
    NONE = "none"
    UP_TO_10K = "up_to_10k"
    UP_TO_100K = "up_to_100k"
    UP_TO_1M = "up_to_1m"
    OVER_1M = "over_1m"


VOCABULARY: Mapping[AnswerKind, Type[Enum]] = MappingProxyType({
    AnswerKind.BINARY: YesNo,
    AnswerKind.TERNARY: YesNoPartial,
    AnswerKind.CONTINUITY: ContinuityLevel,
    AnswerKind.DATA_VOLUME: DataVolume,
})


class AnswerValidationError(ValueError):
    """Raised when a raw answer payload does not fit the catalog."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        detail = "; ".join(f"{qid}: {msg}" for qid, msg in sorted(errors.items()))
        super().__init__(f"Invalid questionnaire answers: {detail}")


def _coerce(kind: AnswerKind, value: Any) -> Enum:
    vocabulary = VOCABULARY[kind]
    if isinstance(value, vocabulary):
        return value
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        raise ValueError(f"expected one of {[v.value for v in vocabulary]}")
    try:
        return vocabulary(value.strip().lower())
    except ValueError:
        raise ValueError(f"expected one of {[v.value for v in vocabulary]}, got '{value}'")


class QuestionnaireAnswers:
    """Immutable, validated mapping of question id to answer value."""

    __slots__ = ("_answers",)

    def __init__(self, answers: Optional[Mapping[str, Enum]] = None):
        self._answers = MappingProxyType(dict(answers or {}))

    @classmethod
    def parse(cls, raw: Mapping[str, Any], catalog) -> "QuestionnaireAnswers":
        """
        Validate a raw payload against a question catalog.

        Missing keys, None and empty strings mean "unanswered". Unknown
        question ids and out-of-vocabulary values are collected and raised
        together as AnswerValidationError.
        """
        errors: Dict[str, str] = {}
        parsed: Dict[str, Enum] = {}

        for qid, value in (raw or {}).items():
            question = catalog.get(qid)
            if question is None:
                errors[qid] = "unknown question"
                continue
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            try:
                parsed[qid] = _coerce(question.kind, value)
            except ValueError as e:
                errors[qid] = str(e)

        if errors:
            raise AnswerValidationError(errors)
        return cls(parsed)

    def get(self, question_id: str) -> Optional[Enum]:
        return self._answers.get(question_id)

    def is_answered(self, question_id: str) -> bool:
        return question_id in self._answers

    def to_dict(self) -> Dict[str, str]:
        """JSON-friendly snapshot."""
        return {qid: answer.value for qid, answer in self._answers.items()}

    def __len__(self) -> int:
        return len(self._answers)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuestionnaireAnswers):
            return NotImplemented
        return dict(self._answers) == dict(other._answers)

    def __hash__(self) -> int:
        return hash(frozenset(self._answers.items()))

    def __repr__(self) -> str:
        return f"<QuestionnaireAnswers {len(self._answers)} answered>"
