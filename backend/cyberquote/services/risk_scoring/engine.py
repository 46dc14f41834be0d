"""
Risk Scoring Engine

Deterministic grading of the cyber security questionnaire. No I/O, no
shared state: the same answers and revenue always produce the same
assessment.

Scoring:
- every applicable, scored question adds 1 to max_points
- the answer adds 0, 0.5 or 1 to earned_points depending on polarity
- unanswered applicable questions earn 0 but still count
- percentage = 100 * earned / max (0 when nothing applies)
- grade by threshold: >=90 A, >=70 B, >=60 C, >=50 D, else E
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from cyberquote.services.risk_scoring.answers import (
    ContinuityLevel,
    QuestionnaireAnswers,
    YesNoPartial,
)
from cyberquote.services.risk_scoring.catalog import (
    DEFAULT_CATALOG,
    Polarity,
    Question,
    QuestionCatalog,
)
from cyberquote.services.risk_scoring.grades import (
    GRADE_RATIONALE,
    RiskGrade,
    grade_for_percentage,
    is_direct_bind_eligible,
)


Number = Union[int, float, Decimal]

CONTINUITY_POINTS: Dict[ContinuityLevel, float] = {
    ContinuityLevel.FULL: 1.0,
    ContinuityLevel.MOST_FOR_A_WEEK: 0.5,
    ContinuityLevel.MOST_FOR_A_DAY: 0.5,
    ContinuityLevel.FAILS_IMMEDIATELY: 0.0,
}


@dataclass(frozen=True)
class RiskAssessment:
    """Result of a scoring pass."""
    grade: RiskGrade
    percentage: float
    rationale: str
    earned_points: float
    max_points: int
    rule_version: str

    @property
    def direct_bind_eligible(self) -> bool:
        return is_direct_bind_eligible(self.grade)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grade": self.grade.value,
            "percentage": round(self.percentage, 1),
            "rationale": self.rationale,
            "direct_bind_eligible": self.direct_bind_eligible,
            "earned_points": self.earned_points,
            "max_points": self.max_points,
            "rule_version": self.rule_version,
        }


def points_for(question: Question, answer: Optional[Enum]) -> float:
    """Points one answer earns for one question."""
    if answer is None:
        return 0.0

    value = answer.value
    if question.polarity == Polarity.POSITIVE:
        if value == YesNoPartial.YES.value:
            return 1.0
        if value == YesNoPartial.PARTIAL.value:
            return 0.5
        return 0.0

    if question.polarity == Polarity.NEGATIVE:
        if value == YesNoPartial.NO.value:
            return 1.0
        if value == YesNoPartial.PARTIAL.value:
            return 0.5
        return 0.0

    if question.polarity == Polarity.ORDINAL:
        return CONTINUITY_POINTS.get(ContinuityLevel(value), 0.0)

    return 0.0


def score(
    answers: QuestionnaireAnswers,
    annual_revenue: Number,
    catalog: QuestionCatalog = DEFAULT_CATALOG,
) -> RiskAssessment:
    """
    Grade a validated answer set.

    Args:
        answers: Parsed questionnaire answers
        annual_revenue: Declared annual revenue (CHF); gates tier 2 / 3 questions
        catalog: Question catalog to score against

    Returns:
        RiskAssessment

    Raises:
        ValueError: If annual_revenue is negative
    """
    if annual_revenue < 0:
        raise ValueError("annual_revenue cannot be negative")

    earned_points = 0.0
    max_points = 0

    for question in catalog.scored_questions(answers, annual_revenue):
        max_points += 1
        earned_points += points_for(question, answers.get(question.id))

    percentage = 100.0 * earned_points / max_points if max_points > 0 else 0.0
    grade = grade_for_percentage(percentage)

    return RiskAssessment(
        grade=grade,
        percentage=percentage,
        rationale=GRADE_RATIONALE[grade],
        earned_points=earned_points,
        max_points=max_points,
        rule_version=catalog.version,
    )
