"""
Risk Scoring Module

Deterministic cyber risk grading (A-E) of the security questionnaire.
"""
from cyberquote.services.risk_scoring.answers import (
    AnswerKind,
    AnswerValidationError,
    ContinuityLevel,
    DataVolume,
    QuestionnaireAnswers,
    YesNo,
    YesNoPartial,
)
from cyberquote.services.risk_scoring.catalog import (
    DEFAULT_CATALOG,
    Condition,
    Polarity,
    Question,
    QuestionCatalog,
    RevenueTier,
)
from cyberquote.services.risk_scoring.engine import RiskAssessment, points_for, score
from cyberquote.services.risk_scoring.grades import RiskGrade, grade_for_percentage

__all__ = [
    "AnswerKind",
    "AnswerValidationError",
    "ContinuityLevel",
    "DataVolume",
    "QuestionnaireAnswers",
    "YesNo",
    "YesNoPartial",
    "DEFAULT_CATALOG",
    "Condition",
    "Polarity",
    "Question",
    "QuestionCatalog",
    "RevenueTier",
    "RiskAssessment",
    "points_for",
    "score",
    "RiskGrade",
    "grade_for_percentage",
]
