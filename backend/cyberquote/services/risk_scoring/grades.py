"""
Risk grades and the percentage thresholds that assign them.
"""
from enum import Enum
from typing import Dict, List, Tuple


class RiskGrade(str, Enum):
    """Ordinal cyber risk grade, A (best) to E (worst)."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


# Evaluated top-down, first match wins. E is the fallback.
GRADE_THRESHOLDS: List[Tuple[float, RiskGrade]] = [
    (90.0, RiskGrade.A),
    (70.0, RiskGrade.B),
    (60.0, RiskGrade.C),
    (50.0, RiskGrade.D),
]

DIRECT_BIND_GRADES = frozenset({RiskGrade.A, RiskGrade.B})

GRADE_RATIONALE: Dict[RiskGrade, str] = {
    RiskGrade.A: "excellent cyber hygiene (>=90%)",
    RiskGrade.B: "good cyber hygiene (70-89%)",
    RiskGrade.C: "adequate cyber hygiene (60-69%) - underwriting required",
    RiskGrade.D: "cyber hygiene needs improvement (50-59%) - underwriting required",
    RiskGrade.E: "insufficient cyber hygiene (<50%) - underwriting required",
}


def grade_for_percentage(percentage: float) -> RiskGrade:
    """Map a hygiene percentage onto a grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return RiskGrade.E


def is_direct_bind_eligible(grade: RiskGrade) -> bool:
    return grade in DIRECT_BIND_GRADES
