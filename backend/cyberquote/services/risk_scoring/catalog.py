"""
Cyber security question catalog.

The catalog is a declarative, immutable description of every question:
its answer kind, which answer reduces risk, the revenue tier it belongs to
and an optional parent condition. It is built once at import and handed
to the scoring function explicitly.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from cyberquote.services.risk_scoring.answers import AnswerKind, QuestionnaireAnswers, YesNo


Number = Union[int, float, Decimal]


class Polarity(str, Enum):
    POSITIVE = "positive"  # "yes" reduces risk
    NEGATIVE = "negative"  # "no" reduces risk
    ORDINAL = "ordinal"    # graded continuity levels
    NONE = "none"          # informational, never scored


class RevenueTier(str, Enum):
    BASE = "base"
    TIER_2 = "tier_2"
    TIER_3 = "tier_3"


# Declared revenue must be strictly greater than the threshold.
TIER_REVENUE_THRESHOLDS: Mapping[RevenueTier, int] = MappingProxyType({
    RevenueTier.BASE: 0,
    RevenueTier.TIER_2: 5_000_000,
    RevenueTier.TIER_3: 10_000_000,
})


def tier_applies(tier: RevenueTier, annual_revenue: Number) -> bool:
    if tier == RevenueTier.BASE:
        return True
    return annual_revenue > TIER_REVENUE_THRESHOLDS[tier]


@dataclass(frozen=True)
class Condition:
    """Question only applies when `question_id` was answered `answer`."""
    question_id: str
    answer: YesNo = YesNo.YES


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    kind: AnswerKind
    polarity: Polarity
    tier: RevenueTier = RevenueTier.BASE
    condition: Optional[Condition] = None

    @property
    def scored(self) -> bool:
        return self.polarity != Polarity.NONE


@dataclass(frozen=True)
class QuestionCatalog:
    version: str
    questions: Tuple[Question, ...]
    _index: Mapping[str, Question] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        index: Dict[str, Question] = {}
        for question in self.questions:
            if question.id in index:
                raise ValueError(f"Duplicate question id: {question.id}")
            index[question.id] = question
        for question in self.questions:
            if question.condition and question.condition.question_id not in index:
                raise ValueError(
                    f"Question {question.id} depends on unknown question {question.condition.question_id}"
                )
        object.__setattr__(self, "_index", MappingProxyType(index))

    def get(self, question_id: str) -> Optional[Question]:
        return self._index.get(question_id)

    def __iter__(self) -> Iterator[Question]:
        return iter(self.questions)

    def __len__(self) -> int:
        return len(self.questions)

    def is_applicable(self, question: Question, answers: QuestionnaireAnswers, annual_revenue: Number) -> bool:
        """Tier gate plus parent condition, the parent itself being applicable."""
        if not tier_applies(question.tier, annual_revenue):
            return False
        if question.condition is None:
            return True
        parent = self._index[question.condition.question_id]
        if not self.is_applicable(parent, answers, annual_revenue):
            return False
        return answers.get(parent.id) == question.condition.answer

    def applicable_questions(self, answers: QuestionnaireAnswers, annual_revenue: Number) -> List[Question]:
        return [q for q in self.questions if self.is_applicable(q, answers, annual_revenue)]

    def scored_questions(self, answers: QuestionnaireAnswers, annual_revenue: Number) -> List[Question]:
        return [q for q in self.applicable_questions(answers, annual_revenue) if q.scored]


_INCIDENTS = Condition("had_cyber_incidents")
_OT = Condition("uses_industrial_control_systems")

B, T, C, V = AnswerKind.BINARY, AnswerKind.TERNARY, AnswerKind.CONTINUITY, AnswerKind.DATA_VOLUME
POS, NEG, ORD, INFO = Polarity.POSITIVE, Polarity.NEGATIVE, Polarity.ORDINAL, Polarity.NONE
T2, T3 = RevenueTier.TIER_2, RevenueTier.TIER_3

DEFAULT_CATALOG = QuestionCatalog(
    version="v1.0",
    questions=(
        # Base questions, every company
        Question("had_cyber_incidents", "Cyber incidents in the last three years?", B, NEG),
        Question("multiple_incidents", "More than one incident?", T, NEG, condition=_INCIDENTS),
        Question("incident_downtime_72h", "Did an incident cause more than 72h of downtime?", T, NEG, condition=_INCIDENTS),
        Question("incident_financial_loss", "Did an incident cause financial loss?", T, NEG, condition=_INCIDENTS),
        Question("incident_liability_claims", "Did an incident lead to liability claims?", T, NEG, condition=_INCIDENTS),
        Question(
            "business_continuity_after_it_failure",
            "How long can operations continue after a failure of internal IT?",
            C, ORD, condition=_INCIDENTS,
        ),
        Question("personal_data_count", "Number of personal data records held", V, INFO),
        Question("medical_data_count", "Number of medical data records held", V, INFO),
        Question("credit_card_data_count", "Number of payment card records held", V, INFO),
        Question("has_end_of_life_systems", "Are end-of-life systems in use?", T, NEG),

        # Annual revenue > 5M
        Question("has_mfa_remote_access", "MFA for all remote access?", T, POS, T2),
        Question("has_it_emergency_plan", "Documented IT emergency plan?", T, POS, T2),
        Question("has_weekly_backups", "At least weekly backups?", T, POS, T2),
        Question("has_encrypted_backups", "Are backups encrypted?", T, POS, T2),
        Question("has_offline_backups", "Offline or immutable backup copies?", T, POS, T2),
        Question("uses_industrial_control_systems", "Are OT / industrial control systems in use?", B, INFO, T2),
        Question("has_ot_mfa_remote_access", "MFA for remote access to OT?", T, POS, T2, _OT),
        Question("has_ot_firewall_separation", "Firewall separation between IT and OT?", T, POS, T2, _OT),
        Question("has_email_security_solution", "E-mail security gateway in place?", T, POS, T2),
        Question("has_automatic_updates", "Automatic updates enabled?", T, POS, T2),
        Question("has_antivirus_software", "Antivirus / EDR on all endpoints?", T, POS, T2),
        Question("has_strong_password_policies", "Strong password policy enforced?", T, POS, T2),
        Question("has_annual_security_training", "Annual security awareness training?", T, POS, T2),

        # Annual revenue > 10M
        Question(
            "business_continuity_external_it",
            "How long can operations continue after a failure of external IT providers?",
            C, ORD, T3,
        ),
        Question("uses_cloud_services", "Are cloud services in use?", B, INFO, T3),
        Question("has_outsourced_processes", "Are business processes outsourced?", B, INFO, T3),
        Question("uses_removable_media", "Is removable media in use?", T, NEG, T3),
        Question("uses_separate_admin_accounts", "Separate accounts for administrative work?", T, POS, T3),
        Question("has_isolated_backup_access", "Backup access isolated from the domain?", T, POS, T3),
        Question("has_unique_password_policy", "Unique passwords per system enforced?", T, POS, T3),
        Question("has_firewall_ids_ips", "Firewall with IDS / IPS?", T, POS, T3),
        Question("has_regular_patch_management", "Regular patch management?", T, POS, T3),
        Question("has_critical_patch_management", "Critical patches applied within days?", T, POS, T3),
        Question("has_phishing_simulations", "Regular phishing simulations?", T, POS, T3),
        Question("has_security_operation_center", "24/7 security operation center?", T, POS, T3),
        Question("has_ot_inventory", "Complete OT asset inventory?", T, POS, T3, _OT),
        Question("has_ot_site_separation", "OT networks separated between sites?", T, POS, T3, _OT),
        Question("has_ot_internet_separation", "OT separated from the internet?", T, POS, T3, _OT),
        Question("has_ot_vulnerability_scans", "Regular OT vulnerability scans?", T, POS, T3, _OT),
        Question("has_ot_regular_backups", "Regular OT backups?", T, POS, T3, _OT),
        Question("has_pci_certification", "PCI DSS certified?", T, POS, T3),
        Question("protects_medical_data_gdpr", "Medical data protected per GDPR / revDSG?", T, POS, T3),
        Question("protects_biometric_data", "Biometric data specially protected?", T, POS, T3),
    ),
)

# Shorthands only used to declare the catalog above
del B, T, C, V, POS, NEG, ORD, INFO, T2, T3
