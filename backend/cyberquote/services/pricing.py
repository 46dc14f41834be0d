"""
Coverage tiers and the fixed annual price list.

All amounts are integer minor currency units (Rappen). Premiums are never
derived from risk data here: a tier maps to exactly one price.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple


class CoverageTier(str, Enum):
    BASIC = "BASIC"
    OPTIMUM = "OPTIMUM"
    PREMIUM = "PREMIUM"


@dataclass(frozen=True)
class CoveragePackage:
    """A sellable coverage package."""
    tier: CoverageTier
    price: int
    coverages: Tuple[str, ...]
    first_party_sum: int
    liability_sum: int
    legal_protection_sum: int
    crime_sum: int
    deductible: int
    waiting_period: str

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict copy stored on a bound policy."""
        data = asdict(self)
        data["tier"] = self.tier.value
        data["coverages"] = list(self.coverages)
        return data


PRICE_LIST: Mapping[CoverageTier, CoveragePackage] = MappingProxyType({
    CoverageTier.BASIC: CoveragePackage(
        tier=CoverageTier.BASIC,
        price=250_000,
        coverages=(
            "Data and system restoration",
            "Crisis management",
            "Cyber liability",
            "Cyber legal protection",
        ),
        first_party_sum=10_000_000,
        liability_sum=100_000_000,
        legal_protection_sum=5_000_000,
        crime_sum=0,
        deductible=500_000,
        waiting_period="n/a",
    ),
    CoverageTier.OPTIMUM: CoveragePackage(
        tier=CoverageTier.OPTIMUM,
        price=420_000,
        coverages=(
            "Data and system restoration",
            "Crisis management",
            "Cyber liability",
            "Cyber legal protection",
            "Business interruption",
        ),
        first_party_sum=25_000_000,
        liability_sum=200_000_000,
        legal_protection_sum=5_000_000,
        crime_sum=0,
        deductible=250_000,
        waiting_period="48 hours",
    ),
    CoverageTier.PREMIUM: CoveragePackage(
        tier=CoverageTier.PREMIUM,
        price=680_000,
        coverages=(
            "Data and system restoration",
            "Crisis management",
            "Cyber liability",
            "Cyber legal protection",
            "Business interruption",
            "Cyber theft",
            "Cyber fraud",
        ),
        first_party_sum=50_000_000,
        liability_sum=500_000_000,
        legal_protection_sum=5_000_000,
        crime_sum=25_000_000,
        deductible=0,
        waiting_period="24 hours",
    ),
})


def package_for(tier: CoverageTier, price_list: Mapping[CoverageTier, CoveragePackage] = PRICE_LIST) -> CoveragePackage:
    return price_list[tier]


def format_chf(amount: int) -> str:
    """Render Rappen as a CHF amount, e.g. 450000 -> 'CHF 4500.00'."""
    chf = (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"CHF {chf}"
