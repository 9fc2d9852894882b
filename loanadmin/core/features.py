from __future__ import annotations

from enum import Enum
from typing import Iterable, List


class FeatureKey(str, Enum):
    BASIC_REPORTING = "basic_reporting"
    ADVANCED_REPORTING = "advanced_reporting"
    CUSTOMER_MANAGEMENT = "customer_management"
    LOAN_MANAGEMENT = "loan_management"
    IFRS9_COMPLIANCE = "ifrs9_compliance"
    BOZ_PROVISIONS = "boz_provisions"
    API_ACCESS = "api_access"
    CUSTOM_INTEGRATIONS = "custom_integrations"
    BULK_DISBURSEMENT = "bulk_disbursement"
    CREDIT_COMMITTEE = "credit_committee"

    @classmethod
    def list_all(cls) -> List[str]:
        return [key.value for key in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List["FeatureKey"]:
        """Known keys only, in first-seen order."""
        seen: set[FeatureKey] = set()
        normalized: list[FeatureKey] = []
        for value in values:
            try:
                key = cls(value.strip().lower())
            except (ValueError, AttributeError):
                continue
            if key not in seen:
                seen.add(key)
                normalized.append(key)
        return normalized


def parse_features(raw: str | Iterable[str] | None) -> frozenset[FeatureKey]:
    """Parse a plan's feature field (comma separated or a list); unknown keys are dropped."""
    if not raw:
        return frozenset()
    values = raw.split(",") if isinstance(raw, str) else raw
    return frozenset(FeatureKey.normalize(values))
