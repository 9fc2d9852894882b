from enum import Enum
from typing import Iterable, List, Optional


class PermissionCode(str, Enum):
    # Administration
    MANAGE_ORGANISATION = "manage_organisation"
    MANAGE_STAFF = "manage_staff"
    MANAGE_ROLES = "manage_roles"
    VIEW_AUDIT_TRAIL = "view_audit_trail"
    MANAGE_SUBSCRIPTION = "manage_subscription"

    # Credit officer
    CREATE_CUSTOMER = "create_customer"
    VIEW_CUSTOMER = "view_customer"
    UPDATE_CUSTOMER = "update_customer"
    VERIFY_KYC = "verify_kyc"
    CREATE_LOAN_APPLICATION = "create_loan_application"
    VIEW_LOAN_APPLICATION = "view_loan_application"

    # Credit manager
    APPROVE_LOAN = "approve_loan"
    REJECT_LOAN = "reject_loan"
    VIEW_LOAN_APPROVAL = "view_loan_approval"

    # Finance officer
    DISBURSE_LOAN = "disburse_loan"
    POST_REPAYMENT = "post_repayment"
    RECORD_REPAYMENT = "record_repayment"
    VIEW_REPAYMENT = "view_repayment"
    MANAGE_PENALTIES = "manage_penalties"

    # Compliance officer
    VIEW_COMPLIANCE_REPORTS = "view_compliance_reports"
    CALCULATE_ECL = "calculate_ecl"
    CALCULATE_BOZ_PROVISIONS = "calculate_boz_provisions"
    VIEW_IFRS9_REPORTS = "view_ifrs9_reports"

    @classmethod
    def list_all(cls) -> List[str]:
        return [code.value for code in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List[str]:
        """Return unique permission codes that are valid members."""
        seen = set()
        normalized: list[str] = []
        for value in values:
            try:
                code = cls(value)
            except ValueError:
                continue
            if code.value not in seen:
                seen.add(code.value)
                normalized.append(code.value)
        return normalized


class StaffRole(str, Enum):
    SYSTEM_OWNER = "SYSTEM_OWNER"
    ADMIN = "ADMIN"
    ORGANISATION_ADMIN = "ORGANISATION_ADMIN"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    CREDIT_OFFICER = "CREDIT_OFFICER"
    CREDIT_MANAGER = "CREDIT_MANAGER"
    FINANCE_OFFICER = "FINANCE_OFFICER"
    COMPLIANCE_OFFICER = "COMPLIANCE_OFFICER"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["StaffRole"]:
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


# Roles allowed to switch off organisation scoping
SUPER_ADMIN_ROLES = frozenset({StaffRole.SYSTEM_OWNER})
