from __future__ import annotations

from typing import Iterable, Optional

from loanadmin.core.permissions import PermissionCode, StaffRole

ROLE_DEFINITIONS = {
    StaffRole.SYSTEM_OWNER: {
        "name": "System Owner",
        "description": "Global platform access and management",
        "hierarchy_level": 0,
        "permissions": PermissionCode.list_all(),
    },
    StaffRole.ADMIN: {
        "name": "Admin/Owner",
        "description": "Full system access and organisation management",
        "hierarchy_level": 1,
        "permissions": PermissionCode.list_all(),
    },
    StaffRole.ORGANISATION_ADMIN: {
        "name": "Organisation Admin",
        "description": "Organisation-level management",
        "hierarchy_level": 1,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.MANAGE_ORGANISATION,
                PermissionCode.MANAGE_STAFF,
                PermissionCode.MANAGE_ROLES,
                PermissionCode.VIEW_AUDIT_TRAIL,
                PermissionCode.CREATE_CUSTOMER,
                PermissionCode.VIEW_CUSTOMER,
                PermissionCode.UPDATE_CUSTOMER,
                PermissionCode.VERIFY_KYC,
                PermissionCode.CREATE_LOAN_APPLICATION,
                PermissionCode.VIEW_LOAN_APPLICATION,
                PermissionCode.APPROVE_LOAN,
                PermissionCode.REJECT_LOAN,
                PermissionCode.VIEW_LOAN_APPROVAL,
                PermissionCode.DISBURSE_LOAN,
                PermissionCode.RECORD_REPAYMENT,
                PermissionCode.VIEW_REPAYMENT,
                PermissionCode.MANAGE_PENALTIES,
                PermissionCode.VIEW_COMPLIANCE_REPORTS,
                PermissionCode.CALCULATE_ECL,
                PermissionCode.CALCULATE_BOZ_PROVISIONS,
                PermissionCode.VIEW_IFRS9_REPORTS,
            ]
        ),
    },
    StaffRole.BRANCH_MANAGER: {
        "name": "Branch Manager",
        "description": "Branch-level operations management",
        "hierarchy_level": 2,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.MANAGE_STAFF,
                PermissionCode.CREATE_CUSTOMER,
                PermissionCode.VIEW_CUSTOMER,
                PermissionCode.UPDATE_CUSTOMER,
                PermissionCode.VERIFY_KYC,
                PermissionCode.CREATE_LOAN_APPLICATION,
                PermissionCode.VIEW_LOAN_APPLICATION,
                PermissionCode.VIEW_AUDIT_TRAIL,
            ]
        ),
    },
    StaffRole.CREDIT_OFFICER: {
        "name": "Credit Officer",
        "description": "Customer onboarding and loan applications",
        "hierarchy_level": 3,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.CREATE_CUSTOMER,
                PermissionCode.VIEW_CUSTOMER,
                PermissionCode.UPDATE_CUSTOMER,
                PermissionCode.VERIFY_KYC,
                PermissionCode.CREATE_LOAN_APPLICATION,
                PermissionCode.VIEW_LOAN_APPLICATION,
            ]
        ),
    },
    StaffRole.CREDIT_MANAGER: {
        "name": "Credit Manager",
        "description": "Reviews and approves loan applications",
        "hierarchy_level": 2,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.VIEW_CUSTOMER,
                PermissionCode.VIEW_LOAN_APPLICATION,
                PermissionCode.APPROVE_LOAN,
                PermissionCode.REJECT_LOAN,
                PermissionCode.VIEW_LOAN_APPROVAL,
            ]
        ),
    },
    StaffRole.FINANCE_OFFICER: {
        "name": "Finance Officer",
        "description": "Loan disbursements and repayments",
        "hierarchy_level": 3,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.DISBURSE_LOAN,
                PermissionCode.RECORD_REPAYMENT,
                PermissionCode.VIEW_REPAYMENT,
                PermissionCode.MANAGE_PENALTIES,
            ]
        ),
    },
    StaffRole.COMPLIANCE_OFFICER: {
        "name": "Compliance Officer",
        "description": "IFRS 9 compliance and regulatory reporting",
        "hierarchy_level": 2,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.VIEW_COMPLIANCE_REPORTS,
                PermissionCode.CALCULATE_ECL,
                PermissionCode.CALCULATE_BOZ_PROVISIONS,
                PermissionCode.VIEW_IFRS9_REPORTS,
                PermissionCode.VIEW_AUDIT_TRAIL,
            ]
        ),
    },
    StaffRole.STAFF: {
        "name": "Staff",
        "description": "Read-only access to customers and applications",
        "hierarchy_level": 4,
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.VIEW_CUSTOMER,
                PermissionCode.VIEW_LOAN_APPLICATION,
            ]
        ),
    },
    StaffRole.CUSTOMER: {
        "name": "Customer",
        "description": "Self-service borrower; no staff permissions",
        "hierarchy_level": 5,
        "permissions": [],
    },
}

# Each pair: holding one permission forbids exercising the other.
SEGREGATION_OF_DUTIES = (
    (PermissionCode.CREATE_LOAN_APPLICATION, PermissionCode.APPROVE_LOAN),
    (PermissionCode.APPROVE_LOAN, PermissionCode.DISBURSE_LOAN),
)


def permissions_for_role(role: Optional[StaffRole]) -> frozenset[str]:
    if role is None:
        return frozenset()
    return frozenset(ROLE_DEFINITIONS[role]["permissions"])


def violates_segregation_of_duties(permissions: Iterable[str], action: PermissionCode | str) -> bool:
    """True when performing ``action`` conflicts with another permission held."""
    held = set(permissions)
    target = PermissionCode(action).value
    for first, second in SEGREGATION_OF_DUTIES:
        if target == first.value and second.value in held:
            return True
        if target == second.value and first.value in held:
            return True
    return False
