from loanadmin.models.org import Organisation
from loanadmin.models.staff_member import StaffMember
from loanadmin.models.subscription_plan import SubscriptionPlan
from loanadmin.models.verification_record import VerificationRecord

__all__ = [
    "Organisation",
    "StaffMember",
    "SubscriptionPlan",
    "VerificationRecord",
]
