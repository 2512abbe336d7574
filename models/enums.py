from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# PROFILE ROLE
# -----------------------------------------------------
class UserRole(BaseStrEnum):
    syndic = "syndic"
    guard = "guard"
    resident = "resident"
    admin = "admin"


# -----------------------------------------------------
# REVIEW WORKFLOWS (registrations, syndic documents)
# -----------------------------------------------------
class ReviewStatus(BaseStrEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class DeletionRequestStatus(BaseStrEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"


# -----------------------------------------------------
# FEES
# -----------------------------------------------------
class FeeType(BaseStrEnum):
    one_time = "one_time"
    fine = "fine"
    special = "special"
    deposit = "deposit"
    utility = "utility"


class FeeStatus(BaseStrEnum):
    unpaid = "unpaid"
    paid = "paid"
    cancelled = "cancelled"


class CoveragePeriodType(BaseStrEnum):
    """Unit of a recurring fee rule's coverage period."""

    week = "week"
    month = "month"
    year = "year"


class ReminderType(BaseStrEnum):
    before_due = "before_due"
    on_due = "on_due"
    overdue = "overdue"


# -----------------------------------------------------
# PAYMENTS
# -----------------------------------------------------
class PaymentType(BaseStrEnum):
    contribution = "contribution"
    fee = "fee"
    fine = "fine"
    deposit = "deposit"
    refund = "refund"


class PaymentMethod(BaseStrEnum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    check = "check"
    card = "card"
    mobile_money = "mobile_money"


class PaymentStatus(BaseStrEnum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    cancelled = "cancelled"


# -----------------------------------------------------
# EXPENSES
# -----------------------------------------------------
class ExpenseStatus(BaseStrEnum):
    draft = "draft"
    approved = "approved"
    paid = "paid"
    cancelled = "cancelled"


class TransactionType(BaseStrEnum):
    income = "income"
    expense = "expense"
    transfer = "transfer"
    adjustment = "adjustment"


# -----------------------------------------------------
# CONTRIBUTIONS
# -----------------------------------------------------
class PeriodType(BaseStrEnum):
    monthly = "monthly"
    quarterly = "quarterly"
    semi_annual = "semi_annual"
    annual = "annual"


class ContributionStatus(BaseStrEnum):
    pending = "pending"
    paid = "paid"
    partial = "partial"
    overdue = "overdue"
    cancelled = "cancelled"


# -----------------------------------------------------
# INCIDENTS
# -----------------------------------------------------
class IncidentStatus(BaseStrEnum):
    open = "open"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"


# -----------------------------------------------------
# SYNDIC REPLACEMENT
# -----------------------------------------------------
class AccessCodeAction(BaseStrEnum):
    delete_account = "delete_account"
    change_role = "change_role"
