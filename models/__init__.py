# -------------------------
# Enums
# -------------------------
from .enums import (
    UserRole,
    ReviewStatus,
    FeeType,
    FeeStatus,
    CoveragePeriodType,
    PaymentType,
    PaymentMethod,
    PaymentStatus,
    ExpenseStatus,
    TransactionType,
    PeriodType,
    ContributionStatus,
    IncidentStatus,
    AccessCodeAction,
)

# -------------------------
# Residence / Resident Models
# -------------------------
from .residence import (
    ResidenceBase,
    ResidenceCreate,
    AdminResidenceCreate,
    ResidenceUpdate,
)
from .resident import ResidentCreate, ResidentUpdate, ProfileUpdate
from .registration import RegistrationSubmit, RegistrationReject

# -------------------------
# Money
# -------------------------
from .fee import (
    FeeCreate,
    FeeUpdate,
    BulkFeeCreate,
    RecurringFeeCreate,
    RecurringFeeUpdate,
    MarkFeePaid,
    MarkFeesPaid,
)
from .payment import (
    PaymentSubmit,
    CashPaymentCreate,
    PaymentReject,
    Allocation,
    PaymentAllocate,
)
from .expense import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpensePay,
    ExpenseReject,
    ExpenseCategoryCreate,
    ExpenseCategoryUpdate,
)
from .contribution import (
    ContributionPlanCreate,
    ContributionPlanUpdate,
    ContributionGenerate,
    ContributionUpdate,
    ManualContribution,
)
from .financial import CloseMonth

# -------------------------
# Accounts / Admin / Billing
# -------------------------
from .account import ReplacementCodeCreate, AccessCodeRedeem, DeletionRequestCreate
from .admin import AdminLogin, DocumentApprove, ReasonPayload, DeletionRequestApprove
from .billing import CheckoutRequest, SubscriptionUpdateRequest, RefundRequest
from .incident import IncidentCreate, IncidentUpdate
