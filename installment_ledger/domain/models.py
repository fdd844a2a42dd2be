"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from installment_ledger.domain.money import ZERO


class InstallmentStatus(str, Enum):
    """Stored lifecycle status of an installment"""

    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({InstallmentStatus.PAID, InstallmentStatus.CANCELLED})
OPEN_STATUSES = frozenset(
    {InstallmentStatus.UNPAID, InstallmentStatus.PARTIALLY_PAID, InstallmentStatus.OVERDUE}
)


class Frequency(str, Enum):
    """Schedule frequency with its step in months"""

    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"

    @property
    def months(self) -> int:
        return {"MONTHLY": 1, "QUARTERLY": 3, "HALF_YEARLY": 6, "YEARLY": 12}[self.value]


class PaymentMode(str, Enum):
    CASH = "cash"
    CHEQUE = "cheque"
    ONLINE = "online"
    OTHER = "other"


DEFAULT_OBLIGATION_TYPE = "principal"


@dataclass(frozen=True)
class FileRecord:
    """Purchase file tying a member to a plot"""

    id: str
    member_id: str
    plot_id: str
    is_deleted: bool = False


@dataclass(frozen=True)
class MemberRecord:
    id: str
    is_active: bool = True
    is_deleted: bool = False


@dataclass(frozen=True)
class PlotRecord:
    id: str
    is_deleted: bool = False


@dataclass(frozen=True)
class CategoryRecord:
    """Obligation category (down payment, maintenance charge, ...)"""

    id: str
    name: str
    is_active: bool = True


@dataclass
class InstallmentDraft:
    """Unsaved installment produced by the schedule generator"""

    file_id: str
    member_id: str
    plot_id: str
    category_id: str
    installment_no: int
    title: str
    due_date: date
    amount_due: Decimal
    obligation_type: str = DEFAULT_OBLIGATION_TYPE
    late_fee_surcharge: Decimal = ZERO
    total_payable: Decimal = ZERO
    amount_paid: Decimal = ZERO
    balance_amount: Decimal = ZERO
    status: InstallmentStatus = InstallmentStatus.UNPAID
    created_by: Optional[str] = None


@dataclass
class LedgerFilter:
    """Optional filters shared by listings and reports"""

    member_id: Optional[str] = None
    file_id: Optional[str] = None
    plot_id: Optional[str] = None
    category_id: Optional[str] = None
    date_from: Optional[date] = None  # inclusive, on due date
    date_to: Optional[date] = None  # inclusive, on due date
    status: Optional[InstallmentStatus] = None  # effective status


@dataclass
class Totals:
    """Running count and money totals for one report bucket"""

    count: int = 0
    total_payable: Decimal = ZERO
    amount_paid: Decimal = ZERO
    balance_amount: Decimal = ZERO

    def add(self, entry) -> None:
        self.count += 1
        self.total_payable += entry.total_payable
        self.amount_paid += entry.amount_paid
        self.balance_amount += entry.balance_amount


@dataclass
class MemberSummary:
    member_id: str
    totals: Totals
    by_status: Dict[str, Totals]
    by_category: Dict[str, Totals]
    category_names: Dict[str, str]
    by_month: Dict[str, Totals]  # "YYYY-MM" of due date


@dataclass
class PaymentRecord:
    """Payment event as shown in reports"""

    installment_id: str
    member_id: str
    amount: Decimal
    payment_mode: str
    paid_date: date
    transaction_ref_no: Optional[str]
    recorded_at: datetime


@dataclass
class TopPayer:
    member_id: str
    amount_paid: Decimal


@dataclass
class DashboardSnapshot:
    as_of: date
    total_outstanding: Decimal
    collected_today: Decimal
    due_today: Decimal
    total_overdue: Decimal
    overdue_count: int
    recent_payments: List[PaymentRecord] = field(default_factory=list)
    upcoming_dues: List = field(default_factory=list)
    top_payers: List[TopPayer] = field(default_factory=list)


@dataclass
class PeriodReport:
    date_from: date
    date_to: date
    entries: List
    totals: Totals
    by_day: Dict[date, Totals]
    by_category: Dict[str, Totals]
    category_names: Dict[str, str]
    by_status: Dict[str, Totals]


@dataclass
class SweepResult:
    """Outcome of a periodic maintenance sweep"""

    examined: int
    updated: int
    amount: Decimal = ZERO
