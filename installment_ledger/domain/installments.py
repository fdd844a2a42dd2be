"""Installment schedule generation for purchase files"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from installment_ledger.domain.exceptions import ValidationError
from installment_ledger.domain.models import (
    DEFAULT_OBLIGATION_TYPE,
    Frequency,
    InstallmentDraft,
    InstallmentStatus,
)
from installment_ledger.domain.money import ZERO, non_negative_money
from installment_ledger.domain.references import ReferenceLookup, validate_references
from installment_ledger.utils.date_utils import add_months

DEFAULT_TITLE_TEMPLATE = "Installment {n} of {count}"


def parse_frequency(frequency) -> Frequency:
    try:
        return Frequency(frequency)
    except ValueError:
        raise ValidationError(f"Unknown frequency: {frequency}", field="frequency") from None


def due_date_for(start_date: date, frequency: Frequency, index: int) -> date:
    """
    Due date of the 1-based installment `index`.

    Offsets are always taken from the start date, so an end-of-month start
    clamps per month without drifting: 2024-01-31 monthly gives 2024-02-29,
    2024-03-31, 2024-04-30, ...
    """
    if index < 1:
        raise ValidationError("Installment index must be at least 1", field="index")
    return add_months(start_date, parse_frequency(frequency).months * (index - 1))


def render_title(template: Optional[str], n: int, count: int, due_date: date) -> str:
    try:
        return (template or DEFAULT_TITLE_TEMPLATE).format(n=n, count=count, due_date=due_date.isoformat())
    except (KeyError, IndexError, ValueError) as e:
        raise ValidationError(f"Invalid title template: {e}", field="title_template") from e


def build_schedule(
    file_id: str,
    member_id: str,
    plot_id: str,
    category_id: str,
    start_date: date,
    frequency: Frequency,
    count: int,
    amount_per_installment: Decimal,
    title_template: Optional[str] = None,
    obligation_type: str = DEFAULT_OBLIGATION_TYPE,
    created_by: Optional[str] = None,
    first_installment_no: int = 1,
) -> List[InstallmentDraft]:
    """
    Compute `count` unsaved installments, no reference checks.

    Each draft starts fully unpaid: amount due = total payable = balance.
    """
    if count < 1:
        raise ValidationError("Installment count must be at least 1", field="count")
    if first_installment_no < 1:
        raise ValidationError("Installment number must be at least 1", field="first_installment_no")
    amount = non_negative_money(amount_per_installment, "amount_per_installment")
    frequency = parse_frequency(frequency)

    drafts = []
    for i in range(1, count + 1):
        due_date = due_date_for(start_date, frequency, i)
        drafts.append(
            InstallmentDraft(
                file_id=file_id,
                member_id=member_id,
                plot_id=plot_id,
                category_id=category_id,
                installment_no=first_installment_no + i - 1,
                title=render_title(title_template, i, count, due_date),
                obligation_type=obligation_type,
                due_date=due_date,
                amount_due=amount,
                late_fee_surcharge=ZERO,
                total_payable=amount,
                amount_paid=ZERO,
                balance_amount=amount,
                status=InstallmentStatus.UNPAID,
                created_by=created_by,
            )
        )

    return drafts


def generate_installment_schedule(
    lookup: ReferenceLookup,
    file_id: str,
    member_id: str,
    plot_id: str,
    category_id: str,
    start_date: date,
    frequency: Frequency,
    count: int,
    amount_per_installment: Decimal,
    title_template: Optional[str] = None,
    obligation_type: str = DEFAULT_OBLIGATION_TYPE,
    created_by: Optional[str] = None,
    first_installment_no: int = 1,
) -> List[InstallmentDraft]:
    """
    Validate references and generate a recurring schedule.

    Requirements:
    - File, member, plot exist; file belongs to this member and plot
    - Category exists and is active
    - count >= 1, amount per installment >= 0

    Args:
        lookup: Reference data source
        start_date: Due date of installment #1
        frequency: MONTHLY, QUARTERLY, HALF_YEARLY or YEARLY
        count: Number of installments
        amount_per_installment: Amount due on each installment
        title_template: Format string with {n}, {count}, {due_date}

    Returns:
        List of unsaved InstallmentDraft objects in installment order

    Example:
        12 monthly x 1000 from 2024-01-15 -> due 2024-01-15 ... 2024-12-15
    """
    # Cheap argument checks first, then the lookups
    if count < 1:
        raise ValidationError("Installment count must be at least 1", field="count")
    non_negative_money(amount_per_installment, "amount_per_installment")

    validate_references(lookup, file_id, member_id, plot_id, category_id)

    return build_schedule(
        file_id=file_id,
        member_id=member_id,
        plot_id=plot_id,
        category_id=category_id,
        start_date=start_date,
        frequency=frequency,
        count=count,
        amount_per_installment=amount_per_installment,
        title_template=title_template,
        obligation_type=obligation_type,
        created_by=created_by,
        first_installment_no=first_installment_no,
    )
