"""Read-only reference data the ledger checks against"""

from typing import Optional, Protocol

from installment_ledger.domain.exceptions import NotFoundError, ReferentialMismatchError, ValidationError
from installment_ledger.domain.models import CategoryRecord, FileRecord, MemberRecord, PlotRecord


class ReferenceLookup(Protocol):
    """Lookup of purchase files, members, plots and obligation categories"""

    def get_file(self, file_id: str) -> Optional[FileRecord]: ...

    def get_member(self, member_id: str) -> Optional[MemberRecord]: ...

    def get_plot(self, plot_id: str) -> Optional[PlotRecord]: ...

    def get_category(self, category_id: str) -> Optional[CategoryRecord]: ...


def require_member(lookup: ReferenceLookup, member_id: str) -> MemberRecord:
    member = lookup.get_member(member_id)
    if member is None or member.is_deleted:
        raise NotFoundError(f"Member {member_id} not found", entity="member", id=member_id)
    return member


def require_category(lookup: ReferenceLookup, category_id: str) -> CategoryRecord:
    category = lookup.get_category(category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", entity="category", id=category_id)
    return category


def validate_references(
    lookup: ReferenceLookup,
    file_id: str,
    member_id: str,
    plot_id: str,
    category_id: str,
) -> CategoryRecord:
    """
    Check that file, member, plot and category exist and belong together.

    Raises:
        NotFoundError: Any record is missing or soft-deleted
        ValidationError: Member or category is inactive
        ReferentialMismatchError: File is not for this member/plot
    """
    file = lookup.get_file(file_id)
    if file is None or file.is_deleted:
        raise NotFoundError(f"File {file_id} not found", entity="file", id=file_id)

    member = require_member(lookup, member_id)
    if not member.is_active:
        raise ValidationError(f"Member {member_id} is not active", field="member_id")

    plot = lookup.get_plot(plot_id)
    if plot is None or plot.is_deleted:
        raise NotFoundError(f"Plot {plot_id} not found", entity="plot", id=plot_id)

    if file.plot_id != plot_id:
        raise ReferentialMismatchError(
            f"File {file_id} is not for plot {plot_id}",
            file_id=file_id,
            expected_plot_id=file.plot_id,
        )
    if file.member_id != member_id:
        raise ReferentialMismatchError(
            f"File {file_id} does not belong to member {member_id}",
            file_id=file_id,
            expected_member_id=file.member_id,
        )

    category = require_category(lookup, category_id)
    if not category.is_active:
        raise ValidationError(f"Category {category_id} is not active", field="category_id")

    return category
