"""Reference lookup clients for files, members, plots and categories"""

import httpx
from typing import Any, Dict, Optional
from installment_ledger.domain.models import CategoryRecord, FileRecord, MemberRecord, PlotRecord
from installment_ledger.domain.exceptions import ReferenceLookupError
from installment_ledger.config import settings
from installment_ledger.infrastructure.observability.metrics import reference_lookup_failures_counter


class HttpReferenceLookup:
    """Client for the society management API that owns reference records"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url or settings.reference_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _fetch(self, path: str) -> Optional[Dict[str, Any]]:
        """
        GET a reference record.

        Returns:
            Parsed JSON body, or None on 404

        Raises:
            ReferenceLookupError: On timeout, HTTP errors, or invalid response
        """
        with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.get(path)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                reference_lookup_failures_counter.inc()
                raise ReferenceLookupError(f"Reference API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                reference_lookup_failures_counter.inc()
                raise ReferenceLookupError(f"Reference API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                reference_lookup_failures_counter.inc()
                raise ReferenceLookupError(f"Reference API unreachable: {e}") from e
            except ValueError as e:
                reference_lookup_failures_counter.inc()
                raise ReferenceLookupError(f"Invalid reference data: {e}") from e

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        data = self._fetch(f"/files/{file_id}")
        if data is None:
            return None
        try:
            return FileRecord(
                id=str(data["id"]),
                member_id=str(data["memberId"]),
                plot_id=str(data["plotId"]),
                is_deleted=bool(data.get("isDeleted", False)),
            )
        except (KeyError, TypeError) as e:
            raise ReferenceLookupError(f"Invalid file data from reference API: {e}") from e

    def get_member(self, member_id: str) -> Optional[MemberRecord]:
        data = self._fetch(f"/members/{member_id}")
        if data is None:
            return None
        try:
            return MemberRecord(
                id=str(data["id"]),
                is_active=bool(data.get("isActive", True)),
                is_deleted=bool(data.get("isDeleted", False)),
            )
        except (KeyError, TypeError) as e:
            raise ReferenceLookupError(f"Invalid member data from reference API: {e}") from e

    def get_plot(self, plot_id: str) -> Optional[PlotRecord]:
        data = self._fetch(f"/plots/{plot_id}")
        if data is None:
            return None
        try:
            return PlotRecord(id=str(data["id"]), is_deleted=bool(data.get("isDeleted", False)))
        except (KeyError, TypeError) as e:
            raise ReferenceLookupError(f"Invalid plot data from reference API: {e}") from e

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        data = self._fetch(f"/installment-categories/{category_id}")
        if data is None:
            return None
        try:
            return CategoryRecord(
                id=str(data["id"]),
                name=str(data["name"]),
                is_active=bool(data.get("isActive", True)),
            )
        except (KeyError, TypeError) as e:
            raise ReferenceLookupError(f"Invalid category data from reference API: {e}") from e


class InMemoryReferenceLookup:
    """Reference records held in process, for tests and local runs"""

    def __init__(self):
        self.files: Dict[str, FileRecord] = {}
        self.members: Dict[str, MemberRecord] = {}
        self.plots: Dict[str, PlotRecord] = {}
        self.categories: Dict[str, CategoryRecord] = {}

    def add_file(self, record: FileRecord) -> FileRecord:
        self.files[record.id] = record
        return record

    def add_member(self, record: MemberRecord) -> MemberRecord:
        self.members[record.id] = record
        return record

    def add_plot(self, record: PlotRecord) -> PlotRecord:
        self.plots[record.id] = record
        return record

    def add_category(self, record: CategoryRecord) -> CategoryRecord:
        self.categories[record.id] = record
        return record

    def get_file(self, file_id: str) -> Optional[FileRecord]:
        return self.files.get(file_id)

    def get_member(self, member_id: str) -> Optional[MemberRecord]:
        return self.members.get(member_id)

    def get_plot(self, plot_id: str) -> Optional[PlotRecord]:
        return self.plots.get(plot_id)

    def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        return self.categories.get(category_id)
