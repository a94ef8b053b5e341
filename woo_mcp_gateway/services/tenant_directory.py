"""In-memory tenant directory, loaded once at startup."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError

from woo_mcp_gateway.infra.error_handler import TenantConfigError
from woo_mcp_gateway.models.tenant import TenantRecord

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(List[TenantRecord])


class TenantDirectory:
    """Read-only mapping from tenant id to upstream credentials.

    Built once and shared by every request without locking. Lookups are exact
    and case-sensitive.
    """

    def __init__(self, records: Iterable[TenantRecord]):
        index: Dict[str, TenantRecord] = {}
        for record in records:
            if record.tenant_id in index:
                raise TenantConfigError(f"Duplicate tenant id in configuration: {record.tenant_id}")
            index[record.tenant_id] = record
        self._records = index

    @classmethod
    def from_records(cls, raw_records: Any) -> "TenantDirectory":
        """
        Validate raw (already decoded) tenant entries and build the directory.

        Raises:
            TenantConfigError: If the entries are not a non-empty list of valid records
        """
        if not isinstance(raw_records, list):
            raise TenantConfigError("Tenant configuration must be a JSON list of tenant records")
        if not raw_records:
            raise TenantConfigError("Tenant configuration is empty")

        try:
            records = _records_adapter.validate_python(raw_records)
        except ValidationError as e:
            # Only report locations and messages; inputs may contain secrets
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise TenantConfigError(f"Invalid tenant record(s): {problems}") from e

        directory = cls(records)
        logger.info("Tenant directory loaded", extra={"tenant_count": len(directory)})
        return directory

    @classmethod
    def from_json(cls, blob: str) -> "TenantDirectory":
        """
        Parse a serialized tenant list.

        Raises:
            TenantConfigError: If the blob is not valid JSON or holds invalid records
        """
        try:
            raw_records = json.loads(blob)
        except (TypeError, json.JSONDecodeError) as e:
            raise TenantConfigError(f"Tenant configuration is not valid JSON: {e}") from e
        return cls.from_records(raw_records)

    def resolve(self, tenant_id: str) -> Optional[TenantRecord]:
        """Return the tenant's record, or None when the id is not configured."""
        return self._records.get(tenant_id)

    def tenant_ids(self) -> List[str]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._records
