from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from finrecon.models.config_models import FiscalConfig
from finrecon.models.entities import Client, ProductLine
from finrecon.models.upload import FinancialDataRecord, UploadBatch, UploadStatus, UploadType

"""Repository boundary used by the engine.

The parsing, matching and aggregation code never touches storage directly;
it goes through these interfaces. Two adapters exist: the in-memory one
below (tests, dry runs, mock mode) and the PostgreSQL one in
finrecon/db/postgres.py.
"""

__all__ = [
    "UploadPersistenceError",
    "ClientRepository",
    "ProductRepository",
    "UploadRepository",
    "FiscalConfigRepository",
    "Repositories",
    "InMemoryClientRepository",
    "InMemoryProductRepository",
    "InMemoryUploadRepository",
    "InMemoryFiscalConfigRepository",
    "in_memory_repositories",
]


class UploadPersistenceError(Exception):
    """A save failed and was rolled back; safe to retry."""


class ClientRepository(ABC):
    @abstractmethod
    def list(self, tenant_id: str) -> list[Client]: ...


class ProductRepository(ABC):
    @abstractmethod
    def list(self) -> list[ProductLine]: ...


class UploadRepository(ABC):
    @abstractmethod
    def save(self, batch: UploadBatch, records: list[FinancialDataRecord]) -> str:
        """Atomically write the batch header and upsert its records."""

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> list[UploadBatch]: ...

    @abstractmethod
    def delete_by_id(self, upload_id: str, tenant_id: str) -> int:
        """Delete an upload and its records; returns deleted record count."""

    @abstractmethod
    def find_records(
        self, tenant_id: str, upload_type: UploadType, financial_year: str
    ) -> list[FinancialDataRecord]: ...


class FiscalConfigRepository(ABC):
    @abstractmethod
    def get(self, tenant_id: str) -> FiscalConfig | None:
        """Tenant fiscal settings, or None when the tenant has none stored."""


@dataclass(frozen=True)
class Repositories:
    clients: ClientRepository
    products: ProductRepository
    uploads: UploadRepository
    fiscal: FiscalConfigRepository


class InMemoryClientRepository(ClientRepository):
    def __init__(self, clients: Mapping[str, Iterable[Client]] | None = None) -> None:
        self._clients = {tenant: list(items) for tenant, items in (clients or {}).items()}

    def list(self, tenant_id: str) -> list[Client]:
        return list(self._clients.get(tenant_id, []))


class InMemoryProductRepository(ProductRepository):
    def __init__(self, product_lines: Iterable[ProductLine] = ()) -> None:
        self._product_lines = list(product_lines)

    def list(self) -> list[ProductLine]:
        return list(self._product_lines)


class InMemoryUploadRepository(UploadRepository):
    """Dict-backed store with the same atomicity as the database adapter.

    Writes are staged on copies and swapped in under a lock, so readers
    never see a half-written batch.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: dict[str, UploadBatch] = {}
        self._records: dict[tuple[str, str, str, str, str], FinancialDataRecord] = {}
        self.fail_on_save = False  # test hook: simulate a write failure

    def save(self, batch: UploadBatch, records: list[FinancialDataRecord]) -> str:
        with self._lock:
            staged_batches = dict(self._batches)
            staged_records = dict(self._records)
            staged_batches[batch.upload_id] = batch
            for record in records:
                staged_records[record.natural_key] = replace(record, upload_id=batch.upload_id)
            if self.fail_on_save:
                self._batches[batch.upload_id] = replace(
                    batch, status=UploadStatus.FAILED, row_count=0, total_amount=0.0
                )
                raise UploadPersistenceError(f"simulated failure saving upload {batch.upload_id}")
            staged_batches[batch.upload_id] = replace(batch, status=UploadStatus.COMPLETED)
            self._batches = staged_batches
            self._records = staged_records
        return batch.upload_id

    def list_by_tenant(self, tenant_id: str) -> list[UploadBatch]:
        with self._lock:
            return [b for b in self._batches.values() if b.tenant_id == tenant_id]

    def delete_by_id(self, upload_id: str, tenant_id: str) -> int:
        with self._lock:
            batch = self._batches.get(upload_id)
            if batch is None or batch.tenant_id != tenant_id:
                return 0
            remaining = {
                key: rec
                for key, rec in self._records.items()
                if not (rec.upload_id == upload_id and rec.tenant_id == tenant_id)
            }
            deleted = len(self._records) - len(remaining)
            batches = dict(self._batches)
            del batches[upload_id]
            self._records = remaining
            self._batches = batches
            return deleted

    def find_records(
        self, tenant_id: str, upload_type: UploadType, financial_year: str
    ) -> list[FinancialDataRecord]:
        with self._lock:
            return [
                r
                for r in self._records.values()
                if r.tenant_id == tenant_id
                and r.upload_type is upload_type
                and r.financial_year == financial_year
            ]


class InMemoryFiscalConfigRepository(FiscalConfigRepository):
    def __init__(self, configs: Mapping[str, FiscalConfig] | None = None) -> None:
        self._configs = dict(configs or {})

    def get(self, tenant_id: str) -> FiscalConfig | None:
        return self._configs.get(tenant_id)


def in_memory_repositories(
    tenant_id: str,
    clients: Iterable[Mapping[str, Any]] = (),
    product_lines: Iterable[Mapping[str, Any]] = (),
    fiscal: FiscalConfig | None = None,
) -> Repositories:
    """Build in-memory repositories seeded from raw registry mappings."""
    return Repositories(
        clients=InMemoryClientRepository({tenant_id: [Client.from_mapping(c) for c in clients]}),
        products=InMemoryProductRepository(ProductLine.from_mapping(p) for p in product_lines),
        uploads=InMemoryUploadRepository(),
        fiscal=InMemoryFiscalConfigRepository({tenant_id: fiscal} if fiscal else None),
    )
