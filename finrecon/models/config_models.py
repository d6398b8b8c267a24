from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the financial upload importer.

The loader in finrecon/config/loader.py validates the YAML document and builds
these objects; nothing downstream reads raw YAML.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class FiscalConfig:
    """Tenant fiscal year settings.

    Month fields hold English month names ("March"). Missing values are
    resolved by the fiscal calendar service: start defaults to March, end to
    February, reporting month to the end month.
    """
    current_financial_year: str | None = None  # "2024/2025"
    financial_year_start: str | None = None
    financial_year_end: str | None = None
    reporting_month: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for a batch import run."""
    source_directory: str  # Directory scanned for .csv uploads
    tenant_id: str
    uploads: dict[str, str]  # CSV file name -> upload type value
    uploaded_by: str = "importer"
    fiscal_year: FiscalConfig | None = None  # Fallback when the repository has no tenant settings
    registry_clients: list[dict[str, object]] = field(default_factory=list)  # mock mode seed
    registry_product_lines: list[dict[str, object]] = field(default_factory=list)  # mock mode seed
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
