# Shared pytest fixtures
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from finrecon.logging.init import APP_LOGGER_NAME, reset_logging
from finrecon.models.config_models import FiscalConfig
from finrecon.models.entities import Client, ProductLine

MONTH_HEADERS = [f"Month {n}" for n in range(1, 13)]


def _reset_app_logger() -> None:
    logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    reset_logging()


@pytest.fixture(autouse=True)
def clean_logging() -> Iterator[None]:
    # setup_logging() detaches the app logger from root; undo it so caplog sees records
    _reset_app_logger()
    yield
    _reset_app_logger()


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
tenant_id: tenant-a
uploaded_by: tester
uploads:
  actuals.csv: ytd-actual
  budget.csv: budget
  prior.csv: ytd-1
fiscal_year:
  current_financial_year: "2024/2025"
  financial_year_start: March
  financial_year_end: February
  reporting_month: August
registry:
  clients:
    - id: c1
      name: Acme Corp
    - id: c2
      companyName: Globex Ltd
  product_lines:
    - id: p1
      name: Consulting
    - id: p2
      name: Licensing
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_csv() -> Callable[..., str]:
    """Build upload text: each row is (client, product, monthly amount)."""

    def _make(rows: list[tuple[str, str, float]], headers: list[str] | None = None) -> str:
        header = ["Client Name", "Product Name", *(headers or MONTH_HEADERS)]
        months = len(header) - 2
        lines = [",".join(header)]
        for client, product, amount in rows:
            lines.append(",".join([client, product, *([str(amount)] * months)]))
        return "\n".join(lines) + "\n"

    return _make


@pytest.fixture()
def write_upload(temp_workdir: Path, make_csv) -> Callable[..., Path]:
    def _write(name: str, rows: list[tuple[str, str, float]], headers: list[str] | None = None) -> Path:
        path = temp_workdir / "data" / name
        path.write_text(make_csv(rows, headers), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def clients() -> list[Client]:
    return [Client(id="c1", display_name="Acme Corp"), Client(id="c2", display_name="Globex Ltd")]


@pytest.fixture()
def product_lines() -> list[ProductLine]:
    return [ProductLine(id="p1", name="Consulting"), ProductLine(id="p2", name="Licensing")]


@pytest.fixture()
def fiscal_config() -> FiscalConfig:
    return FiscalConfig(
        current_financial_year="2024/2025",
        financial_year_start="March",
        financial_year_end="February",
        reporting_month="August",
    )
