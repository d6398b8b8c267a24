from __future__ import annotations

import logging

import pytest

from finrecon.models.entities import Client
from finrecon.models.upload import FinancialDataRecord, UploadType
from finrecon.services.aggregator import (
    UNKNOWN_PRODUCT_LINE,
    YtdFallback,
    aggregate_by_month,
    client_ytd_revenue,
    filter_records_by_clients,
    format_variance,
    full_year_total,
    group_by_client,
    group_by_product_line,
    monthly_values,
    records_for_client,
    totals_by_month,
    variance_percent,
    ytd_total,
)
from finrecon.services.fiscal_calendar import build_fiscal_calendar


def _record(client_id="c1", client_name="Acme Corp", product_line="Consulting", monthly=None, total=0.0):
    return FinancialDataRecord(
        tenant_id="tenant-a",
        upload_type=UploadType.YTD_ACTUAL,
        financial_year="2024/2025",
        client_id=client_id,
        client_name=client_name,
        product_id=f"p-{product_line}",
        product_line=product_line,
        monthly_data=monthly if monthly is not None else {},
        total=total,
    )


def test_totals_by_month_keeps_every_label():
    records = [
        _record(monthly={"Month 1": 10.0, "Month 2": 5.0}),
        _record(monthly={"Month 1": 1.0, "Month 14": 3.0}),
    ]
    assert totals_by_month(records) == {"Month 1": 11.0, "Month 2": 5.0, "Month 14": 3.0}


def test_aggregate_by_month_orders_and_accumulates():
    records = [_record(monthly={"Month 1": 10.0, "Month 3": 5.0, "Month 14": 99.0})]
    agg = aggregate_by_month(records, ["Month 1", "Month 2", "Month 3"])
    assert agg.monthly == {"Month 1": 10.0, "Month 2": 0.0, "Month 3": 5.0}
    assert agg.cumulative == {"Month 1": 10.0, "Month 2": 10.0, "Month 3": 15.0}
    assert agg.total == 15.0


def test_aggregate_by_month_default_order_is_twelve_months():
    agg = aggregate_by_month([])
    assert list(agg.monthly) == [f"Month {n}" for n in range(1, 13)]
    assert agg.total == 0.0


def test_junk_monthly_values_count_as_zero():
    record = _record(monthly={"Month 1": "abc", "Month 2": float("nan"), "Month 3": "5", "Month 4": None})
    assert monthly_values(record) == {"Month 1": 0.0, "Month 2": 0.0, "Month 3": 5.0, "Month 4": 0.0}
    assert full_year_total(record) == 5.0


def test_full_year_total_falls_back_to_stored_total():
    assert full_year_total(_record(monthly={}, total=42.0)) == 42.0
    assert full_year_total(_record(monthly={"Month 1": 1.0}, total=42.0)) == 1.0


def test_ytd_total_with_labels_and_calendar(fiscal_config):
    monthly = {f"Month {n}": float(n) for n in range(1, 13)}
    records = [_record(monthly=monthly), _record(monthly=monthly)]
    assert ytd_total(records, ["Month 1", "Month 2"]) == 6.0
    cal = build_fiscal_calendar(fiscal_config)  # Month 1..6
    assert ytd_total(records, cal.ytd_months) == 2 * sum(range(1, 7))


def test_ytd_total_without_ytd_months_uses_fallback(caplog):
    caplog.set_level(logging.WARNING)
    records = [_record(monthly={"Month 1": 4.0, "Month 12": 6.0})]
    assert ytd_total(records, []) == 10.0
    assert ytd_total(records, [], fallback=YtdFallback.ZERO) == 0.0
    assert "no YTD months" in caplog.text


def test_group_by_product_line_sorted_descending():
    records = [
        _record(client_id="c1", product_line="Consulting", monthly={"Month 1": 10.0}),
        _record(client_id="c2", product_line="Licensing", monthly={"Month 1": 50.0}),
        _record(client_id="c2", product_line="Consulting", monthly={"Month 1": 5.0}),
        _record(client_id="c3", product_line=None, monthly={"Month 1": 1.0}),
    ]
    buckets = group_by_product_line(records)
    assert [b.product_line for b in buckets] == ["Licensing", "Consulting", UNKNOWN_PRODUCT_LINE]
    consulting = buckets[1]
    assert consulting.total == 15.0
    assert consulting.count == 2
    assert consulting.client_count == 2


def test_group_by_product_line_with_ytd_months():
    records = [_record(monthly={"Month 1": 10.0, "Month 7": 100.0})]
    assert group_by_product_line(records, ["Month 1"])[0].total == 10.0
    assert group_by_product_line(records)[0].total == 110.0


def test_group_by_client():
    records = [
        _record(client_id="c1", product_line="Consulting", monthly={"Month 1": 10.0}),
        _record(client_id="c1", product_line="Licensing", monthly={"Month 1": 30.0}),
        _record(client_id="c2", client_name="Globex Ltd", monthly={"Month 1": 20.0}),
    ]
    buckets = group_by_client(records)
    assert [b.client_id for b in buckets] == ["c1", "c2"]
    assert buckets[0].total == 40.0
    assert buckets[0].products == {"Consulting": 10.0, "Licensing": 30.0}
    assert buckets[1].client_name == "Globex Ltd"


@pytest.mark.parametrize(
    "current,prior,expected",
    [(110.0, 100.0, 10.0), (75.0, 100.0, -25.0), (-50.0, -100.0, 50.0), (10.0, 0.0, None), (10.0, None, None)],
)
def test_variance_percent(current, prior, expected):
    result = variance_percent(current, prior)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)


def test_format_variance():
    assert format_variance(110.0, 100.0) == "+10.0%"
    assert format_variance(75.0, 100.0) == "-25.0%"
    assert format_variance(1.0, 0.0) == "-"


def test_records_for_client_prefers_id():
    by_id = _record(client_id="c1", client_name="Old Name")
    by_name = _record(client_id="legacy", client_name="Acme Corp")
    assert records_for_client([by_id, by_name], "c1", "Acme Corp") == [by_id]


def test_records_for_client_falls_back_to_trimmed_name():
    record = _record(client_id="legacy", client_name="  ACME corp ")
    assert records_for_client([record], "c1", "Acme Corp") == [record]
    assert records_for_client([record], "c1", "Globex") == []
    assert records_for_client([record], "c1", None) == []


def test_filter_records_by_clients_keeps_order_without_duplicates():
    r1 = _record(client_id="c2", client_name="Globex Ltd")
    r2 = _record(client_id="c1", client_name="Acme Corp")
    r3 = _record(client_id="zz", client_name="Initech")
    clients = [Client(id="c1", display_name="Acme Corp"), Client(id="c2", display_name="Globex Ltd")]
    assert filter_records_by_clients([r1, r2, r3], clients + clients) == [r1, r2]


def test_client_ytd_revenue_is_zero_without_ytd_months():
    client = Client(id="c1", display_name="Acme Corp")
    records = [_record(monthly={"Month 1": 10.0, "Month 2": 5.0})]
    assert client_ytd_revenue(records, client, ["Month 2"]) == 5.0
    assert client_ytd_revenue(records, client, []) == 0.0
