from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import numpy as np
import pytest

from vehicle_lists.models import ColumnHeader
from vehicle_lists.services.record_builder import (
    FieldNameMap,
    build_column_descriptors,
    build_records,
    document_value,
    generate_list_id,
    last_four,
    sanitize_field_name,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Vehicle No.", "vehicle_no"),
        ("Owner Name", "owner_name"),
        ("EMI Amount (Rs)", "emi_amount_rs"),
        ("Loan A/C #", "loan_a_c"),
        ("__already__ok__", "already_ok"),
        ("  ", ""),
        ("顧客名", ""),
    ],
)
def test_sanitize_field_name(name, expected):
    assert sanitize_field_name(name) == expected


def test_generate_list_id_uses_utc_date():
    now = datetime(2025, 3, 14, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    # 23:30 at UTC-5 is already the 15th in UTC
    assert generate_list_id("march dues.xlsx", now) == "march_dues_xlsx_20250315"


def test_generate_list_id_replaces_each_char():
    now = datetime(2025, 1, 2, tzinfo=UTC)
    assert generate_list_id("a--b.xls", now) == "a__b_xls_20250102"


def test_last_four():
    assert last_four("DL01AB1234") == "1234"
    assert last_four("AB1") == "AB1"


def test_field_name_collisions_get_numeric_suffix():
    headers = [
        ColumnHeader(0, "Owner Name"),
        ColumnHeader(1, "owner-name"),
        ColumnHeader(2, "OWNER NAME!"),
    ]
    names = FieldNameMap.from_headers(headers)
    assert [names[i] for i in range(3)] == ["owner_name", "owner_name_2", "owner_name_3"]


def test_reserved_and_empty_names():
    headers = [ColumnHeader(0, "ID"), ColumnHeader(1, "???"), ColumnHeader(2, "showtoagent")]
    names = FieldNameMap.from_headers(headers)
    assert names[0] == "id_2"
    assert names[1] == "column_1"
    assert names[2] == "showtoagent_2"


def test_build_column_descriptors_visibility():
    headers = [ColumnHeader(0, "Vehicle No."), ColumnHeader(1, "Owner"), ColumnHeader(2, "Branch")]
    columns = build_column_descriptors(headers, [2])
    assert [c.sanitized_name for c in columns] == ["vehicle_no", "owner", "branch"]
    assert [c.show_to_agent for c in columns] == [False, False, True]
    assert [c.index for c in columns] == [0, 1, 2]


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, ""),
        (float("nan"), ""),
        (np.int64(7), 7),
        (np.float64(2.5), 2.5),
        (date(2025, 1, 31), "2025-01-31"),
        (datetime(2025, 1, 31, 10, 0), "2025-01-31T10:00:00"),
        ("text", "text"),
    ],
)
def test_document_value(value, expected):
    assert document_value(value) == expected


def test_build_records():
    headers = [ColumnHeader(0, "Vehicle No."), ColumnHeader(1, "Owner"), ColumnHeader(2, "EMI")]
    columns = build_column_descriptors(headers, [1])
    rows = [["DL01AB1234", "Sharma", 100], ["UP147788", None]]
    records = build_records(rows, columns, 0, "lst_20250314", "2025-03-14T09:30:00Z")

    assert len(records) == 2
    first, second = records
    assert first.key == "DL01AB1234"
    assert first.last_four_digits == "1234"
    assert first.list_parent_id == "lst_20250314"
    assert first.row_index == 0
    assert first.created_at == first.updated_at == "2025-03-14T09:30:00Z"
    assert first.show_to_agent is True
    # every column stored, hidden ones too
    assert first.fields == {"vehicle_no": "DL01AB1234", "owner": "Sharma", "emi": 100}
    assert second.row_index == 1
    assert second.fields == {"vehicle_no": "UP147788", "owner": "", "emi": ""}


def test_record_document_shape():
    headers = [ColumnHeader(0, "Vehicle No.")]
    columns = build_column_descriptors(headers, [])
    (record,) = build_records([["MH12DE3456"]], columns, 0, "x_20250101", "t")
    doc = record.to_document()
    assert doc["id"] == doc["vehicleNumber"] == "MH12DE3456"
    assert doc["lastFourDigits"] == "3456"
    assert doc["listParentId"] == "x_20250101"
    assert doc["rowIndex"] == 0
    assert doc["showtoagent"] is True
    assert doc["vehicle_no"] == "MH12DE3456"
