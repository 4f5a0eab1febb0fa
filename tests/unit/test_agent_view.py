from __future__ import annotations

from vehicle_lists.models import ColumnDescriptor, ColumnHeader
from vehicle_lists.services.agent_view import EMPTY_CELL, agent_visible_fields, build_agent_preview
from vehicle_lists.services.classifier import classify_grid


def test_preview_vehicle_first_then_visible_columns(sample_grid):
    cleaned = classify_grid(sample_grid, 0).cleaned_data
    headers = [ColumnHeader(i, str(n)) for i, n in enumerate(sample_grid[0])]
    names, rows = build_agent_preview(cleaned, 0, [2, 1], headers)

    assert names == ["Vehicle No.", "Owner Name", "Branch"]
    assert len(rows) == 5
    assert rows[0] == ["DL01AB1234", "Sharma Logistics", "Delhi"]
    # missing branch shown as placeholder
    assert rows[2] == ["UP147788", "Mehta Motors", EMPTY_CELL]


def test_preview_limit_and_vehicle_column_not_repeated(sample_grid):
    cleaned = classify_grid(sample_grid, 0).cleaned_data
    headers = [ColumnHeader(i, str(n)) for i, n in enumerate(sample_grid[0])]
    names, rows = build_agent_preview(cleaned, 0, [0, 3], headers, limit=2)
    assert names == ["Vehicle No.", "EMI Amount"]
    assert rows == [["DL01AB1234", 12500], ["HR26C4567", 9800.5]]


def test_agent_visible_fields():
    columns = [
        ColumnDescriptor(0, "Vehicle No.", "vehicle_no", False),
        ColumnDescriptor(1, "Owner Name", "owner_name", True),
        ColumnDescriptor(2, "EMI Amount", "emi_amount", False),
        ColumnDescriptor(3, "Branch", "branch", True),
    ]
    doc = {
        "vehicleNumber": "DL01AB1234",
        "owner_name": "Sharma Logistics",
        "emi_amount": 12500,
    }
    assert agent_visible_fields(doc, columns) == {
        "vehicleNumber": "DL01AB1234",
        "Owner Name": "Sharma Logistics",
        "Branch": "",
    }
