"""Shared fixtures: fixed clock and gviz payload builders."""

import json
from datetime import datetime

import pytest

TODAY = datetime(2024, 6, 1, 12, 0)


def _cell(value):
    if value is None or isinstance(value, dict):
        return value
    return {"v": value}


def build_table(labels, rows):
    """Build a gviz table from column labels and rows of plain values or cell dicts."""
    return {
        "cols": [
            {"id": chr(ord("A") + i), "label": label, "type": "string"}
            for i, label in enumerate(labels)
        ],
        "rows": [{"c": [_cell(v) for v in row]} for row in rows],
    }


def wrap_payload(table, status="ok"):
    """Wrap a table the way the gviz endpoint serves it."""
    body = {"version": "0.6", "reqId": "0", "status": status, "table": table}
    return "/*O_o*/\ngoogle.visualization.Query.setResponse(" + json.dumps(body) + ");"


SAMPLE_LABELS = [
    "Sponsor", "Offering Name", "Sector", "Filed Raise", "Remaining Raise",
    "Offering Close", "Year 1 Cash on Cash Distribution", "Loan to Value",
    "Hold Period", "Minimum - DST", "(Avg)% Leased", "Exemption",
]

SAMPLE_ROWS = [
    ["Acme Capital", "Acme Multifamily DST", "Multifamily", 40000000, 10000000,
     "Date(2024,8,30)", 0.055, 0.45, 7, 100000, 0.96, "506(c)"],
    ["Birch Realty", "Birch Industrial DST", "Industrial", 25000000, 5000000,
     "Date(2024,7,31)", 0.048, 0.55, 10, 50000, 0.92, "506(b)"],
    ["Acme Capital", "Acme Net Lease DST", "Net Lease", 15000000, 0,
     "Date(2024,4,1)", 0.061, 0.0, 5, 25000, 1.0, "506(c)"],
]


@pytest.fixture
def clock():
    return lambda: TODAY


@pytest.fixture
def sample_payload():
    return wrap_payload(build_table(SAMPLE_LABELS, SAMPLE_ROWS))


class FakeFeedClient:
    """Async feed client that counts calls and can be told to fail."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = 0

    async def fetch_text(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def fake_client(sample_payload):
    return FakeFeedClient(sample_payload)
