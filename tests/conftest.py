"""
pytest configuration and shared fixtures.
"""
from io import BytesIO

import pandas as pd
import pytest

from core.config import ImportConfig, reset_config
from core.logger import clear_request_context
from ingest.models import ColumnDefinition


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh configuration and logging context for every test."""
    reset_config()
    clear_request_context()
    yield
    reset_config()
    clear_request_context()


@pytest.fixture
def config():
    """Default configuration, independent of the environment."""
    return ImportConfig(_env_file=None)


@pytest.fixture
def schema_columns():
    """Inventory schema: Name (required), Quantity, Price, SKU."""
    return [
        ColumnDefinition(id="c1", name="Name", type="text", role="name", required=True, order=0),
        ColumnDefinition(id="c2", name="Quantity", type="number", role="quantity", order=1),
        ColumnDefinition(id="c3", name="Price", type="currency", role="price", order=2),
        ColumnDefinition(id="c4", name="SKU", type="text", order=3),
    ]


@pytest.fixture
def sample_csv_content():
    """CSV with a title row above the header."""
    return (
        b"Inventory Report Q1,,\n"
        b"name,qty,price\n"
        b"Widget,5,\"$1,234.50\"\n"
    )


@pytest.fixture
def sample_rows():
    return [
        ["Name", "Quantity", "Price"],
        ["Widget", 5, 9.99],
        ["Gadget", 12, 19.5],
    ]


def build_xlsx(rows, sheet_name="Sheet1", extra_sheets=None):
    """Builds an xlsx workbook in memory (no header row written by pandas)."""
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, index=False, header=False)
        for name, extra_rows in (extra_sheets or {}).items():
            pd.DataFrame(extra_rows).to_excel(writer, sheet_name=name, index=False, header=False)
    return buffer.getvalue()


@pytest.fixture
def xlsx_builder():
    return build_xlsx


@pytest.fixture
def sample_xlsx_content(sample_rows):
    return build_xlsx(sample_rows)
