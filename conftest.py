import pytest
from fastapi.testclient import TestClient

from charting_agent.components.csv_loader import Dataset, parse_csv

SALES_CSV = "category,value\nAlpha,10\nBeta,20"


@pytest.fixture
def client():
    from charting_agent.main import app

    return TestClient(app)


@pytest.fixture
def sales_dataset() -> Dataset:
    return parse_csv(SALES_CSV)


@pytest.fixture
def monthly_dataset() -> Dataset:
    return parse_csv(
        "month,revenue,cost,region\n"
        "2024-01-01,120,80,North\n"
        "2024-02-01,135,90,South\n"
        "2024-03-01,150,95,North\n"
        "2024-04-01,160,,East\n"
    )


def make_dataset(columns: dict) -> Dataset:
    """Dataset straight from column lists, bypassing the CSV parser."""
    headers = tuple(columns)
    length = max(len(v) for v in columns.values())
    records = tuple({h: columns[h][i] for h in headers if i < len(columns[h])} for i in range(length))
    return Dataset(headers=headers, records=records)


@pytest.fixture
def dataset_factory():
    return make_dataset
