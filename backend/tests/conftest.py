"""
Pytest fixtures for engine and API tests.
"""
import os
import tempfile
from pathlib import Path

# Learned rules from API tests go to a throwaway file, never backend/data
os.environ.setdefault(
    "MIZAN_RULES_PATH", str(Path(tempfile.mkdtemp(prefix="mizan-rules-")) / "rules.json")
)

import pytest
from fastapi.testclient import TestClient

from api.main import app
from mizan.preprocess import FieldMapping, RecordPreprocessor, build_raw_records


# Column names as they appear in a typical register export
MAPPING = {
    "woman_name": "name",
    "husband_name": "husband",
    "national_id": "nid",
    "phone": "phone",
    "village": "village",
    "children": "children",
}

# R1/R2 are the same woman typed twice; R3/R4 are unrelated households
REGISTER_ROWS = [
    {"name": "فاطمة أحمد علي الحسني", "husband": "محمد عبد الله صالح",
     "nid": "1001", "phone": "771234567", "village": "بني حشيش", "children": ""},
    {"name": "فاطمه احمد علي الحسني", "husband": "محمد عبدالله صالح",
     "nid": "1002", "phone": "+967 771 234 567", "village": "بني حشيش", "children": ""},
    {"name": "خديجة سالم ناصر العمري", "husband": "يوسف حسن مهدي",
     "nid": "2001", "phone": "733000111", "village": "سنحان", "children": ""},
    {"name": "مريم عبده قاسم الشامي", "husband": "خالد ناجي سعيد",
     "nid": "3001", "phone": "700999888", "village": "همدان", "children": ""},
]


def make_records(rows, id_column=None):
    """RawRecords with R1, R2, ... ids."""
    return build_raw_records(rows, id_column=id_column)


def prepare(rows, mapping=None):
    """PreprocessedRecords for rows under the default test mapping."""
    field_mapping = FieldMapping.from_dict(mapping or MAPPING)
    return RecordPreprocessor(field_mapping).preprocess_all(make_records(rows))


def row(name, husband="", nid="", phone="", village="", children=""):
    """One register row in the test column layout."""
    return {"name": name, "husband": husband, "nid": nid, "phone": phone,
            "village": village, "children": children}


@pytest.fixture
def mapping():
    return FieldMapping.from_dict(MAPPING)


@pytest.fixture
def register_rows():
    return [dict(r) for r in REGISTER_ROWS]


@pytest.fixture
def register_records(register_rows):
    return make_records(register_rows)


@pytest.fixture(scope="module")
def client():
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="module")
def base_url():
    """Base URL for API v1 endpoints."""
    return "/api/v1"
