"""
Tests for the batch resolution script.
"""
import json

import pandas as pd

from conftest import REGISTER_ROWS
from scripts.resolve_beneficiaries import load_rows, main

MAPPING_ARGS = [
    "--woman-name", "name",
    "--husband-name", "husband",
    "--national-id", "nid",
    "--phone", "phone",
    "--village", "village",
]


def _write_register(tmp_path, rows=REGISTER_ROWS):
    path = tmp_path / "register.csv"
    pd.DataFrame(rows).to_csv(path, index=False, encoding="utf-8-sig")
    return path


class TestResolveBeneficiaries:
    """End-to-end runs of the batch script."""

    def test_load_rows_keeps_leading_zeros(self, tmp_path):
        """Test ids are read as text so leading zeros survive."""
        path = _write_register(tmp_path, [{"name": "فاطمة", "nid": "00123", "phone": ""}])
        rows = load_rows(path)
        assert rows == [{"name": "فاطمة", "nid": "00123", "phone": ""}]

    def test_writes_clusters_and_findings(self, tmp_path):
        """Test the JSON report and the review sheet are written."""
        register = _write_register(tmp_path)
        output = tmp_path / "result.json"
        sheet = tmp_path / "clusters.csv"
        code = main([str(register), *MAPPING_ARGS, "--output", str(output),
                     "--clusters-csv", str(sheet), "--rules", str(tmp_path / "rules.json")])
        assert code == 0

        report = json.loads(output.read_text(encoding="utf-8"))
        assert report["summary"]["records"] == 4
        assert [c["record_ids"] for c in report["clusters"]] == [["R1", "R2"]]
        assert report["summary"]["by_decision"] == {"confirmed_duplicate": 1}
        assert report["summary"]["audit"]["by_type"]["DUPLICATE_COUPLE"] == 1

        frame = pd.read_csv(sheet, dtype=str, encoding="utf-8-sig")
        assert list(frame["record_id"]) == ["R1", "R2"]
        assert set(frame["decision_ar"]) == {"تكرار مؤكد"}
        assert frame["summary_ar"].str.endswith("القرار النهائي: تكرار مؤكد").all()

    def test_skip_audit(self, tmp_path):
        """Test --skip-audit leaves findings empty."""
        register = _write_register(tmp_path)
        output = tmp_path / "result.json"
        assert main([str(register), *MAPPING_ARGS, "--skip-audit", "--output", str(output)]) == 0
        assert json.loads(output.read_text(encoding="utf-8"))["findings"] == []

    def test_missing_column(self, tmp_path, capsys):
        """Test an unmapped required column exits with code 2."""
        register = _write_register(tmp_path)
        args = [str(register), "--woman-name", "name", "--husband-name", "husband",
                "--national-id", "national_id", "--phone", "phone"]
        assert main(args) == 2
        assert "national_id" in capsys.readouterr().err

    def test_unknown_blocking_key(self, tmp_path, capsys):
        """Test an unknown --blocking-key exits with code 2 and no traceback."""
        register = _write_register(tmp_path)
        assert main([str(register), *MAPPING_ARGS, "--blocking-key", "shoe_size"]) == 2
        err = capsys.readouterr().err
        assert "shoe_size" in err
        assert "Traceback" not in err
