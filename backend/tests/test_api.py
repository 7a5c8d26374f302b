"""
Tests for the HTTP API: sessions, runs, pairwise breakdowns and rules.
"""
import pytest

from conftest import REGISTER_ROWS, row

CAMEL_MAPPING = {
    "womanName": "name",
    "husbandName": "husband",
    "nationalId": "nid",
    "phone": "phone",
    "village": "village",
    "children": "children",
}


def _create_session(client, base_url, rows=REGISTER_ROWS, mapping=CAMEL_MAPPING):
    response = client.post(f"{base_url}/sessions", json={"rows": rows, "mapping": mapping})
    assert response.status_code == 201
    return response.json()["session_id"]


def _finish(client, base_url, run_id):
    """Poll a run until it leaves the running state."""
    for _ in range(10):
        response = client.get(f"{base_url}/runs/{run_id}", params={"wait": 5})
        assert response.status_code == 200
        data = response.json()
        if data["status"] != "running":
            return data
    pytest.fail(f"run {run_id} did not finish")


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test health check returns status and version."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "rules_store" in data

    def test_root_lists_endpoints(self, client):
        """Test root endpoint lists the API sections."""
        data = client.get("/").json()
        assert "sessions" in data["endpoints"]
        assert "rules" in data["endpoints"]

    def test_metrics(self, client):
        """Test metrics report session and run counts."""
        data = client.get("/metrics").json()
        assert "sessions" in data
        assert "tracked" in data["runs"]

    def test_request_id_header(self, client):
        """Test every response carries a short request id."""
        assert len(client.get("/health").headers["X-Request-ID"]) == 8

    def test_request_id_reused(self, client):
        """Test a caller-supplied request id is echoed back."""
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_security_headers(self, client):
        """Test security headers are set on responses."""
        response = client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestSessions:
    """Upload and mapping."""

    def test_create_session(self, client, base_url):
        """Test upload returns the session, mapping and columns."""
        response = client.post(f"{base_url}/sessions", json={"rows": REGISTER_ROWS, "mapping": CAMEL_MAPPING})
        assert response.status_code == 201
        data = response.json()
        assert data["record_count"] == 4
        assert data["mapping"]["woman_name"] == "name"
        assert data["missing_fields"] == []
        assert "nid" in data["columns"]

    def test_missing_fields_reported(self, client, base_url):
        """Test unmapped required fields are listed, not rejected."""
        response = client.post(f"{base_url}/sessions", json={"rows": REGISTER_ROWS, "mapping": {"womanName": "name"}})
        assert response.status_code == 201
        assert response.json()["missing_fields"] == ["husband_name", "national_id", "phone"]

    def test_get_session(self, client, base_url):
        """Test a stored session can be fetched by id."""
        session_id = _create_session(client, base_url)
        response = client.get(f"{base_url}/sessions/{session_id}")
        assert response.status_code == 200
        assert response.json()["session_id"] == session_id

    def test_unknown_session(self, client, base_url):
        """Test unknown session returns 404."""
        response = client.get(f"{base_url}/sessions/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_rows_required(self, client, base_url):
        """Test upload without rows fails validation."""
        response = client.post(f"{base_url}/sessions", json={"mapping": CAMEL_MAPPING})
        assert response.status_code == 422


class TestRuns:
    """Background cluster and audit runs."""

    def test_cluster_run(self, client, base_url):
        """Test cluster run reports progress and the register duplicates."""
        session_id = _create_session(client, base_url)
        response = client.post(f"{base_url}/runs", json={"session_id": session_id, "kind": "cluster"})
        assert response.status_code == 202
        started = response.json()
        assert started["kind"] == "cluster"
        assert started["session_id"] == session_id

        data = _finish(client, base_url, started["run_id"])
        assert data["status"] == "done"
        assert data["progress"] == 100
        clusters = data["result"]["clusters"]
        assert [c["record_ids"] for c in clusters] == [["R1", "R2"]]
        assert clusters[0]["decision"] == "confirmed_duplicate"
        assert clusters[0]["summary"][-1] == "القرار النهائي: تكرار مؤكد"
        assert data["result"]["summary"]["by_decision"] == {"confirmed_duplicate": 1}

    def test_audit_run(self, client, base_url):
        """Test audit run returns findings grouped by record."""
        session_id = _create_session(client, base_url)
        response = client.post(f"{base_url}/runs", json={"session_id": session_id, "kind": "audit"})
        data = _finish(client, base_url, response.json()["run_id"])
        assert data["status"] == "done"
        types = {f["type"] for f in data["result"]["findings"]}
        assert "DUPLICATE_COUPLE" in types
        assert "MULTIPLE_NATIONAL_IDS" in types
        assert "DUPLICATE_COUPLE" in data["result"]["by_record"]["R1"]

    def test_missing_mapping_fails_run(self, client, base_url):
        """Test a run over an incomplete mapping ends in an error state."""
        session_id = _create_session(client, base_url, mapping={"womanName": "name"})
        response = client.post(f"{base_url}/runs", json={"session_id": session_id, "kind": "cluster"})
        assert response.status_code == 202
        data = _finish(client, base_url, response.json()["run_id"])
        assert data["status"] == "error"
        assert data["error"]["code"] == "MISSING_FIELD_MAPPING"

    def test_unknown_kind(self, client, base_url):
        """Test unsupported run kind fails validation."""
        session_id = _create_session(client, base_url)
        response = client.post(f"{base_url}/runs", json={"session_id": session_id, "kind": "merge"})
        assert response.status_code == 422

    def test_unknown_blocking_key(self, client, base_url):
        """Test unknown blocking key is rejected before the run starts."""
        session_id = _create_session(client, base_url)
        response = client.post(
            f"{base_url}/runs",
            json={"session_id": session_id, "kind": "cluster", "blocking_keys": ["village", "shoe_size"]},
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INVALID_BLOCKING_KEY"
        assert error["details"]["unknown"] == ["shoe_size"]
        assert "village" in error["details"]["allowed"]

    def test_unknown_session(self, client, base_url):
        """Test starting a run on an unknown session returns 404."""
        response = client.post(f"{base_url}/runs", json={"session_id": "nope", "kind": "cluster"})
        assert response.status_code == 404

    def test_unknown_run(self, client, base_url):
        """Test polling an unknown run returns 404."""
        response = client.get(f"{base_url}/runs/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_learn_requires_two_ids(self, client, base_url):
        """Test learning needs at least two record ids."""
        session_id = _create_session(client, base_url)
        response = client.post(f"{base_url}/runs/learn", json={"session_id": session_id, "record_ids": ["R1"]})
        assert response.status_code == 422


class TestPairwise:
    """Score breakdown between selected records."""

    def test_breakdown_sorted(self, client, base_url):
        """Test pairs come back best first."""
        session_id = _create_session(client, base_url)
        response = client.post(
            f"{base_url}/pairwise",
            json={"session_id": session_id, "record_ids": ["R3", "R1", "R2"]},
        )
        assert response.status_code == 200
        pairs = response.json()["pairs"]
        assert len(pairs) == 3
        assert (pairs[0]["record_a"], pairs[0]["record_b"]) == ("R1", "R2")
        assert pairs[0]["is_match"] is True
        scores = [p["aggregate_score"] for p in pairs]
        assert scores == sorted(scores, reverse=True)

    def test_unknown_record(self, client, base_url):
        """Test unknown record id returns 404."""
        session_id = _create_session(client, base_url)
        response = client.post(f"{base_url}/pairwise", json={"session_id": session_id, "record_ids": ["R1", "R9"]})
        assert response.status_code == 404

    def test_missing_mapping(self, client, base_url):
        """Test breakdown with an incomplete mapping returns 422."""
        session_id = _create_session(client, base_url, mapping={"womanName": "name"})
        response = client.post(f"{base_url}/pairwise", json={"session_id": session_id, "record_ids": ["R1", "R2"]})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MISSING_FIELD_MAPPING"


class TestRules:
    """Append-only rule store."""

    def test_list_builtin_rules(self, client, base_url):
        """Test built-in rules are listed first."""
        response = client.get(f"{base_url}/rules")
        assert response.status_code == 200
        ids = [r["id"] for r in response.json()["data"]]
        assert ids[0] == "EXACT_NATIONAL_ID"
        assert "PHONE_WITH_REORDERED_NAME" in ids

    def test_append_rule(self, client, base_url):
        """Test an appended rule is stamped and listed last."""
        body = {
            "id": "MANUAL_PHONE_AND_FAMILY",
            "name": "Same phone and family",
            "clauses": [
                {"field": "phone_score", "operator": ">=", "threshold": 1.0},
                {"field": "family_name_score", "operator": ">=", "threshold": 0.95},
            ],
        }
        response = client.post(f"{base_url}/rules", json=body)
        assert response.status_code == 201
        data = response.json()
        assert data["source"] == "learned"
        assert data["generated_at"]
        assert data["description"] == "phone_score >= 1 AND family_name_score >= 0.95"

        ids = [r["id"] for r in client.get(f"{base_url}/rules").json()["data"]]
        assert ids[-1] == "MANUAL_PHONE_AND_FAMILY"

    def test_duplicate_rule(self, client, base_url):
        """Test reusing a rule id returns 409."""
        body = {"id": "EXACT_NATIONAL_ID", "clauses": [{"field": "phone_score", "operator": ">=", "threshold": 1}]}
        response = client.post(f"{base_url}/rules", json=body)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_RULE"

    def test_unknown_field(self, client, base_url):
        """Test rules over unknown score fields are rejected."""
        body = {"id": "BAD", "clauses": [{"field": "__import__", "operator": ">=", "threshold": 1}]}
        response = client.post(f"{base_url}/rules", json=body)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_RULE"

    def test_unknown_operator(self, client, base_url):
        """Test rules with an unknown operator are rejected."""
        body = {"id": "BAD", "clauses": [{"field": "phone_score", "operator": "~", "threshold": 1}]}
        response = client.post(f"{base_url}/rules", json=body)
        assert response.status_code == 422

    def test_rule_without_clauses(self, client, base_url):
        """Test a rule needs at least one clause."""
        response = client.post(f"{base_url}/rules", json={"id": "EMPTY"})
        assert response.status_code == 422


class TestLearnFlow:
    """Learn, persist, and the pattern is covered from then on."""

    def test_learn_persist_and_cover(self, client, base_url):
        """Test a learned rule, once stored, covers its pair in later runs."""
        rows = [
            row("فاطمة أحمد علي الحسني", "محمد صالح", nid="1001", phone="771234567"),
            row("فطيمة أحمد علي", "محمد", nid="1002", phone="733000111"),
        ]
        session_id = _create_session(client, base_url, rows=rows)
        learn_body = {"session_id": session_id, "record_ids": ["R1", "R2"]}

        response = client.post(f"{base_url}/runs/learn", json=learn_body)
        assert response.status_code == 202
        data = _finish(client, base_url, response.json()["run_id"])
        assert data["status"] == "done"
        rule = data["result"]
        assert rule["id"].startswith("LEARNED_")

        # not stored until confirmed
        ids = [r["id"] for r in client.get(f"{base_url}/rules").json()["data"]]
        assert rule["id"] not in ids

        response = client.post(f"{base_url}/rules", json=rule)
        assert response.status_code == 201

        response = client.post(f"{base_url}/runs/learn", json=learn_body)
        data = _finish(client, base_url, response.json()["run_id"])
        assert data["status"] == "error"
        assert data["error"]["code"] == "PATTERN_ALREADY_COVERED"
        assert rule["id"] in data["error"]["details"]["matched_rules"]

        cluster = client.post(f"{base_url}/runs", json={"session_id": session_id, "kind": "cluster"})
        clusters = _finish(client, base_url, cluster.json()["run_id"])["result"]["clusters"]
        assert clusters[0]["reasons"] == [rule["id"]]
