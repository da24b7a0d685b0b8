"""
Tests for api/routes/signups.py: POST /api/bhajan-signups

Route functions are called directly against the seeded in-memory database,
then the same behaviour is checked over HTTP with TestClient.
"""
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.routes.signups import list_signups, signup_query
from utils.errors import InvalidEnumValue, InvalidPagination, UpstreamError
from utils.vocabulary import Vocabulary


@pytest.fixture()
def vocab():
    return Vocabulary.default()


def _list(body, conn, vocabulary):
    return list_signups(query=signup_query(body, vocabulary), conn=conn,
                        vocabulary=vocabulary)


def _ids(result):
    return [row["id"] for row in result["data"]]


class TestListSignups:
    def test_no_body_returns_everything(self, db, vocab):
        result = _list(body=None, conn=db, vocabulary=vocab)
        assert result["total"] == 5
        assert result["page"] == 1
        assert result["pageSize"] == 5
        assert _ids(result) == ["s1", "s2", "s3", "s4", "s5"]

    def test_rows_are_formatted(self, db, vocab):
        result = _list(body={"filters": {"tempo": "Fast"}}, conn=db,
                       vocabulary=vocab)
        first = result["data"][0]
        assert first["tempo"] == {"value": "Fast", "icon": "🚀"}
        assert first["diety"] == {"value": "Shiva", "icon": "🕉️"}
        assert first["signedUp"] is True

    def test_unknown_stored_tempo_gets_fallback(self, db, vocab):
        result = _list(body={"filters": {"singer": "meera"}}, conn=db,
                       vocabulary=vocab)
        assert result["data"][0]["tempo"] == {"value": "Lento", "icon": "⏱️"}

    def test_deity_filter(self, db, vocab):
        result = _list(body={"filters": {"diety": "Shiva"}}, conn=db,
                       vocabulary=vocab)
        assert _ids(result) == ["s1", "s5"]
        assert result["total"] == 2

    def test_deity_alias(self, db, vocab):
        result = _list(body={"filters": {"deity": "Ganesha"}}, conn=db,
                       vocabulary=vocab)
        assert _ids(result) == ["s2"]
        assert result["debug"]["appliedFilters"] == {"deity": "Ganesha"}

    def test_singer_substring_case_insensitive(self, db, vocab):
        result = _list(body={"filters": {"singer": "LAKSHMI"}}, conn=db,
                       vocabulary=vocab)
        assert _ids(result) == ["s1", "s3"]

    def test_offering_on_date_matches_normalized_value(self, db, vocab):
        result = _list(
            body={"filters": {"offering_on": "2024-05-12T18:00:00Z"}},
            conn=db, vocabulary=vocab)
        assert _ids(result) == ["s1"]

    def test_signed_up_false(self, db, vocab):
        result = _list(body={"filters": {"signedUp": False}}, conn=db,
                       vocabulary=vocab)
        assert _ids(result) == ["s3"]
        assert result["data"][0]["signedUp"] is False

    def test_combined_filters_are_anded(self, db, vocab):
        result = _list(
            body={"filters": {"tempo": "Fast", "offeringStatus": "PENDING"}},
            conn=db, vocabulary=vocab)
        assert _ids(result) == ["s4"]

    def test_sort_desc(self, db, vocab):
        result = _list(
            body={"sort": {"field": "offering_on", "order": "desc"}},
            conn=db, vocabulary=vocab)
        assert _ids(result) == ["s4", "s2", "s1", "s3", "s5"]

    def test_pagination(self, db, vocab):
        body = {
            "pagination": {"page": 2, "pageSize": 2},
            "sort": {"field": "created_at", "order": "asc"},
        }
        result = _list(body=body, conn=db, vocabulary=vocab)
        assert _ids(result) == ["s3", "s4"]
        assert result["total"] == 5
        assert result["page"] == 2
        assert result["pageSize"] == 2
        assert result["debug"]["resultCount"] == 2

    def test_max_page_size(self, db, vocab):
        result = _list(body={"pagination": {"page": 1, "pageSize": 100}},
                       conn=db, vocabulary=vocab)
        assert result["total"] == 5
        assert result["pageSize"] == 100

    def test_page_past_end(self, db, vocab):
        result = _list(body={"pagination": {"page": 9, "pageSize": 10}},
                       conn=db, vocabulary=vocab)
        assert result["data"] == []
        assert result["total"] == 5

    def test_page_beyond_sqlite_integer_range(self, db, vocab):
        result = _list(body={"pagination": {"page": 10**18, "pageSize": 100}},
                       conn=db, vocabulary=vocab)
        assert result["data"] == []
        assert result["total"] == 5
        assert result["page"] == 10**18

    def test_same_request_same_order(self, db, vocab):
        body = {"sort": {"field": "tempo", "order": "asc"}}
        first = _list(body=body, conn=db, vocabulary=vocab)
        second = _list(body=body, conn=db, vocabulary=vocab)
        assert _ids(first) == _ids(second)

    def test_debug_block(self, db, vocab):
        result = _list(body={}, conn=db, vocabulary=vocab)
        assert result["debug"]["executionTime"].endswith("ms")
        assert result["debug"]["appliedFilters"] is None

    def test_invalid_enum_raised_before_query(self, vocab):
        # A closed connection would fail any datastore call.
        conn = sqlite3.connect(":memory:")
        conn.close()
        with pytest.raises(InvalidEnumValue):
            _list(body={"filters": {"tempo": "Lento"}}, conn=conn,
                  vocabulary=vocab)

    def test_invalid_pagination(self, db, vocab):
        with pytest.raises(InvalidPagination):
            _list(body={"pagination": {"page": 1, "pageSize": 101}},
                  conn=db, vocabulary=vocab)

    def test_datastore_error_wrapped(self, vocab):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        with pytest.raises(UpstreamError) as exc_info:
            _list(body=None, conn=conn, vocabulary=vocab)
        assert exc_info.value.message == "Failed to fetch Bhajan signups"
        assert "no such table" in exc_info.value.details


class TestListSignupsHttp:
    def test_ok(self, client):
        resp = client.post("/api/bhajan-signups", json={
            "filters": {"diety": "Shiva"},
            "pagination": {"page": 1, "pageSize": 10},
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert [r["id"] for r in data["data"]] == ["s1", "s5"]
        assert data["data"][1]["tempo"]["icon"] == "⏱️"

    def test_empty_body(self, client):
        resp = client.post("/api/bhajan-signups")
        assert resp.status_code == 200
        assert resp.json()["total"] == 5

    def test_null_columns_stay_null(self, client):
        resp = client.post("/api/bhajan-signups", json={"filters": {"singer": "Ravi"}})
        row = resp.json()["data"][0]
        assert "details" in row
        assert row["details"] is None

    def test_invalid_enum_body(self, client):
        resp = client.post("/api/bhajan-signups", json={"filters": {"diety": "Zeus"}})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "InvalidEnumValue"
        assert body["field"] == "diety"
        assert "Shiva" in body["validValues"]

    def test_invalid_sort_order(self, client):
        resp = client.post("/api/bhajan-signups",
                           json={"sort": {"field": "title", "order": "sideways"}})
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidSortOrder"

    def test_malformed_json(self, client):
        resp = client.post("/api/bhajan-signups", content=b"{not json",
                           headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidRequestFormat"

    def test_array_body(self, client):
        resp = client.post("/api/bhajan-signups", json=[1, 2, 3])
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidRequestFormat"

    def test_missing_table_is_500(self, client, db_path):
        conn = sqlite3.connect(str(db_path))
        conn.execute('DROP TABLE "Bhajan_Signups"')
        conn.commit()
        conn.close()
        resp = client.post("/api/bhajan-signups", json={})
        assert resp.status_code == 500
        body = resp.json()
        assert body["code"] == "UpstreamError"
        assert body["error"] == "Failed to fetch Bhajan signups"
        assert "no such table" in body["details"]

    def test_huge_page_is_empty_not_500(self, client):
        resp = client.post("/api/bhajan-signups",
                           json={"pagination": {"page": 10**18, "pageSize": 100}})
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == []
        assert body["total"] == 5


class TestValidationBeforeDatastore:
    """A bad request is a 400 even when the database cannot be opened."""

    def _client(self, tmp_path):
        from fastapi.testclient import TestClient
        from api.app import create_app

        app = create_app(db_path=tmp_path / "missing.sqlite")
        return TestClient(app, raise_server_exceptions=False)

    def test_invalid_enum_with_missing_database(self, tmp_path):
        resp = self._client(tmp_path).post(
            "/api/bhajan-signups", json={"filters": {"tempo": "Glacial"}})
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidEnumValue"
        assert not (tmp_path / "missing.sqlite").exists()

    def test_missing_fields_with_missing_database(self, tmp_path):
        resp = self._client(tmp_path).post("/api/bhajan-signup/create",
                                           json={"title": "Om"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "MissingRequiredFields"

    def test_bad_catalog_filter_with_missing_database(self, tmp_path):
        resp = self._client(tmp_path).post("/api/bhajans",
                                           json={"filters": {"singer": "x"}})
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidRequestFormat"

    def test_bad_day_with_missing_database(self, tmp_path):
        resp = self._client(tmp_path).get(
            "/api/bhajan-signups/deity-distribution",
            params={"offering_on": "2024-13-01"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "InvalidDateFormat"

    def test_valid_request_with_missing_database_is_500(self, tmp_path):
        resp = self._client(tmp_path).post("/api/bhajan-signups", json={})
        assert resp.status_code == 500
        assert resp.json()["code"] == "UpstreamError"
