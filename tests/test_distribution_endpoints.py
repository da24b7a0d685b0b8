"""
Tests for the distribution endpoints in api/routes/signups.py

GET /api/bhajan-signups/deity-distribution
GET /api/bhajan-signups/tempo-distribution
"""
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.routes.signups import (
    get_deity_distribution,
    get_tempo_distribution,
    offering_day,
)
from utils.errors import InvalidDateFormat, UpstreamError
from utils.vocabulary import Vocabulary


@pytest.fixture()
def vocab():
    return Vocabulary.default()


def _deity(offering_on, conn, vocabulary):
    return get_deity_distribution(day=offering_day(offering_on), conn=conn,
                                  vocabulary=vocabulary)


def _tempo(offering_on, conn, vocabulary):
    return get_tempo_distribution(day=offering_day(offering_on), conn=conn,
                                  vocabulary=vocabulary)


def _counts(result, key):
    return {d[key]: d["count"] for d in result["data"]}


class TestDeityDistribution:
    def test_all_dates(self, db, vocab):
        result = _deity(offering_on=None, conn=db, vocabulary=vocab)
        assert result["status"] == "success"
        assert result["filters"] == {"offering_on": None}
        assert [d["diety"] for d in result["data"]] == list(vocab.deities)
        counts = _counts(result, "diety")
        # s3 (Krishna) is not signed up
        assert counts == {
            "Sai": 1, "Ganesha": 1, "Shiva": 2, "Rama": 0, "Krishna": 0,
            "Sarva Dharma": 0, "Rama, Krishna": 0, "Multi Faith": 0, "Other": 0,
        }

    def test_single_day_window(self, db, vocab):
        result = _deity(offering_on="2024-05-12", conn=db,
                        vocabulary=vocab)
        counts = _counts(result, "diety")
        # s1 18:00 and s2 23:59:00 are inside; s4 at 2024-05-13T00:00:01 is not
        assert counts["Shiva"] == 1
        assert counts["Ganesha"] == 1
        assert counts["Sai"] == 0
        assert result["filters"] == {"offering_on": "2024-05-12"}

    def test_empty_day_is_zero_filled(self, db, vocab):
        result = _deity(offering_on="2023-01-01", conn=db,
                        vocabulary=vocab)
        assert len(result["data"]) == len(vocab.deities)
        assert all(d["count"] == 0 for d in result["data"])

    def test_icons(self, db, vocab):
        result = _deity(offering_on=None, conn=db, vocabulary=vocab)
        icons = {d["diety"]: d["icon"] for d in result["data"]}
        assert icons["Ganesha"] == "🐘"
        assert icons["Other"] == "🙏"

    def test_invalid_date(self, db, vocab):
        with pytest.raises(InvalidDateFormat):
            _deity(offering_on="12-05-2024", conn=db,
                   vocabulary=vocab)

    def test_datastore_error(self, vocab):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        with pytest.raises(UpstreamError) as exc_info:
            _deity(offering_on=None, conn=conn, vocabulary=vocab)
        assert exc_info.value.message == "Failed to fetch deity distribution"


class TestTempoDistribution:
    def test_all_dates(self, db, vocab):
        result = _tempo(offering_on=None, conn=db, vocabulary=vocab)
        assert [d["tempo"] for d in result["data"]] == list(vocab.tempos)
        # s5 has an unknown tempo and is ignored
        assert _counts(result, "tempo") == {
            "Slow": 1, "Medium": 0, "Fast": 2, "Very Fast": 0,
        }

    def test_single_day_window(self, db, vocab):
        result = _tempo(offering_on="2024-05-12", conn=db,
                        vocabulary=vocab)
        assert _counts(result, "tempo") == {
            "Slow": 1, "Medium": 0, "Fast": 1, "Very Fast": 0,
        }

    def test_fast_icon(self, db, vocab):
        result = _tempo(offering_on=None, conn=db, vocabulary=vocab)
        icons = {d["tempo"]: d["icon"] for d in result["data"]}
        assert icons["Fast"] == "🚀"

    def test_datastore_error(self, vocab):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        with pytest.raises(UpstreamError) as exc_info:
            _tempo(offering_on=None, conn=conn, vocabulary=vocab)
        assert exc_info.value.message == "Failed to fetch tempo distribution"


class TestDistributionHttp:
    def test_deity(self, client):
        resp = client.get("/api/bhajan-signups/deity-distribution",
                          params={"offering_on": "2024-05-12"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        assert body["filters"]["offering_on"] == "2024-05-12"
        assert len(body["data"]) == 9

    def test_tempo_without_date(self, client):
        resp = client.get("/api/bhajan-signups/tempo-distribution")
        assert resp.status_code == 200
        assert resp.json()["filters"] == {"offering_on": None}

    @pytest.mark.parametrize("path", [
        "/api/bhajan-signups/deity-distribution",
        "/api/bhajan-signups/tempo-distribution",
    ])
    def test_bad_date(self, client, path):
        resp = client.get(path, params={"offering_on": "2024-13-01"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "InvalidDateFormat"
        assert body["error"] == "Invalid date format. Use YYYY-MM-DD"

    def test_created_signup_is_counted(self, client):
        before = client.get("/api/bhajan-signups/deity-distribution",
                            params={"offering_on": "2024-05-19"}).json()
        client.post("/api/bhajan-signup/create", json={
            "title": "Jaya Jaya Rama", "singer": "Kiran", "diety": "Rama",
            "tempo": "Medium", "offering_on": "2024-05-19T18:00:00",
        })
        after = client.get("/api/bhajan-signups/deity-distribution",
                           params={"offering_on": "2024-05-19"}).json()
        assert _counts(before, "diety")["Rama"] == 0
        assert _counts(after, "diety")["Rama"] == 1
