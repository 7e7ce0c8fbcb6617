"""
Tests for scripts/recompute_aog_buckets.py
"""

import asyncio
import pytest
from datetime import datetime

from mongomock_motor import AsyncMongoMockClient

import scripts.recompute_aog_buckets as recompute_script
from scripts.recompute_aog_buckets import changed_fields, recompute


def stale_event():
    return {
        "_id": "evt-1",
        "aircraft_id": "a1",
        "detected_at": datetime(2025, 3, 1, 8, 0),
        "reported_at": datetime(2025, 3, 1, 8, 0),
        "installation_complete_at": datetime(2025, 3, 1, 12, 0),
        "cleared_at": datetime(2025, 3, 1, 14, 0),
        "technical_time_hours": 0.0,
        "procurement_time_hours": 0.0,
        "ops_time_hours": 0.0,
        "total_downtime_hours": 0.0,
    }


class TestRecomputeBuckets:

    def test_changed_fields(self):
        diff = changed_fields(stale_event(), {
            "technical_time_hours": 4.0,
            "procurement_time_hours": 0.0,
            "ops_time_hours": 0.0,
            "total_downtime_hours": 6.0,
        })
        assert diff == {"technical_time_hours": 4.0, "total_downtime_hours": 6.0}

    def test_dry_run_writes_nothing(self):
        db = AsyncMongoMockClient()["recompute_test"]
        asyncio.run(db.aog_events.insert_one(stale_event()))

        assert asyncio.run(recompute(db, dry_run=True)) == 1
        event = asyncio.run(db.aog_events.find_one({"_id": "evt-1"}))
        assert event["total_downtime_hours"] == 0.0

    def test_updates_stale_and_skips_legacy(self):
        db = AsyncMongoMockClient()["recompute_test"]
        asyncio.run(db.aog_events.insert_one(stale_event()))
        asyncio.run(db.aog_events.insert_one({
            "_id": "legacy",
            "aircraft_id": "a1",
            "detected_at": datetime(2024, 1, 1),
            "cleared_at": datetime(2024, 1, 2),
        }))

        assert asyncio.run(recompute(db, dry_run=False)) == 1
        event = asyncio.run(db.aog_events.find_one({"_id": "evt-1"}))
        assert event["technical_time_hours"] == 4.0
        assert event["total_downtime_hours"] == 6.0
        assert asyncio.run(recompute(db, dry_run=False)) == 0

    def test_client_closed_when_recompute_fails(self, monkeypatch):
        closed = []

        class RecordingClient:
            def __init__(self, url):
                self.url = url

            def __getitem__(self, name):
                return name

            def close(self):
                closed.append(True)

        async def failing_recompute(db, dry_run):
            raise RuntimeError("connection lost")

        monkeypatch.setattr(recompute_script, "AsyncIOMotorClient", RecordingClient)
        monkeypatch.setattr(recompute_script, "recompute", failing_recompute)
        monkeypatch.setattr("sys.argv", ["recompute_aog_buckets.py", "--dry-run"])

        with pytest.raises(RuntimeError):
            asyncio.run(recompute_script.main())
        assert closed == [True]
