"""
API tests: AOG events, milestones, workflow, parts and budget integration
"""

import asyncio
import pytest
from datetime import datetime


def create_event(client, aircraft_id, **fields):
    payload = {
        "aircraft_id": aircraft_id,
        "detected_at": "2025-03-01T08:00:00Z",
        "reason_code": "Hydraulic leak on landing gear",
        "responsible_party": "Internal",
        **fields,
    }
    response = client.post("/api/aog-events", json=payload)
    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.text}"
    return response.json()


def transition(client, event_id, to_status, **fields):
    return client.post(f"/api/aog-events/{event_id}/transitions", json={"to_status": to_status, **fields})


class TestAOGCrud:

    def test_create_defaults(self, client, aircraft):
        event = create_event(client, aircraft["_id"])

        assert event["current_status"] == "REPORTED"
        assert event["reported_at"].startswith("2025-03-01T08:00:00")
        assert event["total_downtime_hours"] == 0.0
        assert event["is_legacy"] is False
        assert event["milestone_history"][0]["milestone"] == "reported_at"

    def test_create_with_milestones_computes_buckets(self, client, aircraft):
        event = create_event(
            client, aircraft["_id"],
            procurement_requested_at="2025-03-01T12:00:00Z",
            available_at_store_at="2025-03-03T12:00:00Z",
            installation_complete_at="2025-03-03T20:00:00Z",
            test_start_at="2025-03-03T21:00:00Z",
            up_and_running_at="2025-03-03T23:00:00Z",
        )

        assert event["technical_time_hours"] == 12.0
        assert event["procurement_time_hours"] == 48.0
        assert event["ops_time_hours"] == 2.0
        assert event["total_downtime_hours"] == 63.0
        assert event["cleared_at"].startswith("2025-03-03T23:00:00")
        assert event["downtime_hours"] == 63.0

    def test_out_of_order_milestones_rejected(self, client, aircraft):
        response = client.post("/api/aog-events", json={
            "aircraft_id": aircraft["_id"],
            "detected_at": "2025-03-01T08:00:00Z",
            "reason_code": "Leak",
            "installation_complete_at": "2025-03-02T08:00:00Z",
            "test_start_at": "2025-03-01T09:00:00Z",
        })
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_TIMESTAMP_ORDER"

    def test_cleared_before_detected_rejected(self, client, aircraft):
        response = client.post("/api/aog-events", json={
            "aircraft_id": aircraft["_id"],
            "detected_at": "2025-03-01T08:00:00Z",
            "cleared_at": "2025-03-01T07:00:00Z",
            "reason_code": "Leak",
        })
        assert response.status_code == 400

    def test_unknown_event(self, client):
        response = client.get("/api/aog-events/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "AOG_NOT_FOUND"

    def test_update_milestones_recomputes_and_audits(self, client, aircraft):
        event = create_event(client, aircraft["_id"], cost_labor=100)

        response = client.put(f"/api/aog-events/{event['_id']}", json={
            "installation_complete_at": "2025-03-01T14:00:00Z",
            "up_and_running_at": "2025-03-01T16:00:00Z",
            "cost_labor": 250,
        })
        assert response.status_code == 200, response.text
        updated = response.json()

        assert updated["technical_time_hours"] == 6.0
        assert updated["total_downtime_hours"] == 8.0
        assert [m["milestone"] for m in updated["milestone_history"]] == [
            "reported_at", "installation_complete_at", "up_and_running_at",
        ]
        assert updated["cost_audit_trail"] == [{
            "field": "cost_labor",
            "previous_value": 100.0,
            "new_value": 250.0,
            "changed_at": updated["cost_audit_trail"][0]["changed_at"],
            "changed_by": "admin-1",
            "reason": None,
        }]

    def test_null_clears_milestone(self, client, aircraft):
        event = create_event(client, aircraft["_id"], installation_complete_at="2025-03-01T10:00:00Z")

        updated = client.put(f"/api/aog-events/{event['_id']}", json={"installation_complete_at": None}).json()
        assert updated["installation_complete_at"] is None

    def test_update_out_of_order_rejected(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        response = client.put(f"/api/aog-events/{event['_id']}", json={"test_start_at": "2025-02-01T00:00:00Z"})
        assert response.status_code == 400

    def test_correcting_cleared_at_recomputes_total(self, client, aircraft):
        event = create_event(client, aircraft["_id"], cleared_at="2025-03-01T10:00:00Z")
        assert event["up_and_running_at"] is None
        assert event["total_downtime_hours"] == 2.0

        response = client.put(f"/api/aog-events/{event['_id']}", json={"cleared_at": "2025-03-01T20:00:00Z"})
        assert response.status_code == 200, response.text
        updated = response.json()

        assert updated["cleared_at"].startswith("2025-03-01T20:00:00")
        assert updated["downtime_hours"] == 12.0
        assert updated["total_downtime_hours"] == updated["downtime_hours"], "total must follow the corrected clearance"

    def test_correcting_up_and_running_moves_copied_clearance(self, client, aircraft):
        event = create_event(client, aircraft["_id"], up_and_running_at="2025-03-01T10:00:00Z")
        assert event["cleared_at"].startswith("2025-03-01T10:00:00")

        updated = client.put(
            f"/api/aog-events/{event['_id']}", json={"up_and_running_at": "2025-03-01T14:00:00Z"}
        ).json()

        assert updated["cleared_at"].startswith("2025-03-01T14:00:00")
        assert updated["total_downtime_hours"] == updated["downtime_hours"] == 6.0

    def test_delete(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        assert client.delete(f"/api/aog-events/{event['_id']}").status_code == 200
        assert client.delete(f"/api/aog-events/{event['_id']}").status_code == 404


class TestAOGQueries:

    def test_active_and_filters(self, client, aircraft):
        create_event(client, aircraft["_id"])
        create_event(client, aircraft["_id"], cleared_at="2025-03-02T08:00:00Z", responsible_party="OEM")

        assert client.get("/api/aog-events/active/count").json() == {"count": 1}
        assert len(client.get("/api/aog-events/active").json()) == 1
        assert len(client.get("/api/aog-events", params={"active": "false"}).json()) == 1
        assert len(client.get("/api/aog-events", params={"responsible_party": "OEM"}).json()) == 1

    def test_legacy_event_output(self, client, aircraft, mongo_db):
        asyncio.run(mongo_db.aog_events.insert_one({
            "_id": "legacy-1",
            "aircraft_id": aircraft["_id"],
            "detected_at": datetime(2024, 1, 1, 0, 0),
            "cleared_at": datetime(2024, 1, 1, 10, 30),
            "reason_code": "Old event",
            "responsible_party": "Other",
        }))

        event = client.get("/api/aog-events/legacy-1").json()
        assert event["is_legacy"] is True
        assert event["current_status"] == "BACK_IN_SERVICE"
        assert event["technical_time_hours"] == 10.5
        assert event["total_downtime_hours"] == 10.5

    def test_analytics(self, client, aircraft):
        create_event(
            client, aircraft["_id"],
            installation_complete_at="2025-03-01T14:00:00Z",
            cleared_at="2025-03-01T18:00:00Z",
        )
        create_event(client, aircraft["_id"], cleared_at="2025-03-01T10:00:00Z", responsible_party="OEM")
        create_event(client, aircraft["_id"])

        buckets = client.get("/api/aog-events/analytics/buckets", params={"fleet_group": "A340"}).json()
        assert buckets["summary"]["total_events"] == 3
        assert buckets["summary"]["active_events"] == 1
        assert buckets["buckets"]["technical"]["total_hours"] == 6.0
        assert buckets["by_aircraft"][0]["registration"] == "HZ-A42"

        other_group = client.get("/api/aog-events/analytics/buckets", params={"fleet_group": "G650ER"}).json()
        assert other_group["summary"]["total_events"] == 0

        by_party = client.get("/api/aog-events/analytics/downtime-by-responsibility").json()
        assert [(r["responsible_party"], r["total_downtime_hours"]) for r in by_party] == [("Internal", 10.0), ("OEM", 2.0)]

        stages = client.get("/api/aog-events/analytics/stages").json()
        assert stages["total_active"] == 1
        assert stages["by_status"] == [{"status": "REPORTED", "count": 3}]


class TestAOGWorkflow:

    def walk(self, client, event_id, statuses):
        for to_status in statuses:
            response = transition(client, event_id, to_status)
            assert response.status_code == 200, f"{to_status}: {response.text}"
        return response.json()

    def test_invalid_transition(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        response = transition(client, event["_id"], "BACK_IN_SERVICE")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_TRANSITION"

    def test_blocking_reason_required_and_recorded(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        self.walk(client, event["_id"], ["TROUBLESHOOTING", "ISSUE_IDENTIFIED", "PART_REQUIRED", "PROCUREMENT_REQUESTED"])

        response = transition(client, event["_id"], "FINANCE_APPROVAL_PENDING")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "BLOCKING_REASON_REQUIRED"

        blocked = transition(client, event["_id"], "FINANCE_APPROVAL_PENDING", blocking_reason="Finance").json()
        assert blocked["blocking_reason"] == "Finance"

        stages = client.get("/api/aog-events/analytics/stages").json()
        assert stages["total_blocked"] == 1
        assert stages["by_blocking_reason"] == [{"blocking_reason": "Finance", "count": 1}]

        moved_on = transition(client, event["_id"], "ORDER_PLACED").json()
        assert moved_on["blocking_reason"] is None

    def test_back_in_service_clears_event(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        done = self.walk(client, event["_id"], [
            "TROUBLESHOOTING", "ISSUE_IDENTIFIED", "RESOLVED_NO_PARTS", "BACK_IN_SERVICE",
        ])

        assert done["current_status"] == "BACK_IN_SERVICE"
        assert done["cleared_at"] is not None
        assert done["total_downtime_hours"] > 0

        history = client.get(f"/api/aog-events/{event['_id']}/history").json()
        assert [h["to_status"] for h in history] == [
            "TROUBLESHOOTING", "ISSUE_IDENTIFIED", "RESOLVED_NO_PARTS", "BACK_IN_SERVICE",
        ]
        assert history[0]["from_status"] == "REPORTED"
        assert history[0]["actor_role"] == "Admin"

        assert transition(client, event["_id"], "CLOSED").status_code == 200
        assert transition(client, event["_id"], "REPORTED").status_code == 400


class TestPartsAndBudget:

    def add_part(self, client, event_id, **fields):
        payload = {
            "part_number": "HYD-001",
            "part_description": "Hydraulic pump",
            "quantity": 1,
            "requested_date": "2025-03-01",
            **fields,
        }
        response = client.post(f"/api/aog-events/{event_id}/parts", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    def test_part_lifecycle(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        updated = self.add_part(client, event["_id"], estimated_cost=900)
        part = updated["part_requests"][0]
        assert part["status"] == "REQUESTED"

        response = client.put(
            f"/api/aog-events/{event['_id']}/parts/{part['_id']}",
            json={"status": "RECEIVED", "actual_cost": 1250.5},
        )
        assert response.status_code == 200
        assert response.json()["part_requests"][0]["status"] == "RECEIVED"

        self.add_part(client, event["_id"], part_number="SEAL-2", actual_cost=49.5)
        parts = client.get(f"/api/aog-events/{event['_id']}/parts").json()
        assert len(parts["part_requests"]) == 2
        assert parts["total_parts_cost"] == 1300.0

    def test_unknown_part(self, client, aircraft):
        event = create_event(client, aircraft["_id"])
        response = client.put(f"/api/aog-events/{event['_id']}/parts/missing", json={"status": "ORDERED"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "PART_NOT_FOUND"

    @pytest.mark.parametrize("budget,costs,code", [
        ({}, {"cost_labor": 100}, "NOT_BUDGET_AFFECTING"),
        ({"is_budget_affecting": True}, {"cost_labor": 100}, "MISSING_BUDGET_MAPPING"),
        ({"is_budget_affecting": True, "budget_clause_id": 3, "budget_period": "2025-03"}, {}, "NO_COSTS"),
    ])
    def test_generate_spend_preconditions(self, client, aircraft, budget, costs, code):
        event = create_event(client, aircraft["_id"], **costs)
        if budget:
            client.put(f"/api/aog-events/{event['_id']}/budget", json=budget)

        response = client.post(f"/api/aog-events/{event['_id']}/generate-spend")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == code

    def test_generate_spend(self, client, aircraft):
        event = create_event(client, aircraft["_id"], cost_labor=100, cost_parts=250.25, cost_external=49.75)
        client.put(f"/api/aog-events/{event['_id']}/budget", json={
            "is_budget_affecting": True, "budget_clause_id": 3, "budget_period": "2025-03",
        })

        response = client.post(f"/api/aog-events/{event['_id']}/generate-spend")
        assert response.status_code == 200, response.text
        spend_id = response.json()["linked_actual_spend_id"]
        assert spend_id

        spends = client.get("/api/budget/actual-spend", params={"fiscal_year": 2025}).json()
        assert len(spends) == 1
        assert spends[0]["amount"] == 400.0
        assert spends[0]["aircraft_group"] == "A340"
        assert spends[0]["notes"] == f"Generated from AOG event {event['_id']}"

        again = client.post(f"/api/aog-events/{event['_id']}/generate-spend")
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "DUPLICATE_SPEND"

        client.delete(f"/api/budget/actual-spend/{spend_id}")
        assert client.get(f"/api/aog-events/{event['_id']}").json()["linked_actual_spend_id"] is None
