"""
API tests: aircraft, daily status and availability

Runs the FastAPI app in-process against mongomock-motor.
"""


class TestAircraftAPI:

    def test_create_normalises_registration(self, client, aircraft):
        assert aircraft["registration"] == "HZ-A42"
        assert aircraft["status"] == "active"
        assert aircraft["_id"]

    def test_duplicate_registration_conflict(self, client, aircraft):
        response = client.post("/api/aircraft", json={
            "registration": " HZ-A42 ",
            "fleet_group": "A340",
            "aircraft_type": "A340-642",
            "msn": "9999",
            "owner": "Other",
            "manufacture_date": "2010-01-01",
            "engines_count": 4,
        })
        assert response.status_code == 409, f"Expected 409, got {response.status_code}: {response.text}"

    def test_invalid_engine_count(self, client):
        response = client.post("/api/aircraft", json={
            "registration": "HZ-X1",
            "fleet_group": "G650ER",
            "aircraft_type": "G650ER",
            "msn": "6001",
            "owner": "Owner",
            "manufacture_date": "2015-01-01",
            "engines_count": 6,
        })
        assert response.status_code == 422

    def test_list_filter_and_fleet_groups(self, client, aircraft):
        client.post("/api/aircraft", json={
            "registration": "HZ-G1",
            "fleet_group": "G650ER",
            "aircraft_type": "G650ER",
            "msn": "6001",
            "owner": "Owner",
            "manufacture_date": "2015-01-01",
            "engines_count": 2,
            "status": "parked",
        })

        assert len(client.get("/api/aircraft").json()) == 2
        parked = client.get("/api/aircraft", params={"status": "parked"}).json()
        assert [a["registration"] for a in parked] == ["HZ-G1"]
        assert client.get("/api/aircraft/fleet-groups").json() == ["A340", "G650ER"]

    def test_update_and_delete(self, client, aircraft):
        aircraft_id = aircraft["_id"]

        response = client.put(f"/api/aircraft/{aircraft_id}", json={"owner": "New Owner", "status": "leased"})
        assert response.status_code == 200
        assert response.json()["owner"] == "New Owner"
        assert response.json()["status"] == "leased"

        assert client.delete(f"/api/aircraft/{aircraft_id}").status_code == 200
        assert client.get(f"/api/aircraft/{aircraft_id}").status_code == 404

    def test_viewer_cannot_write(self, viewer_client):
        response = viewer_client.post("/api/aircraft", json={
            "registration": "HZ-V1",
            "fleet_group": "A340",
            "aircraft_type": "A340",
            "msn": "1",
            "owner": "Owner",
            "manufacture_date": "2015-01-01",
            "engines_count": 4,
        })
        assert response.status_code == 403
        assert viewer_client.get("/api/aircraft").status_code == 200


class TestDailyStatusAPI:

    def post_status(self, client, aircraft_id, day, **hours):
        return client.post("/api/daily-status", json={"aircraft_id": aircraft_id, "date": day, **hours})

    def test_fmc_is_derived(self, client, aircraft):
        response = self.post_status(client, aircraft["_id"], "2025-01-01T15:30:00Z", nmcm_s_hours=4, nmcm_u_hours=2)

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["fmc_hours"] == 18.0
        assert data["date"].startswith("2025-01-01T00:00:00")

    def test_duplicate_day_conflict(self, client, aircraft):
        assert self.post_status(client, aircraft["_id"], "2025-01-01").status_code == 201
        assert self.post_status(client, aircraft["_id"], "2025-01-01T12:00:00").status_code == 409

    def test_downtime_above_pos_rejected(self, client, aircraft):
        response = self.post_status(client, aircraft["_id"], "2025-01-01", pos_hours=10, nmcm_s_hours=8, nmcm_u_hours=4)
        assert response.status_code == 400

    def test_unknown_aircraft(self, client):
        assert self.post_status(client, "missing", "2025-01-01").status_code == 404

    def test_update_rederives_fmc(self, client, aircraft):
        record = self.post_status(client, aircraft["_id"], "2025-01-01").json()

        response = client.put(f"/api/daily-status/{record['_id']}", json={"nmcm_u_hours": 6})
        assert response.status_code == 200
        assert response.json()["fmc_hours"] == 18.0

    def test_availability_endpoints(self, client, aircraft):
        aircraft_id = aircraft["_id"]
        self.post_status(client, aircraft_id, "2025-01-01", nmcm_u_hours=12)
        self.post_status(client, aircraft_id, "2025-01-02")
        self.post_status(client, aircraft_id, "2025-02-01")

        summary = client.get("/api/daily-status/availability", params={"aircraft_id": aircraft_id}).json()
        assert summary["total_pos_hours"] == 72.0
        assert summary["total_fmc_hours"] == 60.0
        assert summary["availability_percentage"] == 83.33
        assert summary["record_count"] == 3

        monthly = client.get("/api/daily-status/availability/aggregated", params={"period": "month"}).json()
        assert [row["period"] for row in monthly] == ["2025-02", "2025-01"]
        assert monthly[1]["availability_percentage"] == 75.0

        fleet = client.get("/api/daily-status/availability/fleet").json()
        assert fleet[0]["registration"] == "HZ-A42"

        ranged = client.get("/api/daily-status", params={"start_date": "2025-01-02", "end_date": "2025-01-31"}).json()
        assert len(ranged) == 1

    def test_invalid_period(self, client):
        assert client.get("/api/daily-status/availability/aggregated", params={"period": "week"}).status_code == 422
