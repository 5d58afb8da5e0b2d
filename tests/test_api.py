"""HTTP surface tests (FastAPI TestClient, in-memory SQLite)."""

from __future__ import annotations

from empires import config
from empires.game.catalog import BUILDINGS, WAREHOUSE, WOODCUTTER


def _found(client) -> int:
    r = client.post("/villages", json={"owner_id": 1, "name": "Capital City", "x": 5, "y": 6})
    assert r.status_code == 201, r.text
    return r.json()["village_id"]


class TestVillageRoutes:
    def test_found_and_read(self, client):
        vid = _found(client)
        r = client.get(f"/villages/{vid}")
        assert r.status_code == 200
        body = r.json()
        assert body["resources"] == {"wood": 750, "clay": 750, "iron": 750, "crop": 750}
        assert body["caps"] == {"warehouse": 800, "granary": 800}
        assert body["active_construction"] is None

    def test_unknown_village_is_404(self, client):
        r = client.get("/villages/9999")
        assert r.status_code == 404
        assert r.json()["code"] == "village_not_found"

    def test_upgrade_then_conflict(self, client):
        vid = _found(client)
        r = client.post(f"/villages/{vid}/upgrade", json={"slot": 1, "building_type": WOODCUTTER})
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["status"] == "started"
        assert body["cost"] == {"wood": 40, "clay": 100, "iron": 50, "crop": 60}
        assert body["duration_seconds"] == 300
        assert body["to_level"] == 1

        r = client.post(f"/villages/{vid}/upgrade", json={"slot": 2, "building_type": 2})
        assert r.status_code == 409
        assert r.json()["code"] == "already_building"

    def test_prerequisite_rejection(self, client):
        vid = _found(client)
        r = client.post(f"/villages/{vid}/upgrade", json={"slot": 20, "building_type": 19})
        assert r.status_code == 400
        body = r.json()
        assert body["code"] == "prerequisites_not_met"
        assert len(body["missing"]) == 2

    def test_slot_validation(self, client):
        vid = _found(client)
        r = client.post(f"/villages/{vid}/upgrade", json={"slot": 41, "building_type": WOODCUTTER})
        assert r.status_code == 422

    def test_construction_finishes_on_read(self, client, clock):
        vid = _found(client)
        client.post(f"/villages/{vid}/upgrade", json={"slot": 1, "building_type": WOODCUTTER})

        r = client.get(f"/villages/{vid}")
        assert r.json()["active_construction"]["time_remaining_seconds"] == 300

        clock.advance(300)
        body = client.get(f"/villages/{vid}").json()
        assert body["active_construction"] is None
        assert body["rates_per_hour"]["wood"] == 55
        assert body["buildings"][0]["level"] == 1

    def test_buildings_listing(self, client):
        vid = _found(client)
        client.post(f"/villages/{vid}/upgrade", json={"slot": 19, "building_type": WAREHOUSE})
        body = client.get(f"/villages/{vid}/buildings").json()
        assert [b["slot"] for b in body["buildings"]] == [19]
        assert 19 not in body["free_village_slots"]
        assert len(body["free_resource_fields"]) == 18

    def test_preview(self, client):
        vid = _found(client)
        r = client.get(f"/villages/{vid}/upgrade/preview", params={"slot": 1, "building_type": WOODCUTTER})
        body = r.json()
        assert body["allowed"] is True
        assert body["duration_seconds"] == 300

    def test_cancel_within_window(self, client, clock):
        vid = _found(client)
        client.post(f"/villages/{vid}/upgrade", json={"slot": 1, "building_type": WOODCUTTER})
        clock.advance(60)

        r = client.post(f"/villages/{vid}/cancel", json={"slot": 1})
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["refunded"] == {"wood": 32, "clay": 80, "iron": 40, "crop": 48}
        assert body["resources"]["wood"] == 742

    def test_cancel_too_late(self, client, clock):
        vid = _found(client)
        client.post(f"/villages/{vid}/upgrade", json={"slot": 19, "building_type": WAREHOUSE})
        clock.advance(400)

        r = client.post(f"/villages/{vid}/cancel", json={"slot": 19})
        assert r.status_code == 409
        assert r.json()["code"] == "cancellation_window_expired"


class TestCatalogRoutes:
    def test_list(self, client):
        body = client.get("/catalog").json()
        assert len(body["buildings"]) == len(BUILDINGS)
        assert body["slots"] == {"resource_fields": [1, 18], "village_slots": [19, 40]}
        assert body["buildable"]["resource_field"] == [1, 2, 3, 4]
        assert WAREHOUSE in body["buildable"]["village_slot"]

    def test_level_info(self, client):
        body = client.get(f"/catalog/{WOODCUTTER}", params={"level": 2, "main_building_level": 4}).json()
        assert body["cost"]["wood"] == 51
        assert body["base_duration_seconds"] == 384
        assert body["duration_seconds"] == 345  # floor(384 * 0.9)
        assert body["stats"]["production"] == 80

    def test_unknown_type(self, client):
        r = client.get("/catalog/99")
        assert r.status_code == 400
        assert r.json()["code"] == "unknown_building"


class TestGameRoutes:
    def test_tick_requires_admin_key(self, client, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_KEY", "s3cret")
        assert client.post("/game/tick").status_code == 403
        assert client.post("/game/tick", headers={"X-Admin-Key": "nope"}).status_code == 403

    def test_tick_with_admin_key(self, client, clock, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_KEY", "s3cret")
        _found(client)
        clock.advance(60)
        r = client.post("/game/tick", headers={"X-Admin-Key": "s3cret"})
        assert r.status_code == 200
        assert r.json()["villages_total"] == 1

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
