"""HTTP surface for the work queue, points and system endpoints."""

from stitchline.extensions import db
from stitchline.models import LineItem, Order
from tests.conftest import make_line_item, make_order_payload, post_webhook


def _ingest(client, **extra):
    post_webhook(client, make_order_payload(line_items=[
        make_line_item(1, "Sugar Land Clutch"),
        make_line_item(2, "Gift Wrap Service"),
    ], **extra))
    order = db.session.query(Order).one()
    wallet, accessory = db.session.query(LineItem).filter_by(order_id=order.id).order_by(LineItem.id).all()
    return order, wallet, accessory


class TestFulfillmentRoutes:

    def test_claim_start_complete(self, client, db_session):
        _, wallet, _ = _ingest(client)

        r = client.post(f"/api/line-items/{wallet.id}/claim", json={"staff_id": "alice", "staff_name": "Alice"})
        assert r.status_code == 200
        assert r.get_json()["outcome"] == "ok"
        assert r.get_json()["line_item"]["claimed_by"] == "alice"

        r = client.post(f"/api/line-items/{wallet.id}/claim", json={"staff_id": "bob"})
        assert r.status_code == 409
        assert r.get_json()["outcome"] == "already_claimed"

        assert client.post(f"/api/line-items/{wallet.id}/start").status_code == 200

        r = client.post(f"/api/line-items/{wallet.id}/complete")
        assert r.status_code == 200
        assert r.get_json()["ledger_credited"] is True

        r = client.get("/api/points/daily")
        items = r.get_json()["items"]
        assert [(i["staff_id"], i["points"], i["orders_completed"]) for i in items] == [("alice", 5, 1)]

    def test_claim_requires_staff(self, client, db_session):
        _, wallet, _ = _ingest(client)
        assert client.post(f"/api/line-items/{wallet.id}/claim", json={}).status_code == 400

    def test_claim_accessory_conflicts(self, client, db_session):
        _, _, accessory = _ingest(client)
        r = client.post(f"/api/line-items/{accessory.id}/claim", json={"staff_id": "alice"})
        assert r.status_code == 409
        assert r.get_json()["outcome"] == "invalid_transition"

    def test_unknown_line_item(self, client, db_session):
        r = client.post("/api/line-items/999999/complete")
        assert r.status_code == 404

    def test_claim_order(self, client, db_session):
        order, wallet, _ = _ingest(client)
        r = client.post(f"/api/orders/{order.id}/claim", json={"staff_id": "alice"})
        assert r.status_code == 200
        assert [li["id"] for li in r.get_json()["claimed"]] == [wallet.id]

        assert client.post("/api/orders/424242/claim", json={"staff_id": "alice"}).status_code == 404

    def test_claim_many_validates_ids(self, client, db_session):
        _ingest(client)
        assert client.post("/api/line-items/claim", json={"staff_id": "alice"}).status_code == 400
        assert client.post(
            "/api/line-items/claim", json={"staff_id": "alice", "line_item_ids": ["abc"]}
        ).status_code == 400

    def test_queues(self, client, db_session):
        order, wallet, _ = _ingest(client)

        r = client.get("/api/wallets/available")
        assert r.get_json()["count"] == 1
        assert r.get_json()["items"][0]["order"]["order_number"] == "1001"

        assert len(client.get(f"/api/orders/{order.id}/line-items").get_json()["items"]) == 2

        client.post(f"/api/line-items/{wallet.id}/claim", json={"staff_id": "alice"})
        r = client.get("/api/staff/alice/line-items?status=claimed")
        assert [li["id"] for li in r.get_json()["items"]] == [wallet.id]
        assert client.get("/api/staff/alice/line-items?status=bogus").status_code == 400


class TestRemediationRoutes:

    def test_unmapped_flow(self, client, db_session):
        post_webhook(client, make_order_payload(line_items=[make_line_item(1, "Austin Bifold")]))
        r = client.get("/api/line-items/unmapped")
        assert r.get_json()["count"] == 1
        item_id = r.get_json()["items"][0]["id"]

        r = client.post("/api/line-items/unmapped/classify")
        assert r.status_code == 200
        assert r.get_json()["unresolved_ids"] == [item_id]

        assert client.post(f"/api/line-items/{item_id}/assign-wallet-type").status_code == 422
        assert client.post("/api/line-items/999999/assign-wallet-type").status_code == 404


class TestPointsRoutes:

    def test_bad_dates(self, client, db_session):
        assert client.get("/api/points/daily?date=yesterday").status_code == 400
        r = client.get("/api/points/staff/alice?start_date=2026-10-18&end_date=2026-10-17")
        assert r.status_code == 400

    def test_staff_range(self, client, db_session):
        r = client.get("/api/points/staff/alice?start_date=2026-10-01&end_date=2026-10-17")
        assert r.status_code == 200
        assert r.get_json()["total_points"] == 0


class TestSystemRoutes:

    def test_health(self, client, db_session):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.get_json()["status"] == "healthy"

    def test_health_degraded_with_unmapped_wallets(self, client, db_session):
        post_webhook(client, make_order_payload(line_items=[make_line_item(1, "Austin Bifold")]))
        r = client.get("/health")
        assert r.status_code == 200
        assert r.get_json()["checks"]["work_queue"]["status"] == "degraded"

    def test_version(self, client):
        assert "api_version" in client.get("/version").get_json()
