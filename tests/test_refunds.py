"""Tests for refund requests and their admin workflow."""

from bson import ObjectId


def request_refund(client, headers, order_id, reason="wrong size"):
    return client.post("/api/refunds", json={"order_id": order_id, "reason": reason}, headers=headers)


class TestRefunds:
    def test_buyer_requests_refund(self, client, buyer, make_product, place_order):
        user_id, headers = buyer
        order_id = place_order(headers, make_product(), payment_method="Card")["order"]["id"]

        response = request_refund(client, headers, order_id)
        assert response.status_code == 201
        refund = response.json()["data"]
        assert refund["status"] == "Requested"
        assert refund["reason"] == "wrong size"
        assert refund["order_id"] == order_id
        assert refund["user_id"] == user_id

    def test_approval_does_not_touch_order_or_delivery(self, client, db, admin, buyer, make_product, place_order):
        product_id = make_product(stock=4)
        order_id = place_order(buyer[1], product_id, payment_method="Card")["order"]["id"]
        refund_id = request_refund(client, buyer[1], order_id).json()["data"]["id"]

        response = client.put(f"/api/refunds/{refund_id}", json={"status": "Approved", "admin_notes": "ok"}, headers=admin[1])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "Approved"
        assert response.json()["data"]["admin_notes"] == "ok"

        order = db["order"].find_one({"_id": ObjectId(order_id)})
        assert order["status"] == "pending"
        assert order["is_paid"] is True
        assert db["delivery"].find_one({"order_id": order_id})["delivery_status"] == "Pending"
        assert db["product"].find_one({"_id": ObjectId(product_id)})["stock"] == 3

    def test_buyer_cannot_approve(self, client, buyer, make_product, place_order):
        order_id = place_order(buyer[1], make_product())["order"]["id"]
        refund_id = request_refund(client, buyer[1], order_id).json()["data"]["id"]
        response = client.put(f"/api/refunds/{refund_id}", json={"status": "Approved"}, headers=buyer[1])
        assert response.status_code == 403

    def test_invalid_status_rejected(self, client, admin, buyer, make_product, place_order):
        order_id = place_order(buyer[1], make_product())["order"]["id"]
        refund_id = request_refund(client, buyer[1], order_id).json()["data"]["id"]
        response = client.put(f"/api/refunds/{refund_id}", json={"status": "Maybe"}, headers=admin[1])
        assert response.status_code == 422

    def test_refund_for_unknown_order(self, client, buyer):
        response = request_refund(client, buyer[1], str(ObjectId()))
        assert response.status_code == 404

    def test_refund_for_someone_elses_order(self, client, buyer, other_buyer, make_product, place_order):
        order_id = place_order(buyer[1], make_product())["order"]["id"]
        response = request_refund(client, other_buyer[1], order_id)
        assert response.status_code == 403

    def test_buyer_lists_only_own(self, client, buyer, other_buyer, make_product, place_order):
        product_id = make_product()
        mine = place_order(buyer[1], product_id)["order"]["id"]
        theirs = place_order(other_buyer[1], product_id)["order"]["id"]
        request_refund(client, buyer[1], mine)
        request_refund(client, other_buyer[1], theirs)

        response = client.get("/api/refunds/get", headers=buyer[1])
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["order"]["id"] == mine

    def test_admin_lists_gets_and_deletes(self, client, db, admin, buyer, make_product, place_order):
        order_id = place_order(buyer[1], make_product())["order"]["id"]
        refund_id = request_refund(client, buyer[1], order_id).json()["data"]["id"]

        listing = client.get("/api/refunds", headers=admin[1])
        assert listing.status_code == 200
        assert listing.json()["data"][0]["user"]["name"] == "Bella Buyer"

        single = client.get(f"/api/refunds/{refund_id}", headers=admin[1])
        assert single.status_code == 200

        assert client.delete(f"/api/refunds/{refund_id}", headers=admin[1]).status_code == 200
        assert db["refund"].count_documents({}) == 0
        assert client.get(f"/api/refunds/{refund_id}", headers=admin[1]).status_code == 404

    def test_buyer_cannot_use_admin_listing(self, client, buyer):
        assert client.get("/api/refunds", headers=buyer[1]).status_code == 403
