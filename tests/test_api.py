"""
HTTP tests for the storefront, admin dashboard and payment webhook, using
FastAPI's TestClient against an app wired with fake collaborators.
"""
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

import config
from main import create_app
from routers.payments import canonical_json, compute_ipn_signature

ADMIN = {"x-admin-token": "admin-secret"}


@pytest.fixture
def client(lifecycle, tmp_path, monkeypatch):
     monkeypatch.setattr(config, "ADMIN_TOKEN", "admin-secret")
     monkeypatch.setattr(config, "ADMIN_PASSWORD", "hunter2")
     monkeypatch.setattr(config, "JWT_SECRET", "jwt-test-secret")
     monkeypatch.setattr(config, "NOWPAYMENTS_IPN_SECRET", None)
     monkeypatch.setattr(config, "AZURE_STORAGE_ACCOUNT", None)
     monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
     app = create_app(lifecycle, start_background=False)
     with TestClient(app) as test_client:
          yield test_client


def _checkout(client, **overrides):
     form = {
          "totalAmount": "120",
          "currency": "ILS",
          "name": "Dana Levi",
          "email": "dana@example.com",
          "productName": "1000 V-Bucks",
     }
     form.update(overrides)
     return client.post("/process-payment", data=form, follow_redirects=False)


def _only_order_id(store):
     orders = store.list()
     assert len(orders) == 1
     return orders[0].order_id


class TestStorefront:

     @pytest.mark.parametrize("path", ["/", "/terms", "/success", "/cancel"])
     def test_static_pages(self, client, path):
          response = client.get(path)
          assert response.status_code == 200
          assert "WOLF GAMING" in response.text

     def test_checkout_page_above_minimum(self, client):
          response = client.get("/checkout/120", params={"p": "1000 V-Bucks"})
          assert response.status_code == 200
          assert "1000 V-Bucks" in response.text
          assert 'action="/process-payment"' in response.text

     @pytest.mark.parametrize("path,params", [
          ("/checkout/50", {}),
          ("/checkout/30", {"curr": "USD"}),
          ("/checkout/abc", {}),
          ("/checkout/200", {"curr": "EUR"}),
     ])
     def test_checkout_page_rejects(self, client, path, params):
          response = client.get(path, params=params)
          assert response.status_code == 400

     def test_process_payment_redirects_to_invoice(self, client, store, scheduler):
          response = _checkout(client)

          assert response.status_code == 303
          order_id = _only_order_id(store)
          assert response.headers["location"] == f"https://nowpayments.io/payment/?iid={order_id}"
          order = store.get(order_id)
          assert order.status == "fulfilling"
          assert len(order.audit_entries) == 1
          assert order_id in scheduler

     def test_base_amount_checkout_starts_pending(self, client, store):
          response = _checkout(client, totalAmount="", baseAmount="150")

          assert response.status_code == 303
          order = store.get(_only_order_id(store))
          assert order.status == "pending"

     def test_below_minimum_checkout_persists_nothing(self, client, store, invoices):
          response = _checkout(client, totalAmount="50")

          assert response.status_code == 400
          assert store.list() == []
          assert invoices.calls == []

     def test_issuer_failure_returns_error_page(self, client, store, scheduler, invoices):
          invoices.fail = True

          response = _checkout(client)

          assert response.status_code == 500
          assert "Request Failed" in response.text
          assert store.list() == []
          assert scheduler.pending() == []

     def test_receipt(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          assert order_id in client.get("/receipt", params={"order_id": order_id}).text
          assert client.get("/receipt", params={"order_id": "WOLF_404"}).status_code == 404

     def test_unknown_route_fallback(self, client):
          response = client.get("/no-such-page")
          assert response.status_code == 404
          assert response.json() == {"error": "Route not found"}

     def test_health(self, client):
          body = client.get("/health").json()
          assert body["database"] is True
          assert body["pending_fulfillments"] == 0
          assert body["usd_ils_rate"] == "4.00"


class TestAdminAuth:

     def test_missing_token(self, client):
          assert client.get("/api/admin/orders").status_code == 401

     def test_wrong_token(self, client):
          response = client.get("/api/admin/orders", headers={"x-admin-token": "nope"})
          assert response.status_code == 403

     def test_token_query_param(self, client):
          assert client.get("/api/admin/orders", params={"token": "admin-secret"}).status_code == 200

     def test_login_issues_bearer_token(self, client):
          assert client.post("/api/admin/login", json={"password": "wrong"}).json() == {"success": False, "token": None}

          body = client.post("/api/admin/login", json={"password": "hunter2"}).json()
          assert body["success"] is True

          response = client.get("/api/admin/orders", headers={"Authorization": f"Bearer {body['token']}"})
          assert response.status_code == 200

     def test_forged_bearer_token(self, client):
          response = client.get("/api/admin/orders", headers={"Authorization": "Bearer not.a.jwt"})
          assert response.status_code == 403


class TestAdminOrders:

     def test_list_orders_newest_first(self, client):
          _checkout(client, productName="first")
          _checkout(client, productName="second")

          body = client.get("/api/admin/orders", headers=ADMIN).json()

          assert body["total"] == 2
          assert [o["product_name"] for o in body["orders"]] == ["second", "first"]
          assert body["orders"][0]["audit_log"][0]["message"] == "Order Created"

     def test_get_order(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          assert client.get(f"/api/admin/orders/{order_id}", headers=ADMIN).json()["order_id"] == order_id
          assert client.get("/api/admin/orders/WOLF_404", headers=ADMIN).status_code == 404

     def test_update_status(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          response = client.post("/api/admin/update-status", json={"orderId": order_id, "status": "processing"}, headers=ADMIN)

          assert response.status_code == 200
          body = response.json()
          assert body["status"] == "processing"
          assert body["audit_log"][-1]["message"] == "Status changed to processing"
          assert body["fulfillment_id"] is None

     def test_update_status_rejections(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          assert client.post("/api/admin/update-status", json={"orderId": order_id, "status": "completed"}, headers=ADMIN).status_code == 409
          assert client.post("/api/admin/update-status", json={"orderId": order_id, "status": "bogus"}, headers=ADMIN).status_code == 422
          assert client.post("/api/admin/update-status", json={"orderId": "WOLF_404", "status": "pending"}, headers=ADMIN).status_code == 404

     def test_update_delivery_with_image(self, client, store, tmp_path):
          _checkout(client)
          order_id = _only_order_id(store)

          response = client.post(
               "/api/admin/update-delivery",
               data={"orderId": order_id, "txid": "0xfeed"},
               files={"image": ("proof.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
               headers=ADMIN,
          )

          assert response.status_code == 200
          body = response.json()
          assert body["txid"] == "0xfeed"
          assert body["delivery_proof_image"].startswith(f"/uploads/proofs/{order_id}/")
          stored = tmp_path / "uploads" / body["delivery_proof_image"][len("/uploads/"):]
          assert stored.read_bytes().endswith(b"fake")
          assert client.get(body["delivery_proof_image"]).status_code == 200

     def test_update_delivery_rejects_non_images_and_empty_updates(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          bad = client.post(
               "/api/admin/update-delivery",
               data={"orderId": order_id},
               files={"image": ("notes.txt", b"hello", "text/plain")},
               headers=ADMIN,
          )
          empty = client.post("/api/admin/update-delivery", data={"orderId": order_id}, headers=ADMIN)

          assert bad.status_code == 400
          assert empty.status_code == 400

     def test_mark_delivered_is_idempotent(self, client, store, notifier, scheduler):
          _checkout(client)
          order_id = _only_order_id(store)

          first = client.post("/api/admin/mark-delivered", json={"orderId": order_id}, headers=ADMIN).json()
          entries = len(store.get(order_id).audit_entries)
          second = client.post("/api/admin/mark-delivered", json={"orderId": order_id}, headers=ADMIN).json()

          assert first["completed"] is True
          assert first["order"]["status"] == "completed"
          assert first["order"]["fulfillment_id"]
          assert second["success"] is True
          assert second["completed"] is False
          assert second["order"]["fulfillment_id"] == first["order"]["fulfillment_id"]
          assert len(store.get(order_id).audit_entries) == entries
          assert len(notifier.emails) == 1
          assert order_id not in scheduler

     def test_mark_delivered_email_failure(self, client, store, notifier):
          _checkout(client)
          order_id = _only_order_id(store)
          notifier.fail_email = True

          response = client.post("/api/admin/mark-delivered", json={"orderId": order_id}, headers=ADMIN)

          assert response.status_code == 502
          assert response.json()["success"] is False
          assert store.get(order_id).status == "fulfilling"

     def test_mark_delivered_unknown_order(self, client):
          response = client.post("/api/admin/mark-delivered", json={"orderId": "WOLF_404"}, headers=ADMIN)
          assert response.status_code == 404

     def test_certificates(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)
          client.post("/api/admin/mark-delivered", json={"orderId": order_id}, headers=ADMIN)
          order = store.get(order_id)

          proof = client.get(f"/api/admin/proof/{order_id}", headers=ADMIN)
          pod = client.get(f"/api/admin/pod/{order_id}", headers=ADMIN)

          assert proof.status_code == 200
          assert order.payment_reference in proof.text
          assert pod.status_code == 200
          assert order.fulfillment_id in pod.text
          assert client.get(f"/api/admin/pod/{order_id}").status_code == 401
          assert client.get("/api/admin/pod/WOLF_404", headers=ADMIN).status_code == 404


class TestPaymentWebhook:

     def _ipn(self, order_id, status="finished"):
          return {
               "payment_id": 5077125051,
               "payment_status": status,
               "order_id": order_id,
               "price_amount": 30.0,
               "price_currency": "usd",
               "pay_currency": "usdttrc20",
          }

     def test_finished_payment_confirms_order(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          response = client.post("/api/payments/webhook", json=self._ipn(order_id))

          assert response.status_code == 200
          assert response.json()["payment_confirmed"] is True
          assert store.get(order_id).payment_confirmed is True

     def test_intermediate_status_is_ignored(self, client, store):
          _checkout(client)
          order_id = _only_order_id(store)

          body = client.post("/api/payments/webhook", json=self._ipn(order_id, "waiting")).json()

          assert body["payment_confirmed"] is False
          assert store.get(order_id).payment_confirmed is False

     def test_unknown_order(self, client):
          assert client.post("/api/payments/webhook", json=self._ipn("WOLF_404")).status_code == 404

     def test_signature_is_enforced_when_secret_is_set(self, client, store, monkeypatch):
          monkeypatch.setattr(config, "NOWPAYMENTS_IPN_SECRET", "ipn-secret")
          _checkout(client)
          order_id = _only_order_id(store)
          payload = self._ipn(order_id)
          raw = json.dumps(payload)

          unsigned = client.post("/api/payments/webhook", content=raw, headers={"Content-Type": "application/json"})
          signed = client.post(
               "/api/payments/webhook",
               content=raw,
               headers={
                    "Content-Type": "application/json",
                    "x-nowpayments-sig": compute_ipn_signature(payload, "ipn-secret"),
               },
          )

          assert unsigned.status_code == 401
          assert signed.status_code == 200
          assert store.get(order_id).payment_confirmed is True

     def test_unsigned_notifications_are_refused_when_payment_is_required(
          self, client, store, lifecycle, scheduler, monkeypatch
     ):
          monkeypatch.setattr(lifecycle, "require_payment_confirmation", True)
          _checkout(client)
          order_id = _only_order_id(store)

          response = client.post("/api/payments/webhook", json=self._ipn(order_id))

          assert response.status_code == 503
          assert store.get(order_id).payment_confirmed is False
          assert order_id not in scheduler

     def test_signed_notification_arms_delivery_when_payment_is_required(
          self, client, store, lifecycle, scheduler, monkeypatch
     ):
          monkeypatch.setattr(lifecycle, "require_payment_confirmation", True)
          monkeypatch.setattr(config, "NOWPAYMENTS_IPN_SECRET", "ipn-secret")
          _checkout(client)
          order_id = _only_order_id(store)
          payload = self._ipn(order_id)

          response = client.post(
               "/api/payments/webhook",
               json=payload,
               headers={"x-nowpayments-sig": compute_ipn_signature(payload, "ipn-secret")},
          )

          assert response.status_code == 200
          assert order_id in scheduler

     def test_signature_follows_javascript_number_formatting(self, client, store, monkeypatch):
          monkeypatch.setattr(config, "NOWPAYMENTS_IPN_SECRET", "ipn-secret")
          _checkout(client)
          order_id = _only_order_id(store)
          raw = (
               '{"payment_status":"finished","price_amount":30.0,"actually_paid":4.52e-05,'
               '"order_id":"' + order_id + '","payment_id":5077125051}'
          )
          signed = (
               '{"actually_paid":0.0000452,"order_id":"' + order_id + '",'
               '"payment_id":5077125051,"payment_status":"finished","price_amount":30}'
          )
          signature = hmac.new(b"ipn-secret", signed.encode(), hashlib.sha512).hexdigest()

          response = client.post(
               "/api/payments/webhook",
               content=raw,
               headers={"Content-Type": "application/json", "x-nowpayments-sig": signature},
          )

          assert response.status_code == 200
          assert store.get(order_id).payment_confirmed is True


@pytest.mark.parametrize("value,expected", [
     (30.0, "30"),
     (0.1, "0.1"),
     (-2.5, "-2.5"),
     (4.52e-05, "0.0000452"),
     (1e-7, "1e-7"),
     (1.5e21, "1.5e+21"),
])
def test_ipn_numbers_are_serialized_like_javascript(value, expected):
     assert canonical_json(value) == expected


def test_ipn_body_is_key_sorted_and_compact():
     payload = {"b": [1, True, None], "a": {"d": "é", "c": 2.0}}
     assert canonical_json(payload) == '{"a":{"c":2,"d":"é"},"b":[1,true,null]}'
