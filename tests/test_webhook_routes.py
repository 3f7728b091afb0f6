import json

import config
from services.notifications import sign_payload

LINK = {
     "type": "direct",
     "owner": "0xOwner",
     "settle_address": "0xMerchant",
     "deposit_coin": "BTC",
     "deposit_network": "bitcoin",
}


def create_link(client):
     response = client.post("/api/links", json=LINK)
     assert response.status_code == 201
     return response.json()


# --- Inbound SideShift webhook ---

def test_unknown_order_is_acknowledged(client):
     response = client.post("/api/webhook/sideshift", json={"id": "ghost", "status": "settled"})
     assert response.status_code == 200
     assert response.json() == {"received": True, "status": "link_not_found"}


def test_invalid_payloads(client):
     assert client.post("/api/webhook/sideshift", json={"status": "settled"}).status_code == 400
     assert client.post(
          "/api/webhook/sideshift",
          content=b"not json",
          headers={"Content-Type": "application/json"},
     ).status_code == 400


def test_duplicate_webhooks_release_once(client, wallet):
     link = create_link(client)
     body = {"id": link["order_ref"], "status": "settled", "settleAmount": "42.00"}

     first = client.post("/api/webhook/sideshift", json=body).json()
     second = client.post("/api/webhook/sideshift", json=body).json()

     assert first["newStatus"] == second["newStatus"] == "completed"
     assert len(wallet.transfers) == 1


def test_signature_checked_when_secret_configured(client, monkeypatch):
     monkeypatch.setattr(config, "SIDESHIFT_WEBHOOK_SECRET", "hook-secret")
     link = create_link(client)
     raw = json.dumps({"id": link["order_ref"], "status": "processing"})

     unsigned = client.post("/api/webhook/sideshift", content=raw, headers={"Content-Type": "application/json"})
     assert unsigned.status_code == 401

     signed = client.post(
          "/api/webhook/sideshift",
          content=raw,
          headers={"Content-Type": "application/json", "x-sideshift-signature": sign_payload(raw, "hook-secret")},
     )
     assert signed.json()["newStatus"] == "processing"


def test_webhook_health(client):
     assert client.get("/api/webhook/sideshift").json()["status"] == "ok"


# --- Outbound subscriptions ---

def test_subscription_lifecycle(client):
     created = client.post("/api/webhooks", json={
          "owner": "0xOwner",
          "url": "https://hooks.test/in",
          "events": ["payment.completed"],
     })
     assert created.status_code == 201
     secret = created.json()["secret"]
     webhook = created.json()["webhook"]
     assert len(secret) == 64
     assert "secret" not in webhook

     listing = client.get("/api/webhooks", params={"owner": "0xowner"}).json()["webhooks"]
     assert [w["id"] for w in listing] == [webhook["id"]]
     assert "secret" not in listing[0]

     updated = client.patch(f"/api/webhooks/{webhook['id']}", json={"owner": "0xowner", "active": False})
     assert updated.json()["active"] is False
     assert updated.json()["url"] == "https://hooks.test/in"

     stranger = client.patch(f"/api/webhooks/{webhook['id']}", json={"owner": "0xother", "active": True})
     assert stranger.status_code == 404

     assert client.delete(f"/api/webhooks/{webhook['id']}", params={"owner": "0xowner"}).json() == {"success": True}
     assert client.delete(f"/api/webhooks/{webhook['id']}", params={"owner": "0xowner"}).status_code == 404


def test_unknown_events_rejected(client):
     response = client.post("/api/webhooks", json={"owner": "0xowner", "url": "https://hooks.test", "events": ["coffee.brewed"]})
     assert response.status_code == 400
     assert client.get("/api/webhooks").status_code == 400


def test_engine_events_reach_subscribers(client, http_mock):
     hook = client.post("/api/webhooks", json={
          "owner": "0xowner",
          "url": "https://hooks.test/in",
          "events": ["payment.completed"],
     }).json()
     link = create_link(client)

     client.post("/api/webhook/sideshift", json={"id": link["order_ref"], "status": "settled", "settleAmount": "9.00"})

     posted = [json.loads(call.kwargs["data"]) for call in http_mock.post.call_args_list]
     assert [p["event"] for p in posted] == ["payment.completed"]
     assert posted[0]["data"]["linkId"] == link["id"]

     deliveries = client.get(
          f"/api/webhooks/{hook['webhook']['id']}/deliveries", params={"owner": "0xowner"}
     ).json()["deliveries"]
     assert [d["event"] for d in deliveries] == ["payment.completed"]
     assert deliveries[0]["success"] is True


def test_manual_trigger(client, http_mock):
     client.post("/api/webhooks", json={"owner": "0xowner", "url": "https://hooks.test/in", "events": ["link.created"]})

     response = client.post("/api/webhooks/trigger", json={"owner": "0xowner", "event": "link.created", "data": {"linkId": "x"}})
     assert response.json() == {"triggered": 1, "successful": 1}

     unknown = client.post("/api/webhooks/trigger", json={"owner": "0xowner", "event": "nope", "data": {}})
     assert unknown.status_code == 400


# --- Email notifications ---

def test_notify_without_brevo_key(client, monkeypatch):
     monkeypatch.setattr(config, "BREVO_API_KEY", None)
     response = client.post("/api/notify", json={
          "to": "merchant@example.com",
          "type": "payment_received",
          "data": {"amount": "0.01", "coin": "BTC", "linkId": "l1"},
     })
     body = response.json()
     assert body["sent"] is False
     assert body["preview"]["subject"] == "Payment Received - ShiftStream"


def test_notify_rejects_unknown_template(client):
     response = client.post("/api/notify", json={"to": "merchant@example.com", "type": "newsletter", "data": {}})
     assert response.status_code == 422
