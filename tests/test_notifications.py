import hashlib
import hmac
import json
from unittest.mock import MagicMock

import pytest
import requests

import config
from models import WebhookDelivery
from services.notifications import (
     NotificationDispatcher,
     render_email,
     send_notification_email,
     sign_payload,
)
from services.webhook_service import WebhookService


@pytest.fixture
def dispatcher(session_factory, http_mock):
     return NotificationDispatcher(session_factory, http=http_mock)


def test_sign_payload_is_hmac_sha256():
     expected = hmac.new(b"secret", b'{"a": 1}', hashlib.sha256).hexdigest()
     assert sign_payload('{"a": 1}', "secret") == expected


def test_deliver_signs_and_logs(db, dispatcher, http_mock):
     subscription = WebhookService.create(db, "0xOwner", "https://hooks.test/in", ["payment.completed"])

     results = dispatcher.deliver("0xowner", "payment.completed", {"linkId": "l1", "amount": "10"})

     assert [r.success for r in results] == [True]
     url = http_mock.post.call_args.args[0]
     kwargs = http_mock.post.call_args.kwargs
     assert url == "https://hooks.test/in"
     body = kwargs["data"]
     assert json.loads(body)["data"] == {"linkId": "l1", "amount": "10"}
     assert kwargs["headers"]["X-ShiftStream-Event"] == "payment.completed"
     assert kwargs["headers"]["X-ShiftStream-Signature"] == sign_payload(body, subscription.secret)

     deliveries = db.query(WebhookDelivery).all()
     assert len(deliveries) == 1
     assert deliveries[0].success is True
     assert deliveries[0].status_code == 200


def test_deliver_skips_unsubscribed_and_inactive(db, dispatcher, http_mock):
     WebhookService.create(db, "0xowner", "https://hooks.test/a", ["link.created"])
     inactive = WebhookService.create(db, "0xowner", "https://hooks.test/b", ["payment.completed"])
     WebhookService.update(db, inactive.id, "0xowner", {"active": False})

     assert dispatcher.deliver("0xowner", "payment.completed", {}) == []
     http_mock.post.assert_not_called()


def test_failed_delivery_is_recorded(db, dispatcher, http_mock):
     WebhookService.create(db, "0xowner", "https://hooks.test/down", ["payment.failed"])
     http_mock.post.side_effect = requests.ConnectionError("connection refused")

     results = dispatcher.deliver("0xowner", "payment.failed", {"linkId": "l1"})

     assert results[0].success is False
     assert "refused" in results[0].error
     delivery = db.query(WebhookDelivery).one()
     assert delivery.success is False


def test_dispatch_uses_executor(session_factory):
     executor = MagicMock()
     dispatcher = NotificationDispatcher(session_factory, executor=executor, http=MagicMock())

     dispatcher.dispatch("0xowner", "link.created", {"linkId": "l1"})

     executor.submit.assert_called_once()


def test_render_email_escapes_values():
     email = render_email("payment_received", {"amount": "<b>1</b>", "coin": "BTC", "linkId": "l1"})
     assert email.subject == "Payment Received - ShiftStream"
     assert "&lt;b&gt;1&lt;/b&gt;" in email.body
     assert "<b>1</b>" not in email.body


def test_render_unknown_template():
     with pytest.raises(KeyError):
          render_email("newsletter", {})


def test_email_without_api_key_is_not_sent(monkeypatch):
     monkeypatch.setattr(config, "BREVO_API_KEY", None)
     email = send_notification_email("a@example.com", "link_created", {"linkId": "l1", "type": "direct"})
     assert email.sent is False
     assert "Smart Link Created" in email.body


def test_email_sent_through_brevo(monkeypatch):
     monkeypatch.setattr(config, "BREVO_API_KEY", "brevo-key")
     post = MagicMock(return_value=MagicMock(status_code=201))
     monkeypatch.setattr(requests, "post", post)

     email = send_notification_email("a@example.com", "escrow_released", {"amount": "5"})

     assert email.sent is True
     payload = post.call_args.kwargs["json"]
     assert payload["to"] == [{"email": "a@example.com"}]
     assert post.call_args.kwargs["headers"]["api-key"] == "brevo-key"


def test_email_failure_is_swallowed(monkeypatch):
     monkeypatch.setattr(config, "BREVO_API_KEY", "brevo-key")
     monkeypatch.setattr(requests, "post", MagicMock(return_value=MagicMock(status_code=400, text="bad sender")))

     email = send_notification_email("a@example.com", "escrow_released", {"amount": "5"})

     assert email.sent is False
