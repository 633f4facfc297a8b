"""
End-to-end tests for the webhook surface.

Handshake, signature enforcement, tenant routing and idempotent processing,
exercised through the HTTP routes with the external services mocked.
"""

from pagewire.api.controllers import ACKNOWLEDGEMENT
from pagewire.database.models import MessageDirection
from pagewire.webhooks.signature import SIGNATURE_HEADER

from ..conftest import VERIFY_TOKEN


def message_event(mid, text, sender="user-1", recipient="100", **message_fields):
    return {
        "sender": {"id": sender},
        "recipient": {"id": recipient},
        "timestamp": 1704101400000,
        "message": {"mid": mid, "text": text, **message_fields},
    }


def delivery(*events, entry_id="100", obj="page"):
    return {
        "object": obj,
        "entry": [{"id": entry_id, "time": 1704101400000, "messaging": list(events)}],
    }


class TestSubscriptionHandshake:
    def test_valid_handshake_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": VERIFY_TOKEN,
                "hub.challenge": "1158201444",
            },
        )

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "wrong",
                "hub.challenge": "1158201444",
            },
        )

        assert response.status_code == 403
        assert "1158201444" not in response.text

    def test_wrong_mode_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={
                "hub.mode": "unsubscribe",
                "hub.verify_token": VERIFY_TOKEN,
                "hub.challenge": "1",
            },
        )

        assert response.status_code == 403

    def test_missing_parameters_are_forbidden(self, client):
        assert client.get("/webhook").status_code == 403


class TestSignatureEnforcement:
    def test_bad_signature_writes_nothing(
        self, client, logged_messages, reply_generator, channel_sender, identity_provider
    ):
        response = client.post(
            "/webhook",
            content=b'{"object":"page","entry":[]}',
            headers={SIGNATURE_HEADER: "sha256=" + "0" * 64},
        )

        assert response.status_code == 403
        assert logged_messages("tenant-a") == []
        reply_generator.generate.assert_not_called()
        channel_sender.send.assert_not_called()
        identity_provider.mint_channel_token.assert_not_called()

    def test_missing_signature_is_forbidden(self, client, logged_messages):
        body = delivery(message_event("m1", "hello"))
        response = client.post("/webhook", json=body)

        assert response.status_code == 403
        assert logged_messages("tenant-a") == []

    def test_signature_with_other_secret_is_forbidden(self, post_signed, logged_messages):
        response = post_signed(delivery(message_event("m1", "hello")), secret="other")

        assert response.status_code == 403
        assert logged_messages("tenant-a") == []

    def test_malformed_body_is_bad_request(self, post_signed):
        assert post_signed(b"not json at all").status_code == 400
        assert post_signed({"object": "page"}).status_code == 400


class TestDeliveryProcessing:
    def test_inbound_text_is_logged_and_answered(
        self, post_signed, logged_messages, channel_sender, reply_generator
    ):
        response = post_signed(delivery(message_event("m1", "Hi, my name is Jane Doe")))

        assert response.status_code == 200
        assert response.text == ACKNOWLEDGEMENT

        rows = logged_messages("tenant-a")
        assert [(r.provider_message_id, r.direction) for r in rows] == [
            ("m1", MessageDirection.RECEIVED),
            ("m_reply_1", MessageDirection.SENT),
        ]
        reply_generator.generate.assert_awaited_once()
        channel_sender.send.assert_awaited_once_with(
            "page-a", "channel-page-a-1", "user-1", "Thanks for reaching out!"
        )

    def test_redelivery_is_answered_once(self, post_signed, logged_messages, channel_sender):
        body = delivery(message_event("m1", "hello"))

        assert post_signed(body).status_code == 200
        assert post_signed(body).status_code == 200

        assert channel_sender.send.await_count == 1
        assert len(logged_messages("tenant-a")) == 2

    def test_unknown_account_is_acknowledged_and_dropped(
        self, post_signed, logged_messages, reply_generator
    ):
        response = post_signed(
            delivery(message_event("m1", "hello", recipient="999"), entry_id="999")
        )

        assert response.status_code == 200
        assert response.text == ACKNOWLEDGEMENT
        assert logged_messages("tenant-a") == []
        assert logged_messages("tenant-b") == []
        reply_generator.generate.assert_not_called()

    def test_one_delivery_fans_out_to_each_tenant(
        self, post_signed, logged_messages, channel_sender
    ):
        body = {
            "object": "page",
            "entry": [
                {"id": "100", "messaging": [message_event("a1", "hi A", recipient="100")]},
                {"id": "200", "messaging": [message_event("b1", "hi B", recipient="200")]},
                {"id": "999", "messaging": [message_event("x1", "hi ?", recipient="999")]},
            ],
        }

        assert post_signed(body).status_code == 200

        assert [r.provider_message_id for r in logged_messages("tenant-a")][0] == "a1"
        assert [r.provider_message_id for r in logged_messages("tenant-b")][0] == "b1"
        assert {call.args[0] for call in channel_sender.send.await_args_list} == {
            "page-a",
            "page-b",
        }

    def test_echo_is_logged_without_reply(
        self, post_signed, logged_messages, reply_generator
    ):
        echo = message_event("m-echo", "Our reply", sender="100", recipient="user-1", is_echo=True)

        assert post_signed(delivery(echo)).status_code == 200

        rows = logged_messages("tenant-a")
        assert [(r.provider_message_id, r.direction) for r in rows] == [
            ("m-echo", MessageDirection.SENT)
        ]
        reply_generator.generate.assert_not_called()

    def test_delete_removes_earlier_message(self, post_signed, logged_messages):
        post_signed(delivery(message_event("m-del", "typo")))
        deletion = {
            "sender": {"id": "user-1"},
            "recipient": {"id": "100"},
            "timestamp": 1704101500000,
            "message": {"mid": "m-del", "is_deleted": True},
        }

        assert post_signed(delivery(deletion)).status_code == 200

        assert "m-del" not in [r.provider_message_id for r in logged_messages("tenant-a")]

    def test_processing_failure_still_acknowledges(
        self, post_signed, logged_messages, reply_generator
    ):
        reply_generator.generate.side_effect = RuntimeError("model down")

        response = post_signed(delivery(message_event("m1", "hello")))

        assert response.status_code == 200
        assert [r.provider_message_id for r in logged_messages("tenant-a")] == ["m1"]

    def test_receipts_only_delivery(self, post_signed, logged_messages):
        receipt = {
            "sender": {"id": "user-1"},
            "recipient": {"id": "100"},
            "timestamp": 1704101400000,
            "read": {"watermark": 1704101400000},
        }

        assert post_signed(delivery(receipt)).status_code == 200
        assert logged_messages("tenant-a") == []


class TestHealth:
    def test_health_reports_services(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["database"] == "operational"
        assert data["services"]["credential_sweep"] == "stopped"
        assert data["last_sweep"] is None
