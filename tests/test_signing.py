from __future__ import annotations

import hmac
import json
import uuid
from hashlib import sha256

from fluxdesk_webhooks.domain.events import WebhookEvent
from fluxdesk_webhooks.services.payload import build_payload, canonical_json
from fluxdesk_webhooks.services.signing import sign, verify_signature

SECRET = "a" * 64


def test_envelope_has_fixed_keys_in_order():
    webhook_id = uuid.uuid4()
    data = {"ticket": {"id": 1, "subject": "Printer on fire"}}
    envelope = build_payload(WebhookEvent.TICKET_CREATED, data, webhook_id, timestamp=1700000000)
    assert list(envelope) == ["event", "timestamp", "webhook_id", "data"]
    assert envelope["event"] == "ticket.created"
    assert envelope["timestamp"] == 1700000000
    assert envelope["webhook_id"] == str(webhook_id)
    assert envelope["data"] is data


def test_envelope_timestamp_defaults_to_integer_now():
    envelope = build_payload(WebhookEvent.MESSAGE_CREATED, {}, uuid.uuid4())
    assert isinstance(envelope["timestamp"], int)


def test_canonical_json_is_compact_and_unescaped():
    body = canonical_json({"event": "ticket.created", "data": {"url": "https://x.test/a/b", "name": "Zoë"}})
    assert body == '{"event":"ticket.created","data":{"url":"https://x.test/a/b","name":"Zoë"}}'.encode("utf-8")


def test_signature_matches_reference_hmac():
    body = b'{"event":"ticket.created"}'
    expected = "sha256=" + hmac.new(SECRET.encode(), body, sha256).hexdigest()
    assert sign(body, SECRET) == expected


def test_signing_envelope_equals_signing_its_canonical_bytes():
    envelope = build_payload(WebhookEvent.TICKET_ASSIGNED, {"a": 1}, uuid.uuid4(), timestamp=1)
    assert sign(envelope, SECRET) == sign(canonical_json(envelope), SECRET)


def test_signature_is_deterministic_and_sensitive_to_changes():
    body = canonical_json({"event": "ticket.created", "n": 1})
    assert sign(body, SECRET) == sign(body, SECRET)
    assert sign(body, SECRET) != sign(canonical_json({"event": "ticket.created", "n": 2}), SECRET)
    assert sign(body, SECRET) != sign(body, "b" * 64)
    flipped = bytes([body[0] ^ 0x01]) + body[1:]
    assert sign(body, SECRET) != sign(flipped, SECRET)


def test_verify_signature_round_trip_over_received_bytes():
    envelope = build_payload(WebhookEvent.TICKET_CREATED, {"x": "y"}, uuid.uuid4(), timestamp=5)
    body = canonical_json(envelope)
    signature = sign(body, SECRET)
    assert verify_signature(body, SECRET, signature)
    assert not verify_signature(body, "other", signature)
    # A receiver re-serialising with default json settings gets different bytes.
    assert not verify_signature(json.dumps(envelope).encode(), SECRET, signature)
