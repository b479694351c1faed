"""
Tests for WebhookProcessor.

The fake adapter accepts only VALID_SIGNATURE, so these tests cover the
pipeline itself; real HMAC checks live in the adapter and view tests.
"""

import json

import pytest

from core.services import ServiceResult
from payments.models import PaymentIntent, WebhookEvent
from payments.state_machines import PaymentIntentStatus, WebhookEventStatus
from payments.tests.factories import PaymentIntentFactory, WebhookEventFactory
from payments.tests.fakes import VALID_SIGNATURE
from payments.webhooks.processor import WebhookProcessor


def body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


@pytest.fixture
def processor(fake_stripe):
    return WebhookProcessor(stripe_adapter=fake_stripe)


@pytest.mark.django_db
class TestHandleEvent:
    def test_invalid_signature_records_nothing(self, processor, stripe_event):
        payload = body(stripe_event("payout.paid", {"id": "po_1"}))

        result = processor.handle_event(payload, "t=1,v1=bad")

        assert not result.success
        assert result.error_code == "INVALID_SIGNATURE"
        assert not WebhookEvent.objects.exists()

    def test_missing_event_id_is_validation_error(self, processor, stripe_event):
        payload = stripe_event("payout.paid", {"id": "po_1"})
        del payload["id"]

        result = processor.handle_event(body(payload), VALID_SIGNATURE)

        assert result.error_code == "VALIDATION_ERROR"
        assert not WebhookEvent.objects.exists()

    def test_applies_and_records_event(self, processor, stripe_event):
        result = processor.handle_event(
            body(stripe_event("customer.created", {"id": "cus_1"}, event_id="evt_1")),
            VALID_SIGNATURE,
        )

        assert result.success
        stored = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert stored.status == WebhookEventStatus.APPLIED
        assert stored.event_type == "customer.created"
        assert stored.attempt_count == 1
        assert stored.processed_at is not None

    def test_applied_duplicate_is_not_dispatched_again(self, processor, stripe_event, mocker):
        payload = body(stripe_event("customer.created", {"id": "cus_1"}, event_id="evt_1"))
        processor.handle_event(payload, VALID_SIGNATURE)
        dispatch = mocker.patch("payments.webhooks.processor.dispatch_webhook")

        result = processor.handle_event(payload, VALID_SIGNATURE)

        assert result.success
        dispatch.assert_not_called()
        assert WebhookEvent.objects.get(stripe_event_id="evt_1").attempt_count == 1

    def test_handler_failure_rolls_back_and_marks_failed(
        self, processor, intent_event, mocker
    ):
        """
        Given a handler that writes and then raises
        When the event is handled
        Then its write is rolled back and the event is stored as failed
        """
        intent = PaymentIntentFactory()

        def write_then_fail(event):
            PaymentIntent.objects.filter(pk=intent.pk).update(
                status=PaymentIntentStatus.CANCELED
            )
            raise RuntimeError("database went away")

        mocker.patch(
            "payments.webhooks.processor.dispatch_webhook", side_effect=write_then_fail
        )

        result = processor.handle_event(
            body(intent_event("payment_intent.canceled", intent, event_id="evt_1")),
            VALID_SIGNATURE,
        )

        assert not result.success
        assert result.error_code == "WEBHOOK_HANDLER_FAILED"
        assert result.details == {"stripe_event_id": "evt_1"}
        stored = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert stored.status == WebhookEventStatus.FAILED
        assert stored.attempt_count == 1
        assert "database went away" in stored.error_message
        assert PaymentIntent.objects.get(pk=intent.pk).status == (
            PaymentIntentStatus.REQUIRES_CAPTURE
        )

    def test_handler_failure_result_marks_failed(self, processor, stripe_event, mocker):
        mocker.patch(
            "payments.webhooks.processor.dispatch_webhook",
            return_value=ServiceResult.failure("nope", error_code="NOT_FOUND"),
        )

        result = processor.handle_event(
            body(stripe_event("payout.paid", {"id": "po_1"}, event_id="evt_1")),
            VALID_SIGNATURE,
        )

        assert not result.success
        assert WebhookEvent.objects.get(stripe_event_id="evt_1").is_failed

    def test_failed_event_is_retried_on_redelivery(self, processor, stripe_event, mocker):
        payload = body(stripe_event("customer.created", {"id": "cus_1"}, event_id="evt_1"))
        mocker.patch(
            "payments.webhooks.processor.dispatch_webhook",
            side_effect=[RuntimeError("boom"), ServiceResult.success(None)],
        )

        processor.handle_event(payload, VALID_SIGNATURE)
        result = processor.handle_event(payload, VALID_SIGNATURE)

        assert result.success
        stored = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert stored.status == WebhookEventStatus.APPLIED
        assert stored.attempt_count == 2


@pytest.mark.django_db
class TestProcess:
    def test_parses_stored_payload(self, processor):
        webhook_event = WebhookEventFactory(event_type="customer.created")

        result = processor.process(webhook_event)

        assert result.success
        assert WebhookEvent.objects.get(pk=webhook_event.pk).is_applied

    def test_already_applied_is_left_alone(self, processor, mocker):
        webhook_event = WebhookEventFactory(status=WebhookEventStatus.APPLIED)
        dispatch = mocker.patch("payments.webhooks.processor.dispatch_webhook")

        result = processor.process(webhook_event)

        assert result.success
        dispatch.assert_not_called()

    def test_corrupt_payload_is_marked_failed(self, processor):
        webhook_event = WebhookEventFactory(payload={"type": "payout.paid"})

        result = processor.process(webhook_event)

        assert not result.success
        assert WebhookEvent.objects.get(pk=webhook_event.pk).is_failed
