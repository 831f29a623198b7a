"""
Tests for the mail relay client, invoice delivery and the periodic trial sweep
"""
import json
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from config import settings
from crud.subscription import SubscriptionRepository
from database_models import Subscription, INVOICE_PENDING, INVOICE_SENT, STATUS_EXPIRED, STATUS_TRIAL
from jobs.trial_sweep import run_trial_sweep
from services.email_service import EmailService, EmailDeliveryError
from services.lead_service import LeadService
from services.pricing import PricingConfig
from tests.conftest import create_user, create_trial

T0 = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def relay(monkeypatch):
    monkeypatch.setattr(settings, "smtp_host", "relay.example.com")
    monkeypatch.setattr(settings, "smtp_port", 2525)
    monkeypatch.setattr(settings, "smtp_user", "mailer")
    monkeypatch.setattr(settings, "smtp_pass", "s3cret")
    monkeypatch.setattr(settings, "smtp_from", "no-reply@example.com")
    monkeypatch.setattr(settings, "app_url", "https://cv.example.com/")
    return settings


def recording_transport(status_code=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json={"ok": status_code < 400})

    return httpx.MockTransport(handler), requests


@pytest.mark.asyncio
async def test_unconfigured_relay_skips_sending():
    transport, requests = recording_transport()

    sent = await EmailService(transport=transport).send_verification_email("ana@example.com", "tok", "ana")

    assert sent is False
    assert requests == []


@pytest.mark.asyncio
async def test_verification_email_posts_to_relay(relay):
    transport, requests = recording_transport()

    sent = await EmailService(transport=transport).send_verification_email("ana@example.com", "tok123", "ana")

    assert sent is True
    request = requests[0]
    assert str(request.url) == "https://relay.example.com:2525/send"
    assert request.headers["authorization"].startswith("Basic ")
    body = json.loads(request.content)
    assert body["from"] == "no-reply@example.com"
    assert body["to"] == "ana@example.com"
    assert "https://cv.example.com/api/verify-email/tok123" in body["text"]


@pytest.mark.asyncio
async def test_relay_error_status_raises(relay):
    transport, _ = recording_transport(status_code=502)

    with pytest.raises(EmailDeliveryError):
        await EmailService(transport=transport).send("ana@example.com", "Asunto", "Hola")


@pytest.mark.asyncio
async def test_invoice_is_mirrored_and_marked_sent(test_db, relay):
    transport, requests = recording_transport()
    user = await create_user(test_db)
    service = LeadService(test_db, PricingConfig.from_settings(settings), email_service=EmailService(transport=transport))

    result = await service.intake(
        {
            "name": "Ana",
            "email": "ana@example.com",
            "plan": "profesional",
            "requires_invoice": True,
            "tax_id": "LOPA800101AB1",
            "business_name": "Ana SA",
        },
        user,
        now=T0,
    )

    assert result.invoice_sent is True
    invoice = await SubscriptionRepository(test_db).get_invoice_for_subscription(result.subscription.id)
    await test_db.refresh(invoice)
    assert invoice.id == result.invoice.id
    assert invoice.status == INVOICE_SENT
    assert invoice.sent_at == T0
    assert (invoice.subtotal, invoice.tax, invoice.total) == (Decimal("1000.00"), Decimal("160.00"), Decimal("1160.00"))
    text = json.loads(requests[0].content)["text"]
    assert "RFC: LOPA800101AB1" in text
    assert "Total: $1160.00" in text


@pytest.mark.asyncio
async def test_failed_invoice_delivery_keeps_trial(test_db, relay):
    transport, _ = recording_transport(status_code=500)
    user = await create_user(test_db)
    service = LeadService(test_db, PricingConfig.from_settings(settings), email_service=EmailService(transport=transport))

    result = await service.intake(
        {"name": "Ana", "email": "ana@example.com", "plan": "basico", "requires_invoice": True, "tax_id": "LOPA800101AB1"},
        user,
        now=T0,
    )

    assert result.invoice_sent is False
    assert result.invoice.status == INVOICE_PENDING
    assert result.subscription.status == STATUS_TRIAL


@pytest.mark.asyncio
async def test_run_trial_sweep_commits_transitions(session_factory):
    async with session_factory() as db:
        user = await create_user(db)
        subscription = await create_trial(db, user, T0)
        await db.commit()
        subscription_id = subscription.id

    result = await run_trial_sweep(now=T0 + timedelta(hours=25), session_factory=session_factory)

    assert (result.processed_count, result.expired_count, result.activated_count) == (1, 1, 0)
    async with session_factory() as db:
        stored = (await db.execute(select(Subscription).where(Subscription.id == subscription_id))).scalar_one()
        assert stored.status == STATUS_EXPIRED


@pytest.mark.asyncio
async def test_sweep_skips_a_failing_subscription(session_factory, monkeypatch):
    async with session_factory() as db:
        broken = await create_trial(db, await create_user(db, username="roto"), T0)
        healthy = await create_trial(db, await create_user(db, username="sano"), T0)
        await db.commit()
        broken_id, healthy_id = broken.id, healthy.id

    original_transition = SubscriptionRepository.transition

    async def flaky_transition(self, subscription_id, *args, **kwargs):
        if subscription_id == broken_id:
            raise OperationalError("UPDATE", {}, Exception("disk I/O error"))
        return await original_transition(self, subscription_id, *args, **kwargs)

    monkeypatch.setattr(SubscriptionRepository, "transition", flaky_transition)
    result = await run_trial_sweep(now=T0 + timedelta(hours=25), session_factory=session_factory)

    assert (result.processed_count, result.expired_count, result.failed_count) == (1, 1, 1)
    async with session_factory() as db:
        statuses = dict((await db.execute(select(Subscription.id, Subscription.status))).all())
    assert statuses == {broken_id: STATUS_TRIAL, healthy_id: STATUS_EXPIRED}
