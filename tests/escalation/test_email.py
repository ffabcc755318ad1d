import json

import httpx
import pytest

from resolveit.config import Priority, StaffRole
from resolveit.core import EmailDeliveryException
from resolveit.escalation.application import EmailDispatchRequest
from resolveit.escalation.domain import StaffMember
from resolveit.escalation.infrastructure import EmailClient, EmailDispatcher
from resolveit.escalation.infrastructure.external import build_escalation_email


def _client(handler, **kwargs):
    options = {
        "api_key": "re_test",
        "api_url": "https://email.test/emails",
        "sender": "ResolveIt <noreply@resolveit.test>",
        "max_retries": 3,
        "backoff_base": 0,
        "transport": httpx.MockTransport(handler),
    }
    options.update(kwargs)
    return EmailClient(**options)


class RecordingEmailClient:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, to, subject, html_body):
        if to in self.fail_for:
            raise EmailDeliveryException("provider down", {"to": to})
        self.sent.append((to, subject, html_body))
        return True


def _request(complaint_id):
    return EmailDispatchRequest(complaint_id=complaint_id, reason="Complaint is 13 hours overdue", new_priority=Priority.HIGH)


@pytest.mark.asyncio
async def test_send_posts_to_provider():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    client = _client(handler)
    assert await client.send("owner@example.com", "Subject", "<p>Body</p>") is True
    await client.close()

    [request] = requests
    assert request.headers["Authorization"] == "Bearer re_test"
    body = json.loads(request.content)
    assert body == {
        "from": "ResolveIt <noreply@resolveit.test>",
        "to": ["owner@example.com"],
        "subject": "Subject",
        "html": "<p>Body</p>",
    }


@pytest.mark.asyncio
async def test_send_retries_then_raises():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client = _client(handler)
    with pytest.raises(EmailDeliveryException):
        await client.send("owner@example.com", "Subject", "Body")

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_send_recovers_on_retry():
    responses = iter([httpx.Response(503), httpx.Response(200)])
    client = _client(lambda request: next(responses))

    assert await client.send("owner@example.com", "Subject", "Body") is True


@pytest.mark.asyncio
async def test_unconfigured_client_skips():
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(handler, api_key="")

    assert client.is_configured is False
    assert await client.send("owner@example.com", "Subject", "Body") is False


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler, max_retries=1)
    for _ in range(5):
        with pytest.raises(EmailDeliveryException):
            await client.send("owner@example.com", "Subject", "Body")

    with pytest.raises(EmailDeliveryException):
        await client.send("owner@example.com", "Subject", "Body")

    assert len(calls) == 5


def test_escalation_email_escapes_user_text():
    message = build_escalation_email("<script>", "a & b", "HIGH", for_assignee=True)

    assert message["subject"] == "Urgent: Complaint escalated to you (HIGH)"
    assert "&lt;script&gt;" in message["html"]
    assert "a &amp; b" in message["html"]


@pytest.mark.asyncio
async def test_dispatch_emails_owner_and_assignee(store, uow_factory, make_complaint):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN, email="admin@example.com"))
    complaint = store.add(make_complaint(user_id="owner", assigned_to="admin"))
    store.emails["owner"] = "owner@example.com"
    client = RecordingEmailClient()

    sent = await EmailDispatcher(uow_factory, client).dispatch(_request(complaint.id))

    assert sent == 2
    assert [to for to, _, _ in client.sent] == ["owner@example.com", "admin@example.com"]
    assert client.sent[0][1] == "Your complaint has been escalated"


@pytest.mark.asyncio
async def test_dispatch_uses_anonymous_email(store, uow_factory, make_complaint):
    complaint = store.add(make_complaint(user_id="owner", is_anonymous=True, anonymous_email="anon@example.com"))
    store.emails["owner"] = "owner@example.com"
    client = RecordingEmailClient()

    await EmailDispatcher(uow_factory, client).dispatch(_request(complaint.id))

    assert [to for to, _, _ in client.sent] == ["anon@example.com"]


@pytest.mark.asyncio
async def test_dispatch_failure_is_logged_not_raised(store, uow_factory, make_complaint, caplog):
    store.staff.append(StaffMember("admin", StaffRole.ADMIN, email="admin@example.com"))
    complaint = store.add(make_complaint(user_id="owner", assigned_to="admin"))
    store.emails["owner"] = "owner@example.com"
    client = RecordingEmailClient(fail_for={"owner@example.com"})

    sent = await EmailDispatcher(uow_factory, client).dispatch(_request(complaint.id))

    assert sent == 1
    assert "Failed to send escalation email" in caplog.text


@pytest.mark.asyncio
async def test_worker_drains_queue(store, uow_factory, make_complaint):
    complaint = store.add(make_complaint(user_id="owner"))
    store.emails["owner"] = "owner@example.com"
    client = RecordingEmailClient()
    dispatcher = EmailDispatcher(uow_factory, client)

    dispatcher.start()
    assert dispatcher.submit(_request(complaint.id)) is True
    await dispatcher.join()
    await dispatcher.stop()

    assert len(client.sent) == 1
    assert dispatcher.is_running is False


def test_full_queue_drops_request(uow_factory):
    dispatcher = EmailDispatcher(uow_factory, RecordingEmailClient(), maxsize=1)

    assert dispatcher.submit(_request("a")) is True
    assert dispatcher.submit(_request("b")) is False
    assert dispatcher.pending == 1
