import asyncio
from datetime import datetime, timezone

from loanadmin.api import deps
from loanadmin.core.errors import RecordStoreError
from loanadmin.main import app
from loanadmin.services.record_store import VERIFICATION_RECORDS, InMemoryRecordStore

from conftest import seed_org, seed_staff

ISSUE_URL = "/api/v1/verifications"


def _issue(client, recipient: str = "jane@example.com", channel: str = "email"):
    return client.post(ISSUE_URL, json={"subject_id": "user-1", "recipient": recipient, "channel": channel})


def test_issue_returns_metadata_without_secrets(client, notifier):
    resp = _issue(client, recipient="Jane@Example.com")

    assert resp.status_code == 201
    body = resp.json()
    assert body["recipient"] == "jane@example.com"
    assert body["channel"] == "email"
    assert body["status"] == "pending"
    assert "code" not in body
    assert "token" not in body
    assert len(notifier.sent) == 1
    assert notifier.sent[0].id == body["id"]


def test_verify_code_flow(client, notifier):
    _issue(client)
    code = notifier.sent[0].code

    first = client.post(
        f"{ISSUE_URL}/verify-code", json={"recipient": "jane@example.com", "channel": "email", "code": code}
    )
    second = client.post(
        f"{ISSUE_URL}/verify-code", json={"recipient": "jane@example.com", "channel": "email", "code": code}
    )

    assert first.status_code == 200
    assert first.json() == {"verified": True}
    assert second.json() == {"verified": False}


def test_verify_token_flow_and_status(client, notifier):
    _issue(client, recipient="+260971234567", channel="phone")
    token = notifier.sent[0].token

    before = client.get(f"{ISSUE_URL}/status", params={"recipient": "+260971234567", "channel": "phone"})
    resp = client.post(
        f"{ISSUE_URL}/verify-token", json={"recipient": "+260971234567", "channel": "phone", "token": token}
    )
    after = client.get(f"{ISSUE_URL}/status", params={"recipient": "+260971234567", "channel": "phone"})

    assert before.json() == {"verified": False}
    assert resp.json() == {"verified": True}
    assert after.json() == {"verified": True}


def test_wrong_code_is_not_verified(client):
    _issue(client)

    resp = client.post(
        f"{ISSUE_URL}/verify-code", json={"recipient": "jane@example.com", "channel": "email", "code": "abc"}
    )

    assert resp.status_code == 200
    assert resp.json() == {"verified": False}


def test_issue_rejects_invalid_email(client):
    resp = _issue(client, recipient="not-an-email")

    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_issue_rejects_unknown_channel(client):
    resp = _issue(client, channel="pigeon")

    assert resp.status_code == 422


def test_issue_is_rate_limited(client):
    statuses = [_issue(client).status_code for _ in range(6)]

    assert statuses[:5] == [201] * 5
    assert statuses[5] == 429


def test_rate_limited_response_uses_envelope(client):
    for _ in range(5):
        _issue(client)

    resp = _issue(client)

    assert resp.json()["code"] == "rate_limited"


def test_code_guessing_is_rate_limited(client):
    _issue(client)
    guess = {"recipient": "jane@example.com", "channel": "email", "code": "000000"}

    statuses = [client.post(f"{ISSUE_URL}/verify-code", json=guess).status_code for _ in range(11)]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429


def test_token_checks_are_rate_limited(client):
    guess = {"recipient": "jane@example.com", "channel": "email", "token": "f" * 64}

    statuses = [client.post(f"{ISSUE_URL}/verify-token", json=guess).status_code for _ in range(11)]

    assert statuses[10] == 429


def test_cleanup_requires_system_owner(client, store):
    asyncio.run(seed_org(store, "default"))
    asyncio.run(seed_staff(store, "admin-1", org_id="default", role="ADMIN"))

    anonymous = client.post(f"{ISSUE_URL}/cleanup")
    admin = client.post(f"{ISSUE_URL}/cleanup", headers={"X-Staff-ID": "admin-1"})

    assert anonymous.status_code == 403
    assert anonymous.json()["code"] == "access_denied"
    assert admin.status_code == 403


def test_cleanup_deletes_expired_pending(client, store):
    asyncio.run(seed_org(store, "default"))
    asyncio.run(seed_staff(store, "owner", org_id="default", role="SYSTEM_OWNER"))
    asyncio.run(
        store.create(
            VERIFICATION_RECORDS,
            {
                "id": "old",
                "subject_id": "user-1",
                "recipient": "old@example.com",
                "channel": "email",
                "code": "123456",
                "token": "a" * 64,
                "status": "pending",
                "expires_at": datetime(2020, 1, 1, 0, 15, tzinfo=timezone.utc),
                "created_at": datetime(2020, 1, 1, tzinfo=timezone.utc),
            },
        )
    )
    _issue(client)

    resp = client.post(f"{ISSUE_URL}/cleanup", headers={"X-Staff-ID": "owner"})

    assert resp.status_code == 200
    assert resp.json() == {"deleted": 1}
    remaining = asyncio.run(store.get_all(VERIFICATION_RECORDS))["items"]
    assert [item["recipient"] for item in remaining] == ["jane@example.com"]


class _OfflineStore(InMemoryRecordStore):
    async def get_all(self, collection):
        raise RecordStoreError("connection refused")


def test_store_failure_fails_closed(client):
    async def _offline():
        return _OfflineStore()

    app.dependency_overrides[deps.get_record_store] = _offline

    resp = client.post(
        f"{ISSUE_URL}/verify-code", json={"recipient": "jane@example.com", "channel": "email", "code": "123456"}
    )

    assert resp.status_code == 503
    assert resp.json()["code"] == "authorization_indeterminate"
