"""API surface tests for account, profile and ops routes."""

from __future__ import annotations

import pytest

from ding.identity import policy
from ding.settings import settings


@pytest.mark.asyncio
async def test_signup_sets_session_cookie(api_client):
	resp = await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	assert resp.status_code == 201
	assert resp.json() == {"name": "alice", "email_verified": False}
	assert settings.cookie_name in resp.cookies

	me = await api_client.get("/u")
	assert me.status_code == 200
	assert me.json()["email"] == "alice@example.com"
	assert me.json()["invited_by"] == "alice"


@pytest.mark.asyncio
async def test_signup_conflict(api_client):
	payload = {"name": "alice", "email": "alice@example.com", "password": "password123"}
	await api_client.post("/signup", json=payload)
	resp = await api_client.post("/signup", json={**payload, "email": "other@example.com"})
	assert resp.status_code == 409
	assert resp.json()["detail"] == "handle_taken"


@pytest.mark.asyncio
async def test_login_logout_round_trip(api_client):
	await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	await api_client.post("/logout")
	assert (await api_client.get("/u")).status_code == 401

	bad = await api_client.post("/login", json={"email": "alice@example.com", "password": "wrong-one"})
	assert bad.status_code == 401
	assert bad.json()["detail"] == "invalid_credentials"

	good = await api_client.post("/login", json={"email": "alice@example.com", "password": "password123"})
	assert good.status_code == 200
	assert (await api_client.get("/u")).json()["name"] == "alice"


@pytest.mark.asyncio
async def test_verify_email_link(api_client, mailbox):
	await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	_, email, token = mailbox.last("verify")

	resp = await api_client.get("/verify-email", params={"email": email, "token": token})
	assert resp.status_code == 200
	assert resp.json()["email_verified"] is True

	bad = await api_client.get("/verify-email", params={"email": email, "token": "123:abc"})
	assert bad.status_code == 400
	assert bad.json()["detail"] == "token_invalid"


@pytest.mark.asyncio
async def test_forgot_and_reset_password(api_client, mailbox):
	await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	unknown = await api_client.post("/forgot-password", json={"email": "ghost@example.com"})
	assert unknown.status_code == 202

	await api_client.post("/forgot-password", json={"email": "alice@example.com"})
	_, email, token = mailbox.last("reset")
	reset = await api_client.post(
		"/reset-password",
		json={"email": email, "token": token, "password": "brand-new-pass"},
	)
	assert reset.status_code == 200
	assert reset.json() == {"name": "alice", "email_verified": True}

	login = await api_client.post("/login", json={"email": email, "password": "brand-new-pass"})
	assert login.status_code == 200


@pytest.mark.asyncio
async def test_invite_and_public_profile(api_client, mailbox):
	await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	invited = await api_client.post("/invite", json={"name": "bob", "email": "bob@example.com"})
	assert invited.status_code == 201
	assert invited.json()["invited_by"] == "alice"
	assert mailbox.last("invite")[1] == "bob@example.com"

	profile = await api_client.get("/u/BOB")
	assert profile.status_code == 200
	assert profile.json()["name"] == "bob"
	assert "email" not in profile.json()

	assert (await api_client.get("/u/nobody")).status_code == 404


@pytest.mark.asyncio
async def test_update_bio(api_client):
	await api_client.post(
		"/signup",
		json={"name": "alice", "email": "alice@example.com", "password": "password123"},
	)
	resp = await api_client.patch("/u", json={"bio": "I write things"})
	assert resp.status_code == 200
	assert resp.json()["bio"] == "I write things"


@pytest.mark.asyncio
async def test_login_is_throttled(api_client):
	payload = {"email": "nobody@example.com", "password": "whatever-pass"}
	statuses = [(await api_client.post("/login", json=payload)).status_code for _ in range(14)]
	assert statuses[0] == 401
	assert statuses[-1] == 429

	throttled = await api_client.post("/login", json=payload)
	assert throttled.status_code == 429
	assert int(throttled.headers["Retry-After"]) >= 1


@pytest.mark.asyncio
async def test_ops_endpoints(api_client):
	robots = await api_client.get("/robots.txt")
	assert robots.status_code == 200
	assert robots.text.startswith("User-agent: *")

	health = await api_client.get("/healthz")
	assert health.status_code == 503
	assert health.json()["database"] == "unknown"

	metrics = await api_client.get("/metrics")
	assert metrics.status_code == 200
	assert "ding_items_created_total" in metrics.text
	assert metrics.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_forwarded_for_header_does_not_reset_throttle(api_client):
	params = {"email": "alice@example.com", "token": "1:deadbeef"}
	statuses = []
	for n in range(policy.VERIFY_BUDGET.limit + 1):
		resp = await api_client.get("/verify-email", params=params, headers={"X-Forwarded-For": f"198.51.100.{n}"})
		statuses.append(resp.status_code)
	assert statuses[-1] == 429
