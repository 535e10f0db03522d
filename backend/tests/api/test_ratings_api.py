import pytest

from marketplace.domain.ratings.encoding import to_felt
from marketplace.infra.jwt import issue_access_token

PROVIDER = "7"


def _user(user_id: str, roles: str = "") -> dict:
	headers = {"X-User-Id": user_id}
	if roles:
		headers["X-User-Roles"] = roles
	return headers


async def _submit(api_client, user_id, service_id, rating, content="fine"):
	return await api_client.post(
		f"/providers/{PROVIDER}/reviews",
		json={"service_id": service_id, "rating": rating, "content": content},
		headers=_user(user_id),
	)


@pytest.mark.asyncio
async def test_rating_summary_for_unknown_provider_is_zero(api_client, ratings):
	resp = await api_client.get(f"/providers/{PROVIDER}/rating")

	assert resp.status_code == 200
	assert resp.json() == {"average_rating": 0.0, "weighted_rating": 0.0, "review_count": 0}


@pytest.mark.asyncio
async def test_submit_then_summarise(api_client, ratings):
	for index, rating in enumerate([5, 5, 4, 3], start=1):
		resp = await _submit(api_client, f"user-{index}", "svc-1", rating)
		assert resp.status_code == 201
		assert resp.json() == {"review_id": index}

	summary = (await api_client.get(f"/providers/{PROVIDER}/rating")).json()
	ledger = (await api_client.get(f"/providers/{PROVIDER}/rating/ledger")).json()

	assert summary["review_count"] == 4
	assert summary["average_rating"] == pytest.approx(4.25)
	assert ledger["average_rating"] == pytest.approx(4.2)


@pytest.mark.asyncio
async def test_submit_rejects_bad_rating(api_client, ratings):
	resp = await _submit(api_client, "user-1", "svc-1", 4.3)

	assert resp.status_code == 422
	assert resp.json()["detail"] == "invalid_rating"
	assert "request_id" in resp.json()


@pytest.mark.asyncio
async def test_submit_rejects_oversized_content(api_client, ratings):
	resp = await _submit(api_client, "user-1", "svc-1", 4, content="x" * 32)

	assert resp.status_code == 422
	assert resp.json()["detail"] == "invalid_content"


@pytest.mark.asyncio
async def test_submit_accepts_uuid_reviewer(api_client, ratings):
	reviewer = "123e4567-e89b-12d3-a456-426614174000"

	resp = await _submit(api_client, reviewer, "svc-1", 4.5, content="great")

	assert resp.status_code == 201
	check = await api_client.get("/reviews/check", params={"reviewer_id": reviewer, "service_id": "svc-1"})
	assert check.json() == {"has_reviewed": True}


@pytest.mark.asyncio
async def test_submit_reports_bad_service_id_separately(api_client, ratings):
	resp = await _submit(api_client, "user-1", "0x" + "f" * 64, 4)

	assert resp.status_code == 422
	assert resp.json()["detail"] == "invalid_service_id"


@pytest.mark.asyncio
async def test_duplicate_review_conflicts(api_client, ratings):
	assert (await _submit(api_client, "user-1", "svc-1", 4)).status_code == 201

	resp = await _submit(api_client, "user-1", "svc-1", 5)

	assert resp.status_code == 409
	assert resp.json()["detail"] == "already_reviewed"

	check = await api_client.get("/reviews/check", params={"reviewer_id": "user-1", "service_id": "svc-1"})
	assert check.json() == {"has_reviewed": True}
	check = await api_client.get("/reviews/check", params={"reviewer_id": "user-2", "service_id": "svc-1"})
	assert check.json() == {"has_reviewed": False}


@pytest.mark.asyncio
async def test_submit_requires_authentication(api_client, ratings):
	resp = await api_client.post(
		f"/providers/{PROVIDER}/reviews",
		json={"service_id": "svc-1", "rating": 4, "content": "ok"},
	)

	assert resp.status_code == 401


@pytest.mark.asyncio
async def test_submit_accepts_bearer_token(api_client, ratings):
	token = issue_access_token("user-9")

	resp = await api_client.post(
		f"/providers/{PROVIDER}/reviews",
		json={"service_id": "svc-1", "rating": 2.5, "content": "ok"},
		headers={"Authorization": f"Bearer {token}"},
	)

	assert resp.status_code == 201
	review = (await api_client.get(f"/providers/{PROVIDER}/reviews/1")).json()
	assert review["reviewer_id"] == hex(to_felt("user-9"))
	assert review["rating"] == 2.5


@pytest.mark.asyncio
async def test_review_pages_and_filters(api_client, ratings):
	for index, rating in enumerate([1, 2, 3, 4, 5], start=1):
		await _submit(api_client, f"user-{index}", "svc-1", rating)

	page = (await api_client.get(f"/providers/{PROVIDER}/reviews", params={"limit": 2})).json()
	assert page["review_ids"] == [1, 2]
	assert [review["rating"] for review in page["reviews"]] == [1, 2]

	last = (await api_client.get(f"/providers/{PROVIDER}/reviews", params={"offset": 4, "limit": 2})).json()
	assert last["review_ids"] == [5]

	empty = (await api_client.get(f"/providers/{PROVIDER}/reviews", params={"offset": 5})).json()
	assert empty["review_ids"] == []

	filtered = (
		await api_client.get(
			f"/providers/{PROVIDER}/reviews",
			params={"min_rating": 4, "max_rating": 4},
		)
	).json()
	assert filtered["review_ids"] == [4]


@pytest.mark.asyncio
async def test_unknown_review_is_404(api_client, ratings):
	resp = await api_client.get(f"/providers/{PROVIDER}/reviews/42")

	assert resp.status_code == 404
	assert resp.json()["detail"] == "review_not_found"


@pytest.mark.asyncio
async def test_verify_requires_admin(api_client, ratings):
	await _submit(api_client, "user-1", "svc-1", 5)
	await _submit(api_client, "user-2", "svc-1", 3)

	denied = await api_client.post(f"/providers/{PROVIDER}/reviews/1/verify", headers=_user("user-3"))
	assert denied.status_code == 403

	ok = await api_client.post(f"/providers/{PROVIDER}/reviews/1/verify", headers=_user("ops", "admin"))
	assert ok.status_code == 204

	review = (await api_client.get(f"/providers/{PROVIDER}/reviews/1")).json()
	assert review["verified"] is True
	summary = (await api_client.get(f"/providers/{PROVIDER}/rating")).json()
	assert summary["weighted_rating"] == pytest.approx((2 * 5 + 3) / 3)


@pytest.mark.asyncio
async def test_ledger_outage_maps_to_503(api_client, ratings, ledger, monkeypatch):
	from marketplace.domain.errors import RatingLedgerUnavailable

	async def unavailable(*args, **kwargs):
		raise RatingLedgerUnavailable("gateway down")

	monkeypatch.setattr(ledger, "get_provider_reviews", unavailable)

	resp = await api_client.get(f"/providers/{PROVIDER}/rating")

	assert resp.status_code == 503
	assert resp.json()["detail"] == "rating_ledger_unavailable"
