"""Rating ledger call contract and implementations.

The ledger (a smart contract) owns reviews; this backend only reads from it and
relays writes. Every argument and result is a felt (integer); ratings are scaled
by 10.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

import httpx

from marketplace.domain.errors import (
	AlreadyReviewed,
	InvalidRating,
	RatingLedgerError,
	RatingLedgerUnavailable,
	ReviewNotFound,
)
from marketplace.obs import metrics as obs_metrics

from .encoding import MAX_RATING, RATING_SCALE, RATING_STEP, bool_to_felt, felt_to_int

logger = logging.getLogger(__name__)

_MAX_SCALED = int(MAX_RATING * RATING_SCALE)
_STEP_SCALED = int(RATING_STEP * RATING_SCALE)


@dataclass(frozen=True, slots=True)
class LedgerReview:
	"""Raw ``get_review`` result tuple."""

	reviewer: int
	service_id: int
	rating: int
	timestamp: int
	verified: int
	content: int


class RatingLedger(Protocol):
	async def submit_review(self, reviewer: int, provider_id: int, service_id: int, rating: int, content: int) -> int:
		...

	async def verify_review(self, provider_id: int, review_id: int) -> None:
		...

	async def get_provider_rating(self, provider_id: int) -> Tuple[int, int]:
		...

	async def get_review(self, provider_id: int, review_id: int) -> LedgerReview:
		...

	async def get_provider_reviews(self, provider_id: int, offset: int, limit: int) -> List[int]:
		...

	async def check_has_reviewed(self, reviewer: int, service_id: int) -> int:
		...

	async def filter_reviews_by_rating(
		self, provider_id: int, min_rating: int, max_rating: int, offset: int, limit: int
	) -> List[int]:
		...

	async def get_weighted_rating(self, provider_id: int) -> int:
		...


def _page(ids: Sequence[int], offset: int, limit: int) -> List[int]:
	if offset < 0 or limit <= 0:
		return []
	return list(ids[offset : offset + limit])


@dataclass
class _StoredReview:
	review_id: int
	record: LedgerReview


@dataclass
class InMemoryRatingLedger:
	"""Reference ledger with the contract's semantics, for tests and local dev.

	Review ids are assigned per provider starting at 1, in submission order.
	Averages use integer division like the contract, so they keep one decimal.
	"""

	verified_weight: int = 2
	unverified_weight: int = 1
	clock: Callable[[], float] = time.time
	_reviews: Dict[int, List[_StoredReview]] = field(default_factory=dict)
	_reviewed: Set[Tuple[int, int]] = field(default_factory=set)
	_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	async def submit_review(self, reviewer: int, provider_id: int, service_id: int, rating: int, content: int) -> int:
		if rating < 0 or rating > _MAX_SCALED or rating % _STEP_SCALED:
			raise InvalidRating(f"scaled rating {rating} not on the half-point grid")
		async with self._lock:
			if (reviewer, service_id) in self._reviewed:
				raise AlreadyReviewed(f"reviewer already reviewed service {service_id}")
			reviews = self._reviews.setdefault(provider_id, [])
			review_id = len(reviews) + 1
			record = LedgerReview(
				reviewer=reviewer,
				service_id=service_id,
				rating=rating,
				timestamp=int(self.clock()),
				verified=0,
				content=content,
			)
			reviews.append(_StoredReview(review_id=review_id, record=record))
			self._reviewed.add((reviewer, service_id))
			return review_id

	async def verify_review(self, provider_id: int, review_id: int) -> None:
		async with self._lock:
			stored = self._find(provider_id, review_id)
			if stored.record.verified:
				return
			stored.record = replace(stored.record, verified=1)

	async def get_provider_rating(self, provider_id: int) -> Tuple[int, int]:
		ratings = [stored.record.rating for stored in self._reviews.get(provider_id, [])]
		if not ratings:
			return 0, 0
		return sum(ratings) // len(ratings), len(ratings)

	async def get_review(self, provider_id: int, review_id: int) -> LedgerReview:
		return self._find(provider_id, review_id).record

	async def get_provider_reviews(self, provider_id: int, offset: int, limit: int) -> List[int]:
		ids = [stored.review_id for stored in self._reviews.get(provider_id, [])]
		return _page(ids, offset, limit)

	async def check_has_reviewed(self, reviewer: int, service_id: int) -> int:
		return bool_to_felt((reviewer, service_id) in self._reviewed)

	async def filter_reviews_by_rating(
		self, provider_id: int, min_rating: int, max_rating: int, offset: int, limit: int
	) -> List[int]:
		ids = [
			stored.review_id
			for stored in self._reviews.get(provider_id, [])
			if min_rating <= stored.record.rating <= max_rating
		]
		return _page(ids, offset, limit)

	async def get_weighted_rating(self, provider_id: int) -> int:
		total = 0
		weight_sum = 0
		for stored in self._reviews.get(provider_id, []):
			weight = self.verified_weight if stored.record.verified else self.unverified_weight
			total += weight * stored.record.rating
			weight_sum += weight
		if not weight_sum:
			return 0
		return total // weight_sum

	def _find(self, provider_id: int, review_id: int) -> _StoredReview:
		for stored in self._reviews.get(provider_id, []):
			if stored.review_id == review_id:
				return stored
		raise ReviewNotFound(provider_id, review_id)


_ERROR_CODES = {
	InvalidRating.code: InvalidRating,
	AlreadyReviewed.code: AlreadyReviewed,
}


class HttpRatingLedger:
	"""Calls the ledger through an HTTP gateway.

	Requests are ``POST /call`` (views) or ``POST /invoke`` (writes) with a JSON body
	``{"function": name, "calldata": [hex felts], "caller": hex felt?}``; the gateway
	answers ``{"result": [felts]}`` or ``{"error": {"code": ..., "message": ...}}``.
	"""

	def __init__(self, base_url: str, *, timeout: float = 5.0, http: Optional[httpx.AsyncClient] = None) -> None:
		self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

	async def aclose(self) -> None:
		await self._http.aclose()

	async def _request(self, path: str, function: str, calldata: Sequence[int], caller: Optional[int] = None) -> List[int]:
		body: dict = {"function": function, "calldata": [hex(value) for value in calldata]}
		if caller is not None:
			body["caller"] = hex(caller)
		try:
			response = await self._http.post(path, json=body)
		except httpx.HTTPError as exc:
			obs_metrics.inc_ledger_call(function, "unavailable")
			logger.warning("rating ledger %s transport error", function, exc_info=True)
			raise RatingLedgerUnavailable(f"{function}: {exc}") from exc
		if response.status_code >= 500:
			obs_metrics.inc_ledger_call(function, "unavailable")
			raise RatingLedgerUnavailable(f"{function}: gateway returned {response.status_code}")
		try:
			payload = response.json()
		except ValueError as exc:
			obs_metrics.inc_ledger_call(function, "error")
			raise RatingLedgerError(f"{function}: malformed gateway response") from exc
		error = payload.get("error") if isinstance(payload, dict) else None
		if error or response.status_code >= 400:
			obs_metrics.inc_ledger_call(function, "error")
			code = str((error or {}).get("code") or "rating_ledger_error")
			message = str((error or {}).get("message") or code)
			exc_type = _ERROR_CODES.get(code)
			if exc_type is not None:
				raise exc_type(message)
			failure = RatingLedgerError(message)
			failure.code = code
			raise failure
		obs_metrics.inc_ledger_call(function, "ok")
		return [felt_to_int(value) for value in payload.get("result", [])]

	async def _call(self, function: str, *calldata: int) -> List[int]:
		return await self._request("/call", function, calldata)

	async def submit_review(self, reviewer: int, provider_id: int, service_id: int, rating: int, content: int) -> int:
		result = await self._request(
			"/invoke", "submit_review", (provider_id, service_id, rating, content), caller=reviewer
		)
		return result[0]

	async def verify_review(self, provider_id: int, review_id: int) -> None:
		try:
			await self._request("/invoke", "verify_review", (provider_id, review_id))
		except RatingLedgerError as exc:
			if exc.code == ReviewNotFound.code:
				raise ReviewNotFound(provider_id, review_id) from None
			raise

	async def get_provider_rating(self, provider_id: int) -> Tuple[int, int]:
		avg_rating, review_count = (await self._call("get_provider_rating", provider_id))[:2]
		return avg_rating, review_count

	async def get_review(self, provider_id: int, review_id: int) -> LedgerReview:
		try:
			result = await self._call("get_review", provider_id, review_id)
		except RatingLedgerError as exc:
			if exc.code == ReviewNotFound.code:
				raise ReviewNotFound(provider_id, review_id) from None
			raise
		reviewer, service_id, rating, timestamp, verified, content = result[:6]
		return LedgerReview(
			reviewer=reviewer,
			service_id=service_id,
			rating=rating,
			timestamp=timestamp,
			verified=verified,
			content=content,
		)

	async def get_provider_reviews(self, provider_id: int, offset: int, limit: int) -> List[int]:
		return _unpack_array(await self._call("get_provider_reviews", provider_id, offset, limit))

	async def check_has_reviewed(self, reviewer: int, service_id: int) -> int:
		return (await self._call("check_has_reviewed", reviewer, service_id))[0]

	async def filter_reviews_by_rating(
		self, provider_id: int, min_rating: int, max_rating: int, offset: int, limit: int
	) -> List[int]:
		result = await self._call("filter_reviews_by_rating", provider_id, min_rating, max_rating, offset, limit)
		return _unpack_array(result)

	async def get_weighted_rating(self, provider_id: int) -> int:
		return (await self._call("get_weighted_rating", provider_id))[0]


def _unpack_array(result: Sequence[int]) -> List[int]:
	"""Decode a ``(len, items*)`` felt array."""
	if not result:
		return []
	length = result[0]
	return list(result[1 : 1 + length])
