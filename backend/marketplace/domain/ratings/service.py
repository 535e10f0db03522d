"""Read-side rating aggregation over the external rating ledger."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from marketplace.settings import Settings, settings

from .encoding import (
	FeltLike,
	decode_rating,
	decode_short_string,
	encode_rating,
	encode_rating_bound,
	encode_short_string,
	felt_to_bool,
	format_address,
	to_felt,
)
from .ledger import LedgerReview, RatingLedger
from .models import LedgerRating, ProviderRatingSummary, RatingWeights, Review

logger = logging.getLogger(__name__)


def weights_from_settings(source: Settings = settings) -> RatingWeights:
	# Verified reviews count double by default (2.0 vs 1.0); the ratio is
	# configurable because the ledger does not publish its own.
	return RatingWeights(verified=source.rating_verified_weight, unverified=source.rating_unverified_weight)


def _review_from_ledger(provider_id: int, review_id: int, raw: LedgerReview) -> Review:
	return Review(
		id=review_id,
		provider_id=provider_id,
		reviewer_id=format_address(raw.reviewer),
		service_id=raw.service_id,
		rating=decode_rating(raw.rating),
		content=decode_short_string(raw.content),
		timestamp=raw.timestamp,
		verified=felt_to_bool(raw.verified),
	)


class RatingAggregator:
	"""Summary statistics and paginated review feeds for a provider.

	Summaries are recomputed from the provider's review set on every call; nothing
	is cached here.
	"""

	def __init__(
		self,
		ledger: RatingLedger,
		*,
		weights: Optional[RatingWeights] = None,
		page_size: int = 50,
	) -> None:
		self._ledger = ledger
		self._weights = weights or weights_from_settings()
		self._page_size = max(1, int(page_size))

	@property
	def ledger(self) -> RatingLedger:
		return self._ledger

	@property
	def weights(self) -> RatingWeights:
		return self._weights

	async def get_provider_rating(self, provider_id: FeltLike) -> ProviderRatingSummary:
		reviews = await self._all_reviews(to_felt(provider_id))
		return ProviderRatingSummary.from_reviews(reviews, self._weights)

	async def get_weighted_rating(self, provider_id: FeltLike) -> float:
		summary = await self.get_provider_rating(provider_id)
		return summary.weighted_rating

	async def get_provider_reviews(self, provider_id: FeltLike, offset: int = 0, limit: int = 10) -> List[int]:
		if offset < 0 or limit <= 0:
			return []
		return await self._ledger.get_provider_reviews(to_felt(provider_id), offset, limit)

	async def filter_reviews_by_rating(
		self,
		provider_id: FeltLike,
		min_rating: float,
		max_rating: float,
		offset: int = 0,
		limit: int = 10,
	) -> List[int]:
		if offset < 0 or limit <= 0:
			return []
		low = encode_rating_bound(min_rating, upper=False)
		high = encode_rating_bound(max_rating, upper=True)
		if low > high:
			return []
		return await self._ledger.filter_reviews_by_rating(to_felt(provider_id), low, high, offset, limit)

	async def get_review(self, provider_id: FeltLike, review_id: int) -> Review:
		provider = to_felt(provider_id)
		raw = await self._ledger.get_review(provider, review_id)
		return _review_from_ledger(provider, review_id, raw)

	async def list_reviews(
		self,
		provider_id: FeltLike,
		offset: int = 0,
		limit: int = 10,
		*,
		min_rating: Optional[float] = None,
		max_rating: Optional[float] = None,
	) -> List[Review]:
		"""Fetch a page of ids, then every review on it concurrently."""
		if min_rating is None and max_rating is None:
			ids = await self.get_provider_reviews(provider_id, offset, limit)
		else:
			ids = await self.filter_reviews_by_rating(
				provider_id,
				0.0 if min_rating is None else min_rating,
				5.0 if max_rating is None else max_rating,
				offset,
				limit,
			)
		return list(await asyncio.gather(*(self.get_review(provider_id, review_id) for review_id in ids)))

	async def check_has_reviewed(self, reviewer_id: FeltLike, service_id: FeltLike) -> bool:
		result = await self._ledger.check_has_reviewed(to_felt(reviewer_id), to_felt(service_id))
		return felt_to_bool(result)

	async def get_ledger_rating(self, provider_id: FeltLike) -> LedgerRating:
		provider = to_felt(provider_id)
		avg_rating, review_count = await self._ledger.get_provider_rating(provider)
		weighted = await self._ledger.get_weighted_rating(provider)
		return LedgerRating(
			average_rating=decode_rating(avg_rating),
			weighted_rating=decode_rating(weighted),
			review_count=review_count,
		)

	async def submit_review(
		self,
		reviewer_id: FeltLike,
		provider_id: FeltLike,
		service_id: FeltLike,
		rating: float,
		content: str,
	) -> int:
		"""Relay a new review to the ledger; the ledger enforces uniqueness."""
		review_id = await self._ledger.submit_review(
			to_felt(reviewer_id),
			to_felt(provider_id),
			to_felt(service_id),
			encode_rating(rating),
			encode_short_string(content),
		)
		logger.info("review submitted provider=%s review_id=%s", provider_id, review_id)
		return review_id

	async def verify_review(self, provider_id: FeltLike, review_id: int) -> None:
		await self._ledger.verify_review(to_felt(provider_id), review_id)
		logger.info("review verified provider=%s review_id=%s", provider_id, review_id)

	async def _all_reviews(self, provider_id: int) -> List[Review]:
		ids: List[int] = []
		offset = 0
		while True:
			page = await self._ledger.get_provider_reviews(provider_id, offset, self._page_size)
			ids.extend(page)
			if len(page) < self._page_size:
				break
			offset += len(page)
		raws = await asyncio.gather(*(self._ledger.get_review(provider_id, review_id) for review_id in ids))
		return [_review_from_ledger(provider_id, review_id, raw) for review_id, raw in zip(ids, raws)]
