"""Domain models for provider ratings and reviews."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Tuple

# Ledger weights are integers; one decimal digit survives the conversion
_LEDGER_WEIGHT_SCALE = 10


@dataclass(frozen=True, slots=True)
class Review:
	id: int
	provider_id: int
	reviewer_id: str
	service_id: int
	rating: float
	content: str
	timestamp: int
	verified: bool

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass(frozen=True, slots=True)
class RatingWeights:
	"""Relative contribution of verified and unverified reviews to the weighted mean."""

	verified: float = 2.0
	unverified: float = 1.0

	def __post_init__(self) -> None:
		if self.verified < 0 or self.unverified < 0:
			raise ValueError("rating weights must be non-negative")

	def for_review(self, review: Review) -> float:
		return self.verified if review.verified else self.unverified

	def ledger_weights(self) -> Tuple[int, int]:
		"""Integer (verified, unverified) weights with the same ratio, for integer ledgers."""
		return (
			int(round(self.verified * _LEDGER_WEIGHT_SCALE)),
			int(round(self.unverified * _LEDGER_WEIGHT_SCALE)),
		)


@dataclass(frozen=True, slots=True)
class ProviderRatingSummary:
	average_rating: float
	weighted_rating: float
	review_count: int

	@classmethod
	def from_reviews(cls, reviews: Iterable[Review], weights: RatingWeights) -> "ProviderRatingSummary":
		count = 0
		total = 0.0
		weighted_total = 0.0
		weight_sum = 0.0
		for review in reviews:
			count += 1
			total += review.rating
			weight = weights.for_review(review)
			weighted_total += weight * review.rating
			weight_sum += weight
		if count == 0:
			return cls(average_rating=0.0, weighted_rating=0.0, review_count=0)
		weighted = weighted_total / weight_sum if weight_sum else 0.0
		return cls(average_rating=total / count, weighted_rating=weighted, review_count=count)


@dataclass(frozen=True, slots=True)
class LedgerRating:
	"""Summary values exactly as the ledger reports them (one decimal of precision)."""

	average_rating: float
	weighted_rating: float
	review_count: int
