"""Pydantic schemas for the ratings API."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from .models import LedgerRating, ProviderRatingSummary, Review


class RatingSummaryResponse(BaseModel):
	average_rating: float
	weighted_rating: float
	review_count: int

	@classmethod
	def from_model(cls, summary: ProviderRatingSummary | LedgerRating) -> "RatingSummaryResponse":
		return cls(
			average_rating=summary.average_rating,
			weighted_rating=summary.weighted_rating,
			review_count=summary.review_count,
		)


class ReviewResponse(BaseModel):
	id: int
	provider_id: int
	reviewer_id: str
	service_id: int
	rating: float
	content: str
	timestamp: int
	verified: bool

	@classmethod
	def from_model(cls, review: Review) -> "ReviewResponse":
		return cls(**review.to_dict())


class ReviewListResponse(BaseModel):
	review_ids: List[int]
	reviews: List[ReviewResponse]
	offset: int
	limit: int


class HasReviewedResponse(BaseModel):
	has_reviewed: bool


class SubmitReviewRequest(BaseModel):
	service_id: str = Field(..., min_length=1)
	rating: float = Field(..., description="0 to 5 in half-point steps")
	content: str = Field(..., min_length=1, description="At most 31 ASCII bytes")


class SubmitReviewResponse(BaseModel):
	review_id: int
