import pytest

from marketplace.domain.errors import InvalidRating
from marketplace.domain.ratings.encoding import (
	FELT_PRIME,
	decode_rating,
	decode_short_string,
	encode_rating,
	encode_rating_bound,
	encode_short_string,
	felt_to_bool,
	felt_to_int,
	format_address,
	to_felt,
)


@pytest.mark.parametrize("rating", [0, 0.5, 1, 2.5, 4.5, 5])
def test_half_point_ratings_survive_the_wire(rating):
	assert decode_rating(encode_rating(rating)) == rating


def test_rating_scaled_by_ten():
	assert encode_rating(4.5) == 45
	assert encode_rating("3") == 30
	assert decode_rating("0x2d") == 4.5


@pytest.mark.parametrize("rating", [-0.5, 5.5, 4.3, 2.25, "abc", float("nan"), True])
def test_invalid_ratings_rejected(rating):
	with pytest.raises(InvalidRating):
		encode_rating(rating)


def test_invalid_rating_is_a_value_error():
	with pytest.raises(ValueError):
		encode_rating(7)


def test_filter_bounds_round_inward_and_clamp():
	assert encode_rating_bound(3.25, upper=False) == 33
	assert encode_rating_bound(3.25, upper=True) == 32
	assert encode_rating_bound(-1, upper=False) == 0
	assert encode_rating_bound(9, upper=True) == 50


def test_short_string_packing():
	felt = encode_short_string("Great")
	assert felt == int.from_bytes(b"Great", "big")
	assert decode_short_string(felt) == "Great"
	assert encode_short_string("") == 0
	assert decode_short_string(0) == ""


def test_short_string_limits():
	assert decode_short_string(encode_short_string("x" * 31)) == "x" * 31
	with pytest.raises(ValueError):
		encode_short_string("x" * 32)
	with pytest.raises(ValueError):
		encode_short_string("café")


def test_to_felt_accepts_numbers_hex_and_short_strings():
	assert to_felt(42) == 42
	assert to_felt("42") == 42
	assert to_felt("0x2A") == 42
	assert to_felt("prov-1") == encode_short_string("prov-1")


@pytest.mark.parametrize("value", ["123e4567-e89b-12d3-a456-426614174000", "reviewer@example.com" * 2, "café"])
def test_to_felt_digests_ids_that_do_not_fit_a_short_string(value):
	felt = to_felt(value)

	assert 0 < felt < FELT_PRIME
	assert felt.bit_length() <= 250
	assert to_felt(value) == felt
	assert felt != to_felt(value + "x")


@pytest.mark.parametrize("value", ["", "   ", -1, FELT_PRIME, True, "0xzz"])
def test_to_felt_rejects_out_of_range(value):
	with pytest.raises(ValueError):
		to_felt(value)


def test_felt_helpers():
	assert felt_to_int("0x10") == 16
	assert felt_to_int(" 7 ") == 7
	assert format_address(255) == "0xff"
	assert felt_to_bool(1) is True
	assert felt_to_bool("0x0") is False
