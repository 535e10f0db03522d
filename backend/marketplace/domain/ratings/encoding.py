"""Felt encoding helpers for the rating ledger contract.

Every scalar crossing the ledger boundary is an integer (felt). Ratings carry one
decimal digit folded into the integer: 4.5 travels as 45 and is divided by 10 on
receipt. Short strings (review content) are packed big-endian, at most 31 ASCII
bytes, the way the contract's felt252 strings are.
"""

from __future__ import annotations

import hashlib
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, InvalidOperation
from typing import Union

from marketplace.domain.errors import InvalidRating

RATING_SCALE = 10
MIN_RATING = Decimal("0")
MAX_RATING = Decimal("5")
RATING_STEP = Decimal("0.5")

SHORT_STRING_MAX_BYTES = 31
FELT_PRIME = 2**251 + 17 * 2**192 + 1
_DIGEST_MASK = (1 << 250) - 1

FeltLike = Union[int, str]


def _to_decimal(value: object) -> Decimal:
	if isinstance(value, bool):
		raise InvalidRating(f"rating must be numeric, got {value!r}")
	try:
		number = Decimal(str(value))
	except (InvalidOperation, ValueError):
		raise InvalidRating(f"rating must be numeric, got {value!r}") from None
	if not number.is_finite():
		raise InvalidRating("rating must be finite")
	return number


def encode_rating(value: float | int | str) -> int:
	"""Encode a rating on the half-point grid in [0, 5] as its x10 integer."""
	number = _to_decimal(value)
	if number < MIN_RATING or number > MAX_RATING:
		raise InvalidRating(f"rating {value} outside [0, 5]")
	if number % RATING_STEP != 0:
		raise InvalidRating(f"rating {value} is not a multiple of 0.5")
	return int(number * RATING_SCALE)


def encode_rating_bound(value: float | int | str, *, upper: bool) -> int:
	"""Encode a filter bound; lower bounds round up, upper bounds round down."""
	number = _to_decimal(value)
	number = min(max(number, MIN_RATING), MAX_RATING)
	scaled = number * RATING_SCALE
	return int(scaled.to_integral_value(rounding=ROUND_FLOOR if upper else ROUND_CEILING))


def decode_rating(raw: FeltLike) -> float:
	return felt_to_int(raw) / RATING_SCALE


def felt_to_int(raw: FeltLike) -> int:
	if isinstance(raw, bool):
		return int(raw)
	if isinstance(raw, int):
		return raw
	text = str(raw).strip().lower()
	if text.startswith("0x"):
		return int(text, 16)
	return int(text)


def encode_short_string(text: str) -> int:
	data = text.encode("ascii", errors="strict") if text else b""
	if len(data) > SHORT_STRING_MAX_BYTES:
		raise ValueError(f"short string longer than {SHORT_STRING_MAX_BYTES} bytes")
	return int.from_bytes(data, "big") if data else 0


def decode_short_string(felt: FeltLike) -> str:
	value = felt_to_int(felt)
	if value == 0:
		return ""
	length = (value.bit_length() + 7) // 8
	return value.to_bytes(length, "big").decode("ascii", errors="replace")


def _digest_felt(text: str) -> int:
	digest = hashlib.sha256(text.encode("utf-8")).digest()
	return int.from_bytes(digest, "big") & _DIGEST_MASK


def to_felt(value: FeltLike) -> int:
	"""Coerce an identifier to a felt.

	Integers and numeric / 0x-hex strings are taken as numbers. Other text is
	packed as a short string when it fits in 31 ASCII bytes; longer or non-ASCII
	ids (UUIDs, emails) map to a sha256 digest truncated to 250 bits.
	"""
	if isinstance(value, bool):
		raise ValueError("boolean is not an identifier")
	if isinstance(value, int):
		felt = value
	else:
		text = str(value).strip()
		if not text:
			raise ValueError("empty identifier")
		lowered = text.lower()
		if lowered.startswith("0x"):
			felt = int(lowered, 16)
		elif text.isdigit():
			felt = int(text)
		else:
			try:
				felt = encode_short_string(text)
			except ValueError:
				felt = _digest_felt(text)
	if felt < 0 or felt >= FELT_PRIME:
		raise ValueError("identifier outside the felt range")
	return felt


def format_address(felt: FeltLike) -> str:
	return hex(felt_to_int(felt))


def bool_to_felt(flag: bool) -> int:
	return 1 if flag else 0


def felt_to_bool(raw: FeltLike) -> bool:
	return felt_to_int(raw) == 1
