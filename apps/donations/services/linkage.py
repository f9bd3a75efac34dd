"""
Square linkage normalization.

Historical donations store ``square_ids`` in several shapes: a proper list,
a JSON-encoded string, a Postgres array literal such as ``{}``, a
comma-separated string, a single scalar, or nothing. Identifiers are square UUIDs, or square numbers for rows written
before squares had stable ids. Everything is parsed here, once, and the
rest of the package only sees a ``Linkage``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Union
from uuid import UUID

from apps.campaigns.models import Square
from .exceptions import MalformedLinkageError

logger = logging.getLogger(__name__)

Identifier = Union[UUID, int]

# A JSON string may itself decode to a JSON string once.
MAX_DECODE_DEPTH = 2


@dataclass
class Linkage:
    """Parsed ``square_ids``: ordered identifiers, or a malformed marker."""

    identifiers: List[Identifier] = field(default_factory=list)
    malformed: bool = False
    error: str = ''

    @property
    def is_empty(self) -> bool:
        return not self.identifiers

    @property
    def square_ids(self) -> List[UUID]:
        return [i for i in self.identifiers if isinstance(i, UUID)]

    @property
    def numbers(self) -> List[int]:
        return [i for i in self.identifiers if isinstance(i, int)]


def _parse_token(token) -> Identifier:
    if isinstance(token, bool):
        raise MalformedLinkageError(f"Unexpected boolean identifier: {token!r}")

    if isinstance(token, int):
        if token < 1:
            raise MalformedLinkageError(f"Square number must be positive: {token}")
        return token

    if isinstance(token, float):
        if not token.is_integer():
            raise MalformedLinkageError(f"Square number must be whole: {token}")
        return _parse_token(int(token))

    if not isinstance(token, str):
        raise MalformedLinkageError(f"Unexpected identifier type: {type(token).__name__}")

    text = token.strip().strip('"\'')
    if text.isdigit():
        return _parse_token(int(text))

    try:
        return UUID(text)
    except ValueError:
        raise MalformedLinkageError(f"Not a square identifier: {token!r}")


def _parse(raw, depth: int) -> List:
    if raw is None:
        return []

    if isinstance(raw, (list, tuple)):
        tokens = []
        for item in raw:
            if isinstance(item, (list, tuple, dict)):
                raise MalformedLinkageError("Nested values are not square identifiers")
            if item is None or (isinstance(item, str) and not item.strip()):
                continue
            tokens.append(item)
        return tokens

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith('{') and text.endswith('}') and ':' not in text:
            # Postgres array literal, '{}' when empty
            return [part.strip().strip('"') for part in text[1:-1].split(',') if part.strip()]
        if text[0] in '["{' and depth < MAX_DECODE_DEPTH:
            try:
                decoded = json.loads(text)
            except ValueError:
                raise MalformedLinkageError(f"Invalid JSON in square_ids: {raw!r}")
            return _parse(decoded, depth + 1)
        return [part for part in text.split(',') if part.strip()]

    if isinstance(raw, dict):
        raise MalformedLinkageError("An object is not a list of square identifiers")

    # Single scalar
    return [raw]


def parse_square_ids(raw) -> List[Identifier]:
    """
    Parse a stored ``square_ids`` value into an ordered, de-duplicated list.

    Raises:
        MalformedLinkageError: If no tolerated encoding applies
    """
    identifiers = [_parse_token(token) for token in _parse(raw, 0)]
    return list(dict.fromkeys(identifiers))


def normalize_square_ids(raw) -> Linkage:
    """Parse ``square_ids`` without raising; malformed input becomes an empty linkage."""
    try:
        return Linkage(identifiers=parse_square_ids(raw))
    except MalformedLinkageError as e:
        return Linkage(malformed=True, error=str(e))


def serialize_square_ids(square_ids) -> List[str]:
    """The only shape ever written back to ``Donation.square_ids``."""
    return [str(square_id) for square_id in square_ids]


def resolve_linkage(*, campaign_id, linkage: Linkage) -> List[Square]:
    """
    Fetch the squares a linkage points at, restricted to one campaign.

    Identifiers that match no square of the campaign are dropped and logged.
    """
    if linkage.is_empty:
        return []

    by_id = {}
    if linkage.square_ids:
        for square in Square.objects.filter(campaign_id=campaign_id, id__in=linkage.square_ids):
            by_id[square.id] = square

    by_number = {}
    if linkage.numbers:
        for square in Square.objects.filter(campaign_id=campaign_id, number__in=linkage.numbers):
            by_number[square.number] = square

    squares = []
    unresolved = []
    for identifier in linkage.identifiers:
        square = by_id.get(identifier) if isinstance(identifier, UUID) else by_number.get(identifier)
        if square is None:
            unresolved.append(identifier)
        elif square not in squares:
            squares.append(square)

    if unresolved:
        logger.warning(
            "Linkage for campaign %s references %d unknown square(s): %s",
            campaign_id, len(unresolved), unresolved,
        )

    return sorted(squares, key=lambda s: s.number)
