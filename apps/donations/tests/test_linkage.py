"""
Tests for square_ids normalization.

Tests cover:
- Every tolerated historical encoding
- Malformed values treated as absent
- Resolution by id and by legacy square number
"""

import json
import pytest
from uuid import uuid4

from apps.donations.services import (
    Linkage,
    parse_square_ids,
    normalize_square_ids,
    serialize_square_ids,
    resolve_linkage,
)
from apps.donations.services.exceptions import MalformedLinkageError


A = uuid4()
B = uuid4()


class TestParseSquareIds:

    def test_list_of_ids(self):
        assert parse_square_ids([str(A), str(B)]) == [A, B]

    def test_json_encoded_string(self):
        assert parse_square_ids(json.dumps([str(A), str(B)])) == [A, B]

    def test_double_encoded_string(self):
        assert parse_square_ids(json.dumps(json.dumps([str(A)]))) == [A]

    def test_comma_separated_string(self):
        assert parse_square_ids(f'{A}, {B}') == [A, B]

    def test_postgres_array_literal(self):
        assert parse_square_ids(f'{{{A},{B}}}') == [A, B]
        assert parse_square_ids(f'{{"{A}"}}') == [A]
        assert parse_square_ids('{3,4}') == [3, 4]

    def test_null_elements_skipped(self):
        assert parse_square_ids([None, str(A)]) == [A]
        assert parse_square_ids(json.dumps([str(A), None, str(B)])) == [A, B]

    def test_single_scalar_id(self):
        assert parse_square_ids(str(A)) == [A]

    def test_legacy_numbers(self):
        assert parse_square_ids([1, 2, '3']) == [1, 2, 3]
        assert parse_square_ids('4,5') == [4, 5]
        assert parse_square_ids(7) == [7]

    def test_duplicates_removed_in_order(self):
        assert parse_square_ids([str(B), str(A), str(B)]) == [B, A]

    @pytest.mark.parametrize('raw', [None, '', '   ', [], '[]', '{}', ' { } ', [None]])
    def test_absent_values(self, raw):
        assert parse_square_ids(raw) == []

    @pytest.mark.parametrize('raw', [
        {'ids': [1]},
        True,
        [[1, 2]],
        'not-a-square',
        '[1, 2',
        [0],
        '{"a": 1}',
    ])
    def test_malformed_values(self, raw):
        with pytest.raises(MalformedLinkageError):
            parse_square_ids(raw)


class TestNormalizeSquareIds:

    def test_wellformed(self):
        linkage = normalize_square_ids([str(A), 3])

        assert not linkage.malformed
        assert linkage.square_ids == [A]
        assert linkage.numbers == [3]

    def test_malformed_becomes_empty(self):
        linkage = normalize_square_ids('{"broken": true}')

        assert linkage.malformed
        assert linkage.is_empty
        assert linkage.error

    def test_empty_postgres_array_is_not_malformed(self):
        linkage = normalize_square_ids('{}')

        assert not linkage.malformed
        assert linkage.is_empty

    def test_serialize_writes_clean_strings(self):
        assert serialize_square_ids([A, B]) == [str(A), str(B)]


@pytest.mark.django_db
class TestResolveLinkage:

    def test_resolves_ids_and_numbers_in_number_order(self, campaign, squares):
        linkage = Linkage(identifiers=[squares[4].id, 2])

        resolved = resolve_linkage(campaign_id=campaign.id, linkage=linkage)

        assert [s.number for s in resolved] == [2, 4]

    def test_ignores_other_campaigns_and_unknown_ids(self, campaign, other_campaign, squares):
        foreign = other_campaign.squares.first()
        linkage = Linkage(identifiers=[squares[1].id, foreign.id, uuid4(), 99])

        resolved = resolve_linkage(campaign_id=campaign.id, linkage=linkage)

        assert [s.id for s in resolved] == [squares[1].id]

    def test_empty_linkage(self, campaign):
        assert resolve_linkage(campaign_id=campaign.id, linkage=Linkage()) == []
