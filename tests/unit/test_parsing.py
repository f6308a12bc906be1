"""Unit tests for lenient id-list parsing."""

import pytest

from app.utils.parsing import parse_id_list, parse_int_set


def test_parse_id_list_accepts_list():
    assert parse_id_list([1, 2, 3]) == [1, 2, 3]


def test_parse_id_list_accepts_comma_string():
    assert parse_id_list("4, 5,6") == [4, 5, 6]


def test_parse_id_list_accepts_json_string():
    assert parse_id_list("[7, 8]") == [7, 8]


def test_parse_id_list_accepts_single_int():
    assert parse_id_list(9) == [9]


def test_parse_id_list_empty_values():
    assert parse_id_list(None) == []
    assert parse_id_list("") == []
    assert parse_id_list("   ") == []


def test_parse_id_list_rejects_garbage():
    with pytest.raises(ValueError):
        parse_id_list("1,abc")


def test_parse_id_list_rejects_booleans():
    with pytest.raises(ValueError):
        parse_id_list(True)
    with pytest.raises(ValueError):
        parse_id_list([1, False])


def test_parse_int_set_dedupes_and_sorts():
    assert parse_int_set("5,1,5") == [1, 5]
