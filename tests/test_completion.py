"""Tests for upload completion detection."""

import pytest

from filestore.completion import expected_chunk_count, is_complete


@pytest.mark.parametrize('chunk_size,total_size,expected', [
    (100, 250, 3),
    (100, 200, 2),
    (100, 1, 1),
    (100, 0, 0),
])
def test_expected_chunk_count(chunk_size, total_size, expected):
    assert expected_chunk_count(chunk_size, total_size) == expected


def test_complete_without_last_chunk():
    present = {1, 2}

    assert is_complete(100, 250, present.__contains__) is True


def test_incomplete_when_an_earlier_chunk_is_missing():
    present = {1, 3}

    assert is_complete(100, 250, present.__contains__) is False


def test_last_chunk_is_never_checked():
    checked = []

    def presence_check(number):
        checked.append(number)
        return True

    is_complete(100, 250, presence_check)

    assert checked == [1, 2]


def test_single_chunk_upload_is_complete_immediately():
    assert is_complete(100, 50, lambda number: False) is True


def test_non_positive_chunk_size_is_never_complete():
    assert is_complete(0, 250, lambda number: True) is False
