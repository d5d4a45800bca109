"""Tests for edit-distance similarity."""

import pytest

from cartmatch.similarity import edit_distance, similarity


def test_known_distance():
    assert edit_distance("kitten", "sitting") == 3
    assert similarity("kitten", "sitting") == pytest.approx(4 / 7)


def test_one_edit_on_seven_chars():
    assert similarity("banana", "bananas") == pytest.approx(6 / 7)


def test_both_empty_is_identical():
    assert similarity("", "") == 1.0


def test_one_empty_is_dissimilar():
    assert similarity("milk", "") == 0.0
    assert similarity("", "milk") == 0.0


@pytest.mark.parametrize("a, b", [
    ("whole milk", "milk"),
    ("peanut butter", "butter peanut"),
    ("eggs", "egg"),
    ("", "bread"),
])
def test_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)
    assert edit_distance(a, b) == edit_distance(b, a)


@pytest.mark.parametrize("s", ["milk", "2% milk", "a"])
def test_reflexive(s):
    assert similarity(s, s) == 1.0


def test_range():
    assert 0.0 <= similarity("abc", "xyz") <= 1.0
    assert similarity("abc", "xyz") == 0.0
