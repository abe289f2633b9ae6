import pytest

from sealkit.constants import (
    NODE_SIZE,
    PAGE_SIZE,
    nodes_per_page,
    reverse_halves,
    reverse_words,
)


@pytest.mark.parametrize("sectors,expected", [(128, 1), (64, 2), (32, 4), (16, 8)])
def test_nodes_per_page_matches_documented_layout(sectors, expected):
    assert nodes_per_page(sectors) == expected


@pytest.mark.parametrize("sectors", [1, 2, 4, 8, 16, 32, 64, 128])
def test_nodes_per_page_fills_page(sectors):
    assert nodes_per_page(sectors) * sectors * NODE_SIZE == PAGE_SIZE


@pytest.mark.parametrize("sectors", [0, -1, 3, 256])
def test_nodes_per_page_rejects_uneven(sectors):
    with pytest.raises(ValueError):
        nodes_per_page(sectors)


def test_reverse_words_swaps_each_word():
    data = bytes(range(32))
    out = reverse_words(data)
    assert out[:4] == data[3::-1]
    assert out[28:] == data[31:27:-1]


def test_reverse_words_is_involution():
    data = bytes(range(100, 132))
    assert reverse_words(reverse_words(data)) == data


def test_reverse_halves_swaps_each_pair():
    data = bytes(range(32))
    out = reverse_halves(data)
    assert out[:2] == data[1::-1]
    assert reverse_halves(out) == data


def test_reverse_rejects_wrong_length():
    with pytest.raises(ValueError):
        reverse_words(bytes(31))
    with pytest.raises(ValueError):
        reverse_halves(bytes(33))