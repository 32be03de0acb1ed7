import heapq
import random

import pytest

from huffman_core import (
    CapacityExceeded,
    UnknownSymbol,
    build_huffman_tree,
    calculate_frequencies,
    decode_with_table,
    decode_with_tree,
    describe_tree,
    encode_bits,
    generate_codes,
    huffman_decoding,
    huffman_encoding,
)


def minimum_weighted_length(frequencies):
    """Cost of an optimal prefix code, from repeated cheapest merges."""
    weights = list(frequencies.values())
    if len(weights) == 1:
        return weights[0]
    heapq.heapify(weights)
    cost = 0
    while len(weights) > 1:
        merged = heapq.heappop(weights) + heapq.heappop(weights)
        cost += merged
        heapq.heappush(weights, merged)
    return cost


def random_inputs():
    rng = random.Random(1234)
    yield bytes(rng.getrandbits(8) for _ in range(2048))
    yield bytes(rng.choice(b"aaaaaaabbbccd ") for _ in range(500))
    yield "the quick brown fox jumps over the lazy dog".encode("utf-8")


SAMPLES = [
    b"",
    b"a",
    b"aaaa",
    b"ABBCCC",
    b"ab",
    bytes(range(256)),
    bytes(range(256)) * 3 + b"\x00" * 100,
    "naïve café – ünïcode".encode("utf-8"),
    *random_inputs(),
]


# ----------------------------------------------------------------------
# frequencies
# ----------------------------------------------------------------------

def test_frequency_counting():
    assert calculate_frequencies(b"AAABBC") == {65: 3, 66: 2, 67: 1}


def test_empty_input_gives_empty_everything():
    assert calculate_frequencies(b"") == {}
    assert build_huffman_tree({}) is None
    assert generate_codes(None) == {}
    assert describe_tree(None) is None

    result = huffman_encoding(b"")
    assert result.encoded == ""
    assert result.codes == {}
    assert result.frequencies == {}
    assert result.tree is None
    assert result.stats.original_bits == 0
    assert result.stats.compression_ratio == 0
    assert huffman_decoding("", {}) == b""


# ----------------------------------------------------------------------
# tree and codes
# ----------------------------------------------------------------------

def test_degenerate_alphabet():
    result = huffman_encoding(b"aaaa")
    assert result.codes == {ord("a"): "0"}
    assert result.encoded == "0000"
    assert huffman_decoding("0000", result.codes) == b"aaaa"
    assert result.tree == {
        "symbol": None,
        "weight": 4,
        "left": {"symbol": ord("a"), "weight": 4, "left": None, "right": None},
        "right": None,
    }


def test_mixed_frequency_example():
    result = huffman_encoding(b"ABBCCC")
    lengths = {chr(s): len(c) for s, c in result.codes.items()}
    assert lengths == {"A": 2, "B": 2, "C": 1}
    # the tie between C and the merged A+B node goes to the leaf
    assert result.codes == {ord("A"): "10", ord("B"): "11", ord("C"): "0"}
    assert result.encoded == "101111000"

    stats = result.stats
    assert stats.original_bits == 48
    assert stats.encoded_bits == 9
    assert stats.compression_ratio == pytest.approx(81.25)
    assert stats.unique_symbols == 3

    assert huffman_decoding(result.encoded, result.codes) == b"ABBCCC"


def test_tree_is_binary_and_weights_add_up():
    tree = build_huffman_tree(calculate_frequencies(b"abracadabra alakazam"))
    for node in tree.nodes:
        if node.is_leaf():
            assert node.symbol is not None
        else:
            assert node.left is not None and node.right is not None
            assert node.weight == tree[node.left].weight + tree[node.right].weight
    assert tree[tree.root].weight == len(b"abracadabra alakazam")


def test_tree_construction_is_deterministic():
    freqs = {i: 1 + (i % 4) for i in range(40)}
    assert generate_codes(build_huffman_tree(freqs)) == generate_codes(build_huffman_tree(dict(reversed(list(freqs.items())))))


@pytest.mark.parametrize("data", [s for s in SAMPLES if s])
def test_codes_are_prefix_free(data):
    codes = huffman_encoding(data).codes
    values = list(codes.values())
    for i, a in enumerate(values):
        assert a
        for b in values[i + 1:]:
            assert not a.startswith(b)
            assert not b.startswith(a)


@pytest.mark.parametrize("data", [s for s in SAMPLES if s])
def test_weighted_length_is_optimal(data):
    result = huffman_encoding(data)
    weighted = sum(result.frequencies[s] * len(c) for s, c in result.codes.items())
    assert weighted == minimum_weighted_length(result.frequencies)
    assert weighted == len(result.encoded)


def test_codes_cover_exactly_the_present_symbols():
    data = b"hello world"
    result = huffman_encoding(data)
    assert set(result.codes) == set(data)


# ----------------------------------------------------------------------
# encoder
# ----------------------------------------------------------------------

def test_unknown_symbol_is_reported():
    with pytest.raises(UnknownSymbol) as exc:
        encode_bits(b"abz", {ord("a"): "0", ord("b"): "1"})
    assert exc.value.symbol == ord("z")
    assert exc.value.position == 2


def test_capacity_is_checked_before_encoding():
    with pytest.raises(CapacityExceeded) as exc:
        huffman_encoding(b"x" * 11, max_input_bytes=10)
    assert exc.value.limit == 10
    huffman_encoding(b"x" * 10, max_input_bytes=10)

    with pytest.raises(CapacityExceeded):
        huffman_decoding("0" * 81, {ord("x"): "0"}, max_input_bytes=10)


# ----------------------------------------------------------------------
# decoders
# ----------------------------------------------------------------------

@pytest.mark.parametrize("data", SAMPLES)
def test_round_trip(data):
    result = huffman_encoding(data)
    assert huffman_decoding(result.encoded, result.codes) == data


@pytest.mark.parametrize("data", SAMPLES)
def test_tree_and_table_decoders_agree(data):
    tree = build_huffman_tree(calculate_frequencies(data))
    codes = generate_codes(tree)
    bits = encode_bits(data, codes)
    assert decode_with_tree(bits, tree) == data
    assert decode_with_table(bits, codes) == data


def test_trailing_garbage_is_ignored():
    result = huffman_encoding(b"ABBCCC")
    assert huffman_decoding(result.encoded + "1", result.codes) == b"ABBCCC"

    tree = build_huffman_tree(result.frequencies)
    assert decode_with_tree(result.encoded + "1", tree) == b"ABBCCC"


def test_padding_bits_do_not_corrupt_output():
    result = huffman_encoding(b"ABBCCC")
    padded = result.encoded + "0000000"
    # padding zeros decode as extra "C"s, which callers trim by bit length,
    # but the original prefix must be intact
    assert huffman_decoding(padded, result.codes).startswith(b"ABBCCC")


def test_tree_dead_end_resets_to_root():
    tree = build_huffman_tree({ord("a"): 3})
    # the synthetic root has no right child
    assert decode_with_tree("0100", tree) == b"aaa"


def test_table_decoder_drops_runs_longer_than_any_code():
    codes = {ord("a"): "00", ord("b"): "01"}
    # "1" never starts a code; each gets dropped once the buffer hits two bits
    assert decode_with_table("110001", codes) == b"ab"


def test_decoders_skip_non_binary_characters():
    result = huffman_encoding(b"ABBCCC")
    spaced = " ".join(result.encoded[i:i + 4] for i in range(0, len(result.encoded), 4))
    assert huffman_decoding(spaced, result.codes) == b"ABBCCC"


def test_sessions_do_not_share_state():
    first = huffman_encoding(b"aaaa")
    second = huffman_encoding(b"ABBCCC")
    assert first.codes == {ord("a"): "0"}
    assert huffman_decoding(first.encoded, first.codes) == b"aaaa"
    assert huffman_decoding(second.encoded, second.codes) == b"ABBCCC"
