"""HUFF container: a code table bundled with its bit-packed payload.

Layout (all integers little endian)::

    b"HUFF" | u32 table block length | table block | packed payload

The table block is UTF-8 JSON::

    {"version": 1, "bitLength": 9, "codes": {"A": "10", "[space]": "0", ...}}

Payload bits are packed MSB first; the last byte is zero padded. Blobs
that do not parse as a container come back as raw bits with no table.
"""

import json
import logging
import struct
from collections import namedtuple

log = logging.getLogger(__name__)

MAGIC = b"HUFF"
FORMAT_VERSION = 1
_HEADER = struct.Struct("<4sI")

_ESCAPES = {
    ord(" "): "[space]",
    ord("\\"): "\\\\",
    ord("\n"): "\\n",
    ord("\t"): "\\t",
    ord("\r"): "\\r",
    ord("\b"): "\\b",
    ord("\f"): "\\f",
}
_UNESCAPES = {token: symbol for symbol, token in _ESCAPES.items()}
_HEX = frozenset("0123456789abcdefABCDEF")

ContainerContents = namedtuple("ContainerContents", ["codes", "bits", "has_table"])


class MalformedContainer(ValueError):
    pass


### SYMBOL TOKENS ###
def symbol_to_token(symbol):
    """Printable name for a byte value, safe to use as a JSON key."""
    if symbol in _ESCAPES:
        return _ESCAPES[symbol]
    if 0x21 <= symbol <= 0x7E:
        return chr(symbol)
    return f"\\x{symbol:02x}"


def token_to_symbol(token):
    if token in _UNESCAPES:
        return _UNESCAPES[token]
    if len(token) == 1 and ord(token) < 256:
        return ord(token)
    if len(token) == 4 and token.startswith("\\x") and all(c in _HEX for c in token[2:]):
        return int(token[2:], 16)
    raise MalformedContainer(f"unknown symbol token {token!r}")


def codes_to_tokens(codes):
    return {symbol_to_token(symbol): code for symbol, code in sorted(codes.items())}


def codes_from_tokens(mapping):
    """Inverse of codes_to_tokens; validates every code.

    Tables that are not prefix-free (duplicate codes included) are rejected.
    """
    if not isinstance(mapping, dict):
        raise MalformedContainer("code table must be an object")

    codes = {}
    for token, code in mapping.items():
        if not isinstance(code, str) or not code or code.strip("01"):
            raise MalformedContainer(f"invalid code {code!r} for {token!r}")
        symbol = token_to_symbol(token)
        if symbol in codes:
            raise MalformedContainer(f"symbol {token!r} listed twice")
        codes[symbol] = code

    # a code that prefixes another sorts directly before some code it prefixes
    ordered = sorted(codes.values())
    for shorter, longer in zip(ordered, ordered[1:]):
        if longer.startswith(shorter):
            raise MalformedContainer(f"code {shorter!r} is a prefix of {longer!r}")
    return codes


### BIT PACKING ###
def pack_bits(bits):
    """'0'/'1' string -> bytes, MSB first, last byte padded with zeros."""
    out = bytearray()
    for i in range(0, len(bits), 8):
        out.append(int(bits[i:i + 8].ljust(8, "0"), 2))
    return bytes(out)


def unpack_bits(data):
    return "".join(format(byte, "08b") for byte in data)


### TABLE BLOCK ###
def serialize_table(codes, bit_length):
    block = {
        "version": FORMAT_VERSION,
        "bitLength": bit_length,
        "codes": codes_to_tokens(codes),
    }
    return json.dumps(block, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def parse_table(block):
    """Returns (codes, bit_length); bit_length is None for legacy blocks."""
    try:
        parsed = json.loads(block.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedContainer(f"table block is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedContainer("table block must be an object")

    # Flat {token: code} objects come from the browser client, which never
    # recorded the payload length
    if "version" not in parsed:
        return codes_from_tokens(parsed), None

    if parsed["version"] != FORMAT_VERSION:
        raise MalformedContainer(f"unsupported table version {parsed['version']!r}")

    bit_length = parsed.get("bitLength")
    if not isinstance(bit_length, int) or isinstance(bit_length, bool) or bit_length < 0:
        raise MalformedContainer(f"invalid bitLength {bit_length!r}")

    return codes_from_tokens(parsed.get("codes")), bit_length


### CONTAINER ###
def export_container(codes, bits):
    """Serializes a code table and its encoded bits into a HUFF blob."""
    block = serialize_table(codes, len(bits))
    return _HEADER.pack(MAGIC, len(block)) + block + pack_bits(bits)


def read_container(blob):
    """Strict parser; raises MalformedContainer on any irregularity."""
    if len(blob) < _HEADER.size:
        raise MalformedContainer("blob shorter than the container header")

    magic, block_length = _HEADER.unpack_from(blob)
    if magic != MAGIC:
        raise MalformedContainer("missing HUFF magic")

    start = _HEADER.size
    end = start + block_length
    if end > len(blob):
        raise MalformedContainer(
            f"table block of {block_length} bytes overruns a {len(blob)} byte blob"
        )

    codes, bit_length = parse_table(blob[start:end])
    bits = unpack_bits(blob[end:])
    if bit_length is not None:
        if bit_length > len(bits) or len(bits) - bit_length >= 8:
            raise MalformedContainer(
                f"bitLength {bit_length} does not fit a {len(bits)} bit payload"
            )
        bits = bits[:bit_length]

    return ContainerContents(codes=codes, bits=bits, has_table=True)


def import_container(blob):
    """Parses a HUFF blob, degrading to raw bits when it is not one."""
    try:
        return read_container(blob)
    except MalformedContainer as e:
        log.warning("treating %d byte upload as raw bits: %s", len(blob), e)
        return ContainerContents(codes={}, bits=unpack_bits(blob), has_table=False)
