import heapq
import logging
from collections import namedtuple

log = logging.getLogger(__name__)


### ERRORS ###
class HuffmanError(Exception):
    """Base class for conditions reported back to the caller."""


class UnknownSymbol(HuffmanError):
    def __init__(self, symbol, position):
        self.symbol = symbol
        self.position = position
        super().__init__(
            f"byte 0x{symbol:02x} at offset {position} has no entry in the code table"
        )


class CapacityExceeded(HuffmanError):
    def __init__(self, size, limit):
        self.size = size
        self.limit = limit
        super().__init__(f"input of {size} exceeds the configured limit of {limit}")


### HUFFMAN TREE ###
class Node:
    """A node in the Huffman tree.

    Children are indices into the owning HuffmanTree's node list, not
    references to other Node objects.
    """

    def __init__(self, symbol=None, weight=0, left=None, right=None):
        # symbol: byte value (0-255) for leaves, None for internal nodes
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    def is_leaf(self):
        return self.left is None and self.right is None


class HuffmanTree:
    """Arena holding every node of one tree; the root is always the last node."""

    def __init__(self):
        self.nodes = []

    def add(self, node):
        self.nodes.append(node)
        return len(self.nodes) - 1

    @property
    def root(self):
        return len(self.nodes) - 1

    def __getitem__(self, index):
        return self.nodes[index]

    def __len__(self):
        return len(self.nodes)


EncodeStats = namedtuple(
    "EncodeStats", ["original_bits", "encoded_bits", "compression_ratio", "unique_symbols"]
)
EncodeResult = namedtuple("EncodeResult", ["encoded", "codes", "frequencies", "tree", "stats"])


### FREQUENCY COUNTING ###
def calculate_frequencies(data):
    """Counts how often each byte value occurs in data."""
    freq = {}
    for byte in data:
        freq[byte] = freq.get(byte, 0) + 1
    return freq


### TREE AND CODE GENERATION ###
def build_huffman_tree(frequencies):
    """Builds the Huffman tree for a frequency table.

    Leaves are allocated in ascending symbol order, then internal nodes in
    creation order. The heap is keyed on (weight, index), so equal weights
    pop the node with the lower index first. The first node popped in each
    step becomes the left child.

    Returns None for an empty table.
    """
    if not frequencies:
        return None

    tree = HuffmanTree()
    priority_queue = []
    for symbol in sorted(frequencies):
        index = tree.add(Node(symbol=symbol, weight=frequencies[symbol]))
        priority_queue.append((frequencies[symbol], index))
    heapq.heapify(priority_queue)

    # One distinct symbol still needs a one-bit code, so hang it under a root
    if len(priority_queue) == 1:
        weight, index = priority_queue[0]
        tree.add(Node(weight=weight, left=index))
        return tree

    while len(priority_queue) > 1:
        left_weight, left = heapq.heappop(priority_queue)
        right_weight, right = heapq.heappop(priority_queue)

        merged = left_weight + right_weight
        parent = tree.add(Node(weight=merged, left=left, right=right))
        heapq.heappush(priority_queue, (merged, parent))

    return tree


def generate_codes(tree):
    """Walks the tree and returns a symbol -> bit string table."""
    codes = {}
    if tree is None:
        return codes

    stack = [(tree.root, "")]
    while stack:
        index, code = stack.pop()
        node = tree[index]
        if node.is_leaf():
            codes[node.symbol] = code or "0"
            continue
        # right is pushed first so the left subtree is visited first
        if node.right is not None:
            stack.append((node.right, code + "1"))
        if node.left is not None:
            stack.append((node.left, code + "0"))

    return codes


def describe_tree(tree, index=None):
    """Nested dict view of the tree for visualization."""
    if tree is None:
        return None
    if index is None:
        index = tree.root

    node = tree[index]
    return {
        "symbol": node.symbol,
        "weight": node.weight,
        "left": describe_tree(tree, node.left) if node.left is not None else None,
        "right": describe_tree(tree, node.right) if node.right is not None else None,
    }


### ENCODING ###
def encode_bits(data, codes):
    """Concatenates the code of every byte in data, in order."""
    out = []
    for position, byte in enumerate(data):
        code = codes.get(byte)
        if code is None:
            raise UnknownSymbol(byte, position)
        out.append(code)
    return "".join(out)


### DECODING ###
def decode_with_tree(bits, tree):
    """Decodes by walking the tree from the root for every code.

    A bit that leads to a missing child means the partial code is garbage
    (corruption or end-of-stream padding); it is dropped and the walk
    restarts at the root.
    """
    if tree is None or not bits:
        return b""

    root = tree.root
    current = root
    out = bytearray()
    dropped = 0

    for bit in bits:
        if bit == "0":
            nxt = tree[current].left
        elif bit == "1":
            nxt = tree[current].right
        else:
            continue

        if nxt is None:
            dropped += 1
            current = root
            continue

        current = nxt
        node = tree[current]
        if node.is_leaf():
            out.append(node.symbol)
            current = root

    if dropped:
        log.debug("tree decode hit %d dead ends", dropped)
    return bytes(out)


def decode_with_table(bits, codes):
    """Decodes using only a code table, no tree.

    Bits collect in a buffer until it equals a known code. Whatever is left
    in the buffer at the end of the stream is discarded.
    """
    if not codes or not bits:
        return b""

    reverse = {code: symbol for symbol, code in codes.items()}
    longest = max(len(code) for code in reverse)
    out = bytearray()
    current = ""

    for bit in bits:
        if bit != "0" and bit != "1":
            continue
        current += bit
        symbol = reverse.get(current)
        if symbol is not None:
            out.append(symbol)
            current = ""
        elif len(current) >= longest:
            # no code is this long, so this buffer can never match
            log.debug("table decode discarded unmatched run %r", current)
            current = ""

    if current:
        log.debug("table decode discarded %d trailing bits", len(current))
    return bytes(out)


### SESSION OPERATIONS ###
def compression_stats(data, encoded, frequencies):
    original_bits = len(data) * 8
    encoded_bits = len(encoded)
    if original_bits == 0:
        ratio = 0.0
    else:
        ratio = (original_bits - encoded_bits) / original_bits * 100
    return EncodeStats(original_bits, encoded_bits, ratio, len(frequencies))


def huffman_encoding(data, max_input_bytes=None):
    """Encodes data and returns everything a caller may want to show.

    Every call builds its own frequency table, tree and code table; nothing
    is kept between calls.
    """
    if max_input_bytes is not None and len(data) > max_input_bytes:
        raise CapacityExceeded(len(data), max_input_bytes)

    frequencies = calculate_frequencies(data)
    tree = build_huffman_tree(frequencies)
    codes = generate_codes(tree)
    encoded = encode_bits(data, codes)

    log.debug("encoded %d bytes into %d bits", len(data), len(encoded))
    return EncodeResult(
        encoded=encoded,
        codes=codes,
        frequencies=frequencies,
        tree=describe_tree(tree),
        stats=compression_stats(data, encoded, frequencies),
    )


def huffman_decoding(encoded, codes, max_input_bytes=None):
    """Decodes a bit string with a code table alone."""
    if max_input_bytes is not None and len(encoded) > max_input_bytes * 8:
        raise CapacityExceeded(len(encoded), max_input_bytes * 8)
    return decode_with_table(encoded, codes)
