"""
Huffman compression with a self-describing tree header

Compressed layout:
    32 bits   HUFF_TREE magic number
    header    pre-order tree: 0 for an internal node, 1 + 9-bit symbol for a leaf
    payload   code of every input byte in order, then the code of PSEUDO_EOF
"""

from __future__ import annotations

import heapq
import io
import logging
from typing import Dict, List, Optional

from bitstream import BitInputStream, BitOutputStream

logger = logging.getLogger(__name__)

BITS_PER_WORD = 8
BITS_PER_INT = 32
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE
SYMBOL_BITS = BITS_PER_WORD + 1  # wide enough for 0..PSEUDO_EOF
HUFF_NUMBER = 0xFACE8200  # legacy fixed-table header, never accepted
HUFF_TREE = HUFF_NUMBER | 1

DEBUG_LOW = 1
DEBUG_HIGH = 4


class HuffError(Exception):
    """Base class for fatal compression/decompression failures"""


class MalformedHeaderError(HuffError):
    """Bad magic number or a tree header that cannot be parsed"""


class TruncatedPayloadError(HuffError):
    """Input ran out before the PSEUDO_EOF code was decoded"""


class HuffmanNode: # Node for Huffman tree
    def __init__(self, weight: int, symbol: Optional[int] = None,
                 left: Optional["HuffmanNode"] = None, right: Optional["HuffmanNode"] = None):
        if (left is None) != (right is None):
            raise ValueError("internal node needs exactly two children")
        if left is None and symbol is None:
            raise ValueError("leaf node needs a symbol")
        self.weight = weight
        self.symbol = symbol if left is None else None  # internal nodes carry no symbol
        self.left = left
        self.right = right

    @classmethod
    def leaf(cls, symbol: int, weight: int = 0) -> "HuffmanNode":
        return cls(weight, symbol=symbol)

    @classmethod
    def internal(cls, left: "HuffmanNode", right: "HuffmanNode") -> "HuffmanNode":
        return cls(left.weight + right.weight, left=left, right=right)

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"HuffmanNode.leaf({self.symbol}, {self.weight})"
        return f"HuffmanNode.internal(weight={self.weight})"


def leaf_count(root: HuffmanNode) -> int:
    if root.is_leaf:
        return 1
    return leaf_count(root.left) + leaf_count(root.right)


def tree_depth(root: HuffmanNode) -> int:
    if root.is_leaf:
        return 0
    return 1 + max(tree_depth(root.left), tree_depth(root.right))


### FREQUENCY COUNTING ###

def read_for_counts(in_stream: BitInputStream) -> List[int]:
    """
    Count every 8-bit word until the stream is exhausted.
    The stream is left at its end; callers must reset() before re-reading.
    """
    counts = [0] * (ALPH_SIZE + 1)
    while True:
        val = in_stream.read_bits(BITS_PER_WORD)
        if val is None:
            break
        counts[val] += 1
    counts[PSEUDO_EOF] = 1
    return counts


### TREE AND CODE GENERATION ###

def make_tree_from_counts(counts: List[int]) -> HuffmanNode:
    """
    Build the Huffman tree for a count table indexed by symbol.

    Heap entries are (weight, sequence, node); the sequence number makes
    equal weights leave the queue in insertion order, so identical counts
    always give an identical tree. The first node removed becomes the left child.
    """
    if len(counts) != ALPH_SIZE + 1:
        raise ValueError(f"count table must have {ALPH_SIZE + 1} entries, got {len(counts)}")

    priority_queue = []
    seq = 0
    for symbol, count in enumerate(counts):
        if count > 0:
            priority_queue.append((count, seq, HuffmanNode.leaf(symbol, count)))
            seq += 1
    if not priority_queue:
        raise ValueError("count table has no nonzero symbol")
    if len(priority_queue) == 1:
        # empty input: pair the lone leaf with a zero-weight partner so the
        # root is internal and every code has at least one bit
        only = priority_queue[0][2]
        partner = 0 if only.symbol != 0 else 1
        priority_queue.append((0, seq, HuffmanNode.leaf(partner, 0)))
        seq += 1
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        merged = HuffmanNode.internal(left, right) # internal node with combined weight
        heapq.heappush(priority_queue, (merged.weight, seq, merged))
        seq += 1

    return priority_queue[0][2] # root of the tree


def make_codings_from_tree(root: HuffmanNode) -> Dict[int, str]:
    codes: Dict[int, str] = {}

    def coding_helper(node: HuffmanNode, path: str) -> None:
        if node.is_leaf:
            codes[node.symbol] = path
            return
        coding_helper(node.left, path + '0')
        coding_helper(node.right, path + '1')

    coding_helper(root, '')
    return codes # symbol -> '0'/'1' string


### TREE HEADER ###

def write_header(root: HuffmanNode, out: BitOutputStream) -> None:
    if root.is_leaf:
        out.write_bits(1 + SYMBOL_BITS, (1 << SYMBOL_BITS) | root.symbol)
        return
    out.write_bits(1, 0)
    write_header(root.left, out)
    write_header(root.right, out)


def read_tree_header(in_stream: BitInputStream, depth: int = 0) -> HuffmanNode:
    """
    Rebuild a tree written by write_header().
    Raises MalformedHeaderError when the input ends inside the header.
    """
    if depth > ALPH_SIZE:
        # a tree over 257 leaves is never deeper than 256
        raise MalformedHeaderError(f"tree header nested deeper than {ALPH_SIZE} levels")

    bit = in_stream.read_bits(1)
    if bit is None:
        raise MalformedHeaderError("input ended inside tree header")
    if bit == 0:
        left = read_tree_header(in_stream, depth + 1)
        right = read_tree_header(in_stream, depth + 1)
        return HuffmanNode.internal(left, right)

    value = in_stream.read_bits(SYMBOL_BITS)
    if value is None:
        raise MalformedHeaderError("input ended inside leaf symbol")
    if value > PSEUDO_EOF:
        raise MalformedHeaderError(f"leaf symbol {value} out of range")
    return HuffmanNode.leaf(value)


### PAYLOAD ###

def write_compressed_bits(codings: Dict[int, str], in_stream: BitInputStream,
                          out: BitOutputStream) -> None:
    """
    Write the code of every remaining input byte, then the PSEUDO_EOF code
    """
    packed = {symbol: (len(code), int(code, 2)) for symbol, code in codings.items()}
    while True:
        val = in_stream.read_bits(BITS_PER_WORD)
        if val is None:
            break
        out.write_bits(*packed[val])
    out.write_bits(*packed[PSEUDO_EOF])


def read_compressed_bits(root: HuffmanNode, in_stream: BitInputStream,
                         out: BitOutputStream) -> int:
    """
    Walk the tree one bit at a time, emitting a byte at each leaf, until the
    PSEUDO_EOF leaf is reached. Returns the number of bytes written.
    """
    if root.is_leaf:
        raise MalformedHeaderError("tree header holds a single leaf")

    written = 0
    current = root
    while True:
        bit = in_stream.read_bits(1)
        if bit is None:
            raise TruncatedPayloadError(f"input ended before PSEUDO_EOF after {written} bytes")
        current = current.right if bit else current.left

        if current.is_leaf:
            if current.symbol == PSEUDO_EOF:
                return written
            out.write_bits(BITS_PER_WORD, current.symbol)
            written += 1
            current = root


class HuffProcessor:
    """
    Compresses and decompresses bit streams. debug >= DEBUG_LOW logs tree
    shape and bit totals, debug >= DEBUG_HIGH also logs every code.
    """

    def __init__(self, debug: int = 0):
        self.debug = debug

    def compress(self, in_stream: BitInputStream, out: BitOutputStream) -> None:
        with out:
            counts = read_for_counts(in_stream)
            root = make_tree_from_counts(counts)
            codings = make_codings_from_tree(root)
            if self.debug >= DEBUG_HIGH:
                for symbol in sorted(codings):
                    logger.debug("encoding for %d is %s", symbol, codings[symbol])

            out.write_bits(BITS_PER_INT, HUFF_TREE)
            write_header(root, out)
            header_bits = out.bits_written

            in_stream.reset()
            write_compressed_bits(codings, in_stream, out)

            if self.debug >= DEBUG_LOW:
                logger.debug("tree has %d leaves, depth %d", leaf_count(root), tree_depth(root))
                logger.debug("compress: read %d bits, wrote %d bits (%d header)",
                             in_stream.bits_read, out.bits_written, header_bits)

    def decompress(self, in_stream: BitInputStream, out: BitOutputStream) -> None:
        with out:
            magic = in_stream.read_bits(BITS_PER_INT)
            if magic is None:
                raise MalformedHeaderError("input too short for magic number")
            if magic != HUFF_TREE:
                raise MalformedHeaderError(f"illegal header starts with {magic:#010x}")

            root = read_tree_header(in_stream)
            if self.debug >= DEBUG_HIGH:
                codings = make_codings_from_tree(root)
                for symbol in sorted(codings):
                    logger.debug("header code for %d is %s", symbol, codings[symbol])

            written = read_compressed_bits(root, in_stream, out)

            if self.debug >= DEBUG_LOW:
                logger.debug("tree has %d leaves, depth %d", leaf_count(root), tree_depth(root))
                logger.debug("decompress: read %d bits, wrote %d bytes",
                             in_stream.bits_read, written)


def compress(data: bytes, debug: int = 0) -> bytes:
    sink = io.BytesIO()
    HuffProcessor(debug).compress(BitInputStream(data), BitOutputStream(sink))
    return sink.getvalue()


def decompress(data: bytes, debug: int = 0) -> bytes:
    sink = io.BytesIO()
    HuffProcessor(debug).decompress(BitInputStream(data), BitOutputStream(sink))
    return sink.getvalue()
