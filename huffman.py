import heapq
from typing import BinaryIO, Iterable, List, Optional

from bitops import BLOCK_SIZE

ALPHABET_SIZE = 257  #: 256 byte values plus the end-of-stream sentinel
EOF_SYMBOL = 256  #: Sentinel symbol terminating every encoded payload


class HuffmanNode:
    """Node of a full binary Huffman tree.

    :ivar symbol: Symbol stored at a leaf; ``None`` for internal nodes.
    :type symbol: int | None
    :ivar weight: Total frequency of the subtree rooted at this node.
    :type weight: int
    :ivar left: Left (``0``) child node.
    :type left: HuffmanNode | None
    :ivar right: Right (``1``) child node.
    :type right: HuffmanNode | None
    """

    __slots__ = ("symbol", "weight", "left", "right")

    def __init__(self, symbol=None, weight=0, left=None, right=None):
        """Create a Huffman node.

        :param symbol: Symbol value for leaf nodes; ``None`` for internal nodes.
        :type symbol: int | None
        :param int weight: Weight associated with this node.
        :param left: Left child node, if any.
        :type left: HuffmanNode|None
        :param right: Right child node, if any.
        :type right: HuffmanNode|None
        :returns: None
        :rtype: None
        """
        self.symbol = symbol
        self.weight = weight
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def __repr__(self):
        if self.is_leaf:
            return f"HuffmanNode(symbol={self.symbol}, weight={self.weight})"
        return f"HuffmanNode(weight={self.weight})"


def count_bytes(data: Iterable[int], freq_table: Optional[List[int]] = None) -> List[int]:
    """Add the occurrences of every byte in ``data`` to a frequency table.

    :param data: Bytes to count.
    :type data: Iterable[int]
    :param freq_table: Table to update in place; a new one is created if omitted.
    :type freq_table: List[int] | None
    :returns: The frequency table, with the sentinel entry set to 1.
    :rtype: List[int]
    """
    if freq_table is None:
        freq_table = [0] * ALPHABET_SIZE
    for byte in data:
        freq_table[byte] += 1
    freq_table[EOF_SYMBOL] = 1
    return freq_table


def build_frequency_table(source: BinaryIO) -> List[int]:
    """Count symbol occurrences over the whole of ``source``.

    The source is read once, to exhaustion. Callers that need the bytes
    again must reopen or rewind it themselves.

    :param source: Readable binary stream.
    :type source: BinaryIO
    :returns: 257-entry frequency table; entry 256 is always 1.
    :rtype: List[int]
    """
    freq_table = [0] * ALPHABET_SIZE
    while True:
        block = source.read(BLOCK_SIZE)
        if not block:
            break
        count_bytes(block, freq_table)
    freq_table[EOF_SYMBOL] = 1
    return freq_table


def validate_frequency_table(freq_table: List[int]):
    """Check the shape of a frequency table.

    :param freq_table: Table to check.
    :type freq_table: List[int]
    :returns: None
    :rtype: None
    :raises ValueError: If the table does not have 257 non-negative integer
        entries, or its sentinel count is not 1.
    """
    if len(freq_table) != ALPHABET_SIZE:
        raise ValueError(
            f"Frequency table must have {ALPHABET_SIZE} entries, "
            f"got {len(freq_table)}"
        )
    for symbol, count in enumerate(freq_table):
        if not isinstance(count, int) or count < 0:
            raise ValueError(f"Invalid count {count!r} for symbol {symbol}")
    if freq_table[EOF_SYMBOL] != 1:
        raise ValueError(
            f"End-of-stream count must be 1, got {freq_table[EOF_SYMBOL]}"
        )


def build_tree(freq_table: List[int]) -> HuffmanNode:
    """Build a Huffman tree from a frequency table.

    Leaves are pushed in ascending symbol order and every heap entry carries
    an insertion sequence number, so equal weights are resolved by
    insertion order: lower symbols before higher ones and older nodes before
    newly merged ones. The first node popped becomes the left child.
    The same table therefore always yields the same tree.

    :param freq_table: 257-entry frequency table.
    :type freq_table: List[int]
    :returns: Root of the tree; a leaf if only one symbol has a nonzero count.
    :rtype: HuffmanNode
    :raises ValueError: If the table is malformed.
    """
    validate_frequency_table(freq_table)

    heap = []
    sequence = 0
    for symbol, count in enumerate(freq_table):
        if count:
            heap.append((count, sequence, HuffmanNode(symbol=symbol, weight=count)))
            sequence += 1
    heapq.heapify(heap)

    while len(heap) > 1:
        left_weight, _, left = heapq.heappop(heap)
        right_weight, _, right = heapq.heappop(heap)
        merged = HuffmanNode(
            weight=left_weight + right_weight, left=left, right=right
        )
        heapq.heappush(heap, (merged.weight, sequence, merged))
        sequence += 1

    return heap[0][2]


def build_code_table(root: HuffmanNode) -> List[Optional[str]]:
    """Derive the code of every leaf by walking the tree.

    Left edges contribute ``"0"`` and right edges ``"1"``. A root that is
    itself a leaf gets the one-bit code ``"0"``.

    :param root: Root of a Huffman tree.
    :type root: HuffmanNode
    :returns: 257 entries; the code string of each leaf symbol, ``None``
        for symbols absent from the tree.
    :rtype: List[Optional[str]]
    """
    codes: List[Optional[str]] = [None] * ALPHABET_SIZE

    if root.is_leaf:
        codes[root.symbol] = "0"
        return codes

    stack = [(root, "")]
    while stack:
        node, path = stack.pop()
        if node.is_leaf:
            codes[node.symbol] = path
        else:
            stack.append((node.right, path + "1"))
            stack.append((node.left, path + "0"))
    return codes


def code_lengths(code_table: List[Optional[str]]) -> dict:
    """Map each coded symbol to the length of its code."""
    return {s: len(c) for s, c in enumerate(code_table) if c is not None}
