"""
Bit-level input/output streams for the Huffman processor

Both streams keep their bits in a big-endian bitarray: the first bit written
is the most significant bit of the first byte.
"""

from __future__ import annotations

from typing import BinaryIO, Optional, Union

from bitarray import bitarray
from bitarray.util import ba2int, int2ba


class BitInputStream:
    """
    Reads fixed-width unsigned values from a buffered bit sequence.
    The whole source is held in memory so it can be rewound for a second pass.
    """

    def __init__(self, source: Union[bytes, bytearray, BinaryIO]):
        self.bits = bitarray(endian="big")
        if isinstance(source, (bytes, bytearray)):
            self.bits.frombytes(bytes(source))
        else:
            self.bits.frombytes(source.read())
        self.pos = 0  # index of next bit to read
        self.bits_read = 0

    def read_bits(self, n: int) -> Optional[int]:
        """
        Return the next n bits as an unsigned int, or None if fewer than n remain
        """
        if n < 1:
            raise ValueError(f"bit count must be positive, got {n}")
        end = self.pos + n
        if end > len(self.bits):
            self.pos = len(self.bits)
            return None

        if n == 1:
            value = self.bits[self.pos]
        else:
            value = ba2int(self.bits[self.pos:end])
        self.pos = end
        self.bits_read += n
        return value

    def reset(self) -> None:
        self.pos = 0

    def __len__(self) -> int:
        return len(self.bits)


class BitOutputStream:
    """
    Collects bits and writes them to a binary sink on close().
    The last byte is padded with 0 bits.
    """

    FLUSH_BITS = 8 * 64 * 1024  # hand full bytes to the sink past this size

    def __init__(self, sink: BinaryIO):
        self.sink = sink
        self.bits = bitarray(endian="big")
        self.bits_written = 0
        self.closed = False

    def write_bits(self, n: int, value: int) -> None:
        """
        Append the low-order n bits of value
        """
        if self.closed:
            raise ValueError("write to closed BitOutputStream")
        if n < 1:
            raise ValueError(f"bit count must be positive, got {n}")
        self.bits.extend(int2ba(value & ((1 << n) - 1), length=n, endian="big"))
        self.bits_written += n

        if len(self.bits) >= self.FLUSH_BITS:
            whole = len(self.bits) - (len(self.bits) % 8)
            self.sink.write(self.bits[:whole].tobytes())
            del self.bits[:whole]

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.bits.fill()
        self.sink.write(self.bits.tobytes())
        self.bits.clear()
        self.sink.flush()

    def __enter__(self) -> "BitOutputStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
