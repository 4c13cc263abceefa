import struct

import numpy as np


class TruncatedInput(EOFError):
    """Raised when a read would run past the end of the model buffer"""

    def __init__(self, offset: int, size: int, available: int):
        super().__init__(f'EOF encountered when attempting to read {size} bytes at offset {offset:#x} '
                         f'({available} bytes remaining)')
        self.offset = offset
        self.size = size
        self.available = available


class Cursor:
    """
    A bounds-checked read position in an in-memory buffer

    All reads are checked against the end of the buffer before anything is decoded, so a short file raises
    TruncatedInput instead of producing garbage. Arrays are returned as read-only numpy views into the buffer.
    """

    def __init__(self, buffer: bytes, offset: int = 0):
        self.buffer = buffer
        self.offset = offset

    @property
    def remaining(self) -> int:
        return max(len(self.buffer) - self.offset, 0)

    def require(self, size: int):
        if size < 0 or size > self.remaining:
            raise TruncatedInput(self.offset, size, self.remaining)

    def seek(self, offset: int):
        if offset < 0 or offset > len(self.buffer):
            raise TruncatedInput(offset, 0, 0)
        self.offset = offset

    def skip(self, size: int) -> int:
        """Advance past size bytes without decoding them and return the offset they started at"""
        self.require(size)
        start = self.offset
        self.offset += size
        return start

    def read(self, size: int) -> bytes:
        start = self.skip(size)
        return self.buffer[start:self.offset]

    def unpack(self, fmt: str | struct.Struct) -> tuple:
        if not isinstance(fmt, struct.Struct):
            fmt = struct.Struct(fmt)
        start = self.skip(fmt.size)
        return fmt.unpack_from(self.buffer, start)

    def int32(self) -> int:
        return self.unpack('<i')[0]

    def floats(self, count: int) -> tuple[float, ...]:
        return self.unpack(f'<{count}f')

    def array(self, dtype: np.dtype, count: int) -> np.ndarray:
        if count < 0:
            raise ValueError(f'Attempted to read a negative number of records ({count})')
        start = self.skip(dtype.itemsize * count)
        return np.frombuffer(self.buffer, dtype, count, start)
