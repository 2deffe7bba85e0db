"""
SSH Wire Encoding Module

Encoders and a reader for the RFC 4251 data types used by OpenSSH key blobs
and SSHSIG signatures: uint32, string and mpint.
"""

import struct
from typing import Union


def encode_uint32(value: int) -> bytes:
    """Encode an unsigned 32-bit big-endian integer."""
    return struct.pack('!I', value)


def encode_string(value: Union[bytes, str]) -> bytes:
    """Encode a length-prefixed byte string."""
    if isinstance(value, str):
        value = value.encode('utf-8')
    return struct.pack('!I', len(value)) + value


def encode_mpint(value: int) -> bytes:
    """
    Encode a non-negative multiple precision integer.

    A leading zero byte is added when the most significant bit is set so
    the value is not read back as negative. Zero encodes as an empty string.
    """
    if value < 0:
        raise ValueError("Negative mpint values are not supported")
    if value == 0:
        return encode_string(b'')
    return encode_string(value.to_bytes((value.bit_length() + 8) // 8, 'big'))


class SSHReader:
    """Sequential reader over an SSH wire-format buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = 0

    def _take(self, length: int) -> bytes:
        end = self._offset + length
        if end > len(self._data):
            raise ValueError(
                f"Truncated SSH data: need {length} bytes at offset {self._offset}, "
                f"have {len(self._data) - self._offset}"
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def read_raw(self, length: int) -> bytes:
        return self._take(length)

    def read_uint32(self) -> int:
        return struct.unpack('!I', self._take(4))[0]

    def read_string(self) -> bytes:
        return self._take(self.read_uint32())

    def read_text(self) -> str:
        try:
            return self.read_string().decode('ascii')
        except UnicodeDecodeError as exc:
            raise ValueError("Expected ASCII text in SSH string") from exc

    def read_mpint(self) -> int:
        raw = self.read_string()
        if raw and raw[0] & 0x80:
            raise ValueError("Negative mpint values are not supported")
        return int.from_bytes(raw, 'big')

    def remaining(self) -> int:
        return len(self._data) - self._offset

    def expect_end(self) -> None:
        if self.remaining():
            raise ValueError(f"Unexpected {self.remaining()} trailing bytes in SSH data")
