import zlib
import logging

from enum import Enum
from io import BufferedIOBase
from typing import BinaryIO, Optional

from atmfjstc.lib.iso_timestamp import ISOTimestamp

from .compression import CompressionMethod
from .entry import ZipEntry
from .errors import ZipEntryChecksumError, ZipFileCorruptError


LOG = logging.getLogger(__name__)


class _StreamState(Enum):
    READING = 'reading'
    DONE_VALID = 'done_valid'
    DONE_INVALID = 'done_invalid'


class ZipEntryReader(BufferedIOBase):
    """
    A read-only file object for the decoded content of a ZIP entry, which verifies the content's CRC-32.

    The checksum is verified exactly once, by the read call that brings the total amount read up to the entry's
    uncompressed size. If it matches, that call returns normally and further reads return ``b''``. If it does not, that
    call (and any later one) raises `ZipEntryChecksumError` instead, so that corrupt data can never be mistaken for a
    cleanly finished entry.

    Objects of this type are obtained through `ZipArchive.by_name` and `ZipArchive.by_index`. Each keeps its own
    position in the entry, so several can be read alternately from the same thread. They must not be used from
    multiple threads at once, nor after the archive has been closed.
    """

    _entry: ZipEntry
    _decoder: BinaryIO
    _file_name: Optional[str]

    _state: _StreamState
    _crc32: int
    _remaining: int

    def __init__(self, decoder: BinaryIO, entry: ZipEntry, file_name: Optional[str] = None):
        self._decoder = decoder
        self._entry = entry
        self._file_name = file_name

        self._state = _StreamState.READING
        self._crc32 = zlib.crc32(b'')
        self._remaining = entry.uncompressed_size

    @property
    def entry(self) -> ZipEntry:
        return self._entry

    @property
    def name(self) -> str:
        return self._entry.name

    @property
    def comment(self) -> str:
        return self._entry.comment

    @property
    def compression_method(self) -> CompressionMethod:
        return self._entry.compression_method

    @property
    def compressed_size(self) -> int:
        return self._entry.compressed_size

    @property
    def size(self) -> int:
        return self._entry.uncompressed_size

    @property
    def last_modified(self) -> Optional[ISOTimestamp]:
        return self._entry.last_modified

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        if self.closed:
            raise ValueError("Cannot read from closed ZIP entry")

        if self._state == _StreamState.DONE_INVALID:
            raise self._checksum_error()

        if (size is None) or (size < 0):
            size = self._remaining

        size = min(size, self._remaining)

        data = bytearray()

        while len(data) < size:
            chunk = self._decoder.read(size - len(data))
            if len(chunk) == 0:
                raise ZipFileCorruptError(
                    self._file_name,
                    f"data for entry '{self._entry.name}' ends after {self._entry.uncompressed_size - self._remaining} "
                    f"bytes, expected {self._entry.uncompressed_size}"
                )

            data.extend(chunk)
            self._remaining -= len(chunk)
            self._crc32 = zlib.crc32(chunk, self._crc32)

        if (self._remaining == 0) and (self._state == _StreamState.READING):
            self._finish()

        return bytes(data)

    def read1(self, size: int = -1) -> bytes:
        return self.read(size)

    def close(self):
        if not self.closed:
            self._decoder.close()

        super().close()

    def _finish(self):
        self._crc32 &= 0xffffffff

        if self._crc32 != self._entry.crc32:
            self._state = _StreamState.DONE_INVALID
            LOG.debug(f"CRC mismatch at end of entry '{self._entry.name}'")

            raise self._checksum_error()

        self._state = _StreamState.DONE_VALID

    def _checksum_error(self) -> ZipEntryChecksumError:
        return ZipEntryChecksumError(self._entry.name, self._entry.crc32, self._crc32)
