"""
Compression methods for ZIP entries, and the dispatch that opens a decoder for each of them.

Only the STORE method can actually be decoded. Every other method code is represented by an `UnsupportedMethod` that
still carries the raw code, so that it can be reported and so that support for it can be added in this module alone.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO, Callable, Dict, Optional, Type, TYPE_CHECKING

from atmfjstc.lib.file_utils.fileobj import FileObjSliceReader

from .errors import UnsupportedCompressionError, ZipFileCorruptError

if TYPE_CHECKING:
    from .entry import ZipEntry


class ZipMethodCode(IntEnum):
    STORE = 0
    SHRINK = 1
    REDUCE1 = 2
    REDUCE2 = 3
    REDUCE3 = 4
    REDUCE4 = 5
    IMPLODE = 6
    TOKENIZE = 7
    DEFLATE = 8
    DEFLATE64 = 9
    DCL_IMPLODE = 10
    BZIP2 = 12
    LZMA = 14
    ZOS_CMPSC = 16
    IBM_TERSE_NEW = 18
    IBM_LZ77 = 19
    ZSTANDARD_OLD = 20
    ZSTANDARD = 93
    MP3 = 94
    XZ = 95
    JPEG_VARIANT = 96
    WAVPACK = 97
    PPMD = 98
    AE_X_ENCRYPTION = 99


@dataclass(frozen=True)
class CompressionMethod:
    code: int

    @staticmethod
    def from_code(code: int) -> 'CompressionMethod':
        """
        Converts a raw 16-bit method code, as found in a ZIP record, to a `CompressionMethod`.

        Code 0 yields `StoredMethod`, any other code yields an `UnsupportedMethod` carrying it. The `code` attribute of
        the result always gives back the original value.
        """
        if not (0 <= code <= 0xffff):
            raise ValueError(f"Compression method code must fit in 16 bits, is {code}")

        return StoredMethod() if code == ZipMethodCode.STORE else UnsupportedMethod(code)

    @property
    def is_supported(self) -> bool:
        return type(self) in _DECODERS

    @property
    def description(self) -> str:
        try:
            return f"{ZipMethodCode(self.code).name} (#{self.code})"
        except ValueError:
            return f"#{self.code}"


@dataclass(frozen=True)
class StoredMethod(CompressionMethod):
    code: int = field(default=ZipMethodCode.STORE.value, init=False)


@dataclass(frozen=True)
class UnsupportedMethod(CompressionMethod):
    def __post_init__(self):
        if self.code == ZipMethodCode.STORE:
            raise ValueError("The STORE method is supported, use StoredMethod instead")


def open_decoder(fileobj: BinaryIO, entry: 'ZipEntry', file_name: Optional[str] = None) -> BinaryIO:
    """
    Opens a file object that yields the decoded content of an entry.

    Args:
        fileobj: The file object of the archive. It must be seekable.
        entry: The entry whose content is to be decoded.
        file_name: The name of the archive file, if known. It is only used in error messages.

    Returns:
        A readable file object producing exactly `entry.uncompressed_size` bytes, if the archive is intact. No CRC
        checking is done at this level.

    Raises:
        UnsupportedCompressionError: If there is no decoder for the entry's compression method.
    """
    decoder = _DECODERS.get(type(entry.compression_method))
    if decoder is None:
        raise UnsupportedCompressionError(entry.name, entry.compression_method)

    return decoder(fileobj, entry, file_name)


def _open_stored(fileobj: BinaryIO, entry: 'ZipEntry', file_name: Optional[str]) -> BinaryIO:
    if entry.compressed_size != entry.uncompressed_size:
        raise ZipFileCorruptError(
            file_name,
            f"entry '{entry.name}' is stored, but its compressed size ({entry.compressed_size}) differs from its "
            f"uncompressed size ({entry.uncompressed_size})"
        )

    return FileObjSliceReader(fileobj, entry.data_offset, entry.compressed_size)


_DECODERS: Dict[Type[CompressionMethod], Callable[[BinaryIO, 'ZipEntry', Optional[str]], BinaryIO]] = {
    StoredMethod: _open_stored,
}
