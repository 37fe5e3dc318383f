from dataclasses import dataclass
from enum import IntFlag
from typing import Optional, Tuple

from atmfjstc.lib.iso_timestamp import ISOTimestamp

from .compression import CompressionMethod


class ZipEntryFlags(IntFlag):
    ENCRYPTED = 1 << 0
    DEFERRED_CRC32 = 1 << 3
    PATCHED_DATA = 1 << 5
    STRONG_ENCRYPTION = 1 << 6
    UTF8 = 1 << 11
    LOCAL_HEADER_MASKED = 1 << 13


@dataclass(frozen=True)
class ZipExtraField:
    """
    A sub-record of an entry's "extra" field, left uninterpreted.
    """

    tag: int
    data: bytes


@dataclass(frozen=True)
class ZipEntry:
    """
    An object containing the metadata for an entry in a ZIP archive, as read from the central directory.

    Objects of this type are inert data containers. They remain valid after the originating `ZipArchive` is closed.

    Attributes:
        index: The position of the entry in the central directory.
        name: The entry name, decoded as UTF-8 or CP437 according to the flags.
        comment: The entry comment, decoded like the name.
        raw_name: The entry name exactly as stored.
        raw_comment: The entry comment exactly as stored.
        flags: The general purpose flags. Unknown bits are preserved.
        compression_method: A `StoredMethod` or an `UnsupportedMethod` carrying the raw code.
        crc32: The declared CRC-32 of the uncompressed content.
        compressed_size: The size of the content as stored in the archive, in bytes.
        uncompressed_size: The size of the content after decoding, in bytes.
        dos_time: The raw packed DOS modification time.
        dos_date: The raw packed DOS modification date.
        last_modified: The modification time as a naive ISO timestamp, or None if the DOS fields are not a valid date.
        header_offset: The offset of the entry's local header within the archive.
        data_offset: The offset of the first content byte, as computed from the local header.
        extra_fields: The sub-records of the central directory "extra" field.
    """

    index: int
    name: str
    comment: str
    raw_name: bytes
    raw_comment: bytes
    flags: ZipEntryFlags
    compression_method: CompressionMethod
    crc32: int
    compressed_size: int
    uncompressed_size: int
    dos_time: int
    dos_date: int
    last_modified: Optional[ISOTimestamp]
    header_offset: int
    data_offset: int
    extra_fields: Tuple[ZipExtraField, ...] = ()

    @property
    def is_encrypted(self) -> bool:
        return bool(self.flags & ZipEntryFlags.ENCRYPTED)

    @property
    def is_utf8(self) -> bool:
        return bool(self.flags & ZipEntryFlags.UTF8)

    @property
    def is_dir(self) -> bool:
        return self.name.endswith('/')
