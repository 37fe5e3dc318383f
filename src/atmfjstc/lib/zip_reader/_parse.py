"""
Parsers for the individual binary records of a ZIP archive: the end of central directory record, the central
directory entries, the local file headers and the "extra" fields.

All functions here report malformed data through the `BinaryReaderFormatError` family of exceptions, or through
`ZipFileCorruptError`. Wrapping the former into the latter is left to the caller.
"""

from dataclasses import dataclass
from os import SEEK_SET
from typing import Tuple

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader

from .errors import NotAZipFileError
from .entry import ZipExtraField


END_OF_DIRECTORY_MAGIC = b'PK\x05\x06'
CENTRAL_DIRECTORY_ENTRY_MAGIC = b'PK\x01\x02'
LOCAL_FILE_HEADER_MAGIC = b'PK\x03\x04'

END_OF_DIRECTORY_FIXED_SIZE = 22
MAX_ARCHIVE_COMMENT_LENGTH = 0xffff

LOCAL_HEADER_SKIPPED_FIELDS_SIZE = 22
LOCAL_HEADER_FIXED_SIZE = 4 + LOCAL_HEADER_SKIPPED_FIELDS_SIZE + 2 + 2


@dataclass(frozen=True)
class ZipTrailer:
    """
    The contents of the end of central directory record.
    """

    offset: int
    disk_number: int
    disk_with_directory: int
    entries_this_disk: int
    total_entries: int
    directory_size: int
    directory_offset: int
    comment: bytes


@dataclass(frozen=True)
class CentralRecord:
    flags: int
    method_code: int
    dos_time: int
    dos_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    header_offset: int
    raw_name: bytes
    raw_extra: bytes
    raw_comment: bytes
    end_position: int


def find_trailer(reader: BinaryReader) -> ZipTrailer:
    """
    Locates and parses the end of central directory record.

    The record is searched for backwards from the end of the data, as it may be followed by an archive comment of up
    to 65535 bytes. The candidate closest to the end whose comment fits within the data is chosen, so a signature
    occurring inside the comment itself is skipped.
    """
    total_size = reader.total_size()
    window_start = max(0, total_size - END_OF_DIRECTORY_FIXED_SIZE - MAX_ARCHIVE_COMMENT_LENGTH)

    reader.seek(window_start, SEEK_SET)
    window = reader.read_at_most(total_size - window_start)

    if len(window) < END_OF_DIRECTORY_FIXED_SIZE:
        raise NotAZipFileError(reader.name())

    search_end = len(window) - END_OF_DIRECTORY_FIXED_SIZE + len(END_OF_DIRECTORY_MAGIC)

    while True:
        position = window.rfind(END_OF_DIRECTORY_MAGIC, 0, search_end)
        if position == -1:
            raise NotAZipFileError(reader.name())

        fields = BinaryReader(
            window[position + len(END_OF_DIRECTORY_MAGIC):position + END_OF_DIRECTORY_FIXED_SIZE], big_endian=False
        ).read_struct('HHHHIIH', 'end of central directory record')

        comment_start = position + END_OF_DIRECTORY_FIXED_SIZE
        comment_length = fields[-1]

        if comment_start + comment_length <= len(window):
            break

        search_end = position + len(END_OF_DIRECTORY_MAGIC) - 1

    disk_number, disk_with_directory, entries_this_disk, total_entries, directory_size, directory_offset, _ = fields

    return ZipTrailer(
        offset=window_start + position,
        disk_number=disk_number,
        disk_with_directory=disk_with_directory,
        entries_this_disk=entries_this_disk,
        total_entries=total_entries,
        directory_size=directory_size,
        directory_offset=directory_offset,
        comment=window[comment_start:comment_start + comment_length],
    )


def read_central_record(reader: BinaryReader) -> CentralRecord:
    """
    Parses the central directory entry at the reader's current position.

    The reader is left right after the record, and that position is also noted in the result so that it can be
    returned to after reading the local header.
    """
    reader.expect_magic(CENTRAL_DIRECTORY_ENTRY_MAGIC, 'central directory entry signature')

    (
        _version_made_by, _version_needed, flags, method_code, dos_time, dos_date, crc32, compressed_size,
        uncompressed_size, name_length, extra_length, comment_length, _disk_start, _internal_attrs, _external_attrs,
        header_offset,
    ) = reader.read_struct('HHHHHHIIIHHHHHII', 'central directory entry')

    raw_name = reader.read_amount(name_length, 'entry name')
    raw_extra = reader.read_amount(extra_length, 'entry extra field')
    raw_comment = reader.read_amount(comment_length, 'entry comment')

    return CentralRecord(
        flags=flags,
        method_code=method_code,
        dos_time=dos_time,
        dos_date=dos_date,
        crc32=crc32,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        header_offset=header_offset,
        raw_name=raw_name,
        raw_extra=raw_extra,
        raw_comment=raw_comment,
        end_position=reader.tell(),
    )


def resolve_data_offset(reader: BinaryReader, header_offset: int) -> int:
    """
    Reads the local file header at the given offset and computes where the entry's content begins.

    Only the signature and the name/extra lengths of the local header are used. The name, sizes etc. in the central
    directory remain authoritative. The reader is left inside the local header.
    """
    reader.seek(header_offset, SEEK_SET)
    reader.expect_magic(LOCAL_FILE_HEADER_MAGIC, 'local file header signature')
    reader.skip_bytes(LOCAL_HEADER_SKIPPED_FIELDS_SIZE, 'local file header')

    name_length, extra_length = reader.read_struct('HH', 'local file header name/extra lengths')

    return header_offset + LOCAL_HEADER_FIXED_SIZE + name_length + extra_length


def walk_extra_fields(data: bytes) -> Tuple[ZipExtraField, ...]:
    """
    Splits an "extra" field into its tag-length-value sub-records. None of them is interpreted (in particular, ZIP64
    sizes are not supported).
    """
    reader = BinaryReader(data, big_endian=False)
    fields = []

    while reader.bytes_remaining() > 0:
        tag, length = reader.read_struct('HH', 'extra field sub-record header')
        fields.append(ZipExtraField(tag, reader.read_amount(length, f"extra field sub-record 0x{tag:04x}")))

    return tuple(fields)
