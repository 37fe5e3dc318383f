import logging

from dataclasses import dataclass
from enum import Enum
from os import SEEK_SET
from typing import Dict, Optional, Tuple

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader, BinaryReaderFormatError

from .compression import CompressionMethod
from .dos_time import iso_from_dos_datetime
from .entry import ZipEntry, ZipEntryFlags
from .errors import ZipFileCorruptError, MultiDiskZipError, DuplicateEntryNameError
from .text import decode_entry_text
from ._parse import ZipTrailer, CentralRecord, find_trailer, read_central_record, resolve_data_offset, \
    walk_extra_fields


LOG = logging.getLogger(__name__)


class DuplicateNamePolicy(Enum):
    """
    What to do when several entries in the central directory have the same name.

    The ZIP format does not forbid this, nor does it say which entry should win. Regardless of the policy, all entries
    remain accessible by index; the policy only decides which one a lookup by name returns.
    """

    FIRST_WINS = 'first_wins'
    LAST_WINS = 'last_wins'
    REJECT = 'reject'


@dataclass(frozen=True)
class ZipIndex:
    trailer: ZipTrailer
    entries: Tuple[ZipEntry, ...]
    positions_by_name: Dict[str, int]


def build_index(reader: BinaryReader, duplicate_names: DuplicateNamePolicy = DuplicateNamePolicy.REJECT) -> ZipIndex:
    """
    Reads the central directory of a ZIP archive and the local headers of all its entries.

    This is all-or-nothing: a single malformed record makes the whole operation fail.

    Raises:
        NotAZipFileError: If the end of central directory record cannot be found.
        ZipFileCorruptError: If any record is malformed, or any offset points outside the data.
        MultiDiskZipError: If the archive is part of a multi-disk set.
        DuplicateEntryNameError: If names repeat and the policy is `REJECT`.
    """
    file_name = reader.name()

    try:
        trailer = find_trailer(reader)

        _check_trailer(trailer, file_name)

        reader.seek(trailer.directory_offset, SEEK_SET)

        entries = tuple(_read_entry(reader, index, file_name) for index in range(trailer.total_entries))
    except BinaryReaderFormatError as e:
        raise ZipFileCorruptError(file_name, str(e)) from e

    directory_end = trailer.directory_offset + trailer.directory_size
    if reader.tell() != directory_end:
        raise ZipFileCorruptError(
            file_name,
            f"the {trailer.total_entries} declared entries span {reader.tell() - trailer.directory_offset} bytes, "
            f"but the central directory is {trailer.directory_size} bytes long"
        )

    LOG.debug(f"Read {len(entries)} entries from the central directory of {file_name or 'ZIP data'}")

    return ZipIndex(
        trailer=trailer,
        entries=entries,
        positions_by_name=_map_names(entries, duplicate_names, file_name),
    )


def _check_trailer(trailer: ZipTrailer, file_name: Optional[str]):
    if trailer.disk_number != trailer.disk_with_directory:
        raise MultiDiskZipError(trailer.disk_number, trailer.disk_with_directory)

    if trailer.entries_this_disk != trailer.total_entries:
        raise ZipFileCorruptError(
            file_name,
            f"end of central directory record declares {trailer.entries_this_disk} entries on this disk but "
            f"{trailer.total_entries} in total, on a single-disk archive"
        )

    if trailer.directory_offset + trailer.directory_size > trailer.offset:
        raise ZipFileCorruptError(
            file_name,
            f"central directory (offset {trailer.directory_offset}, size {trailer.directory_size}) overlaps the end "
            f"of central directory record at offset {trailer.offset}"
        )


def _read_entry(reader: BinaryReader, index: int, file_name: Optional[str]) -> ZipEntry:
    record = read_central_record(reader)

    is_utf8 = bool(record.flags & ZipEntryFlags.UTF8)
    name = decode_entry_text(record.raw_name, is_utf8)

    data_offset = resolve_data_offset(reader, record.header_offset)

    if data_offset + record.compressed_size > reader.total_size():
        raise ZipFileCorruptError(
            file_name,
            f"data for entry '{name}' (offset {data_offset}, size {record.compressed_size}) extends past the end of "
            f"the file"
        )

    extra_fields = walk_extra_fields(record.raw_extra)

    reader.seek(record.end_position, SEEK_SET)

    return _make_entry(index, name, record, data_offset, extra_fields)


def _make_entry(index: int, name: str, record: CentralRecord, data_offset: int, extra_fields) -> ZipEntry:
    flags = ZipEntryFlags(record.flags)

    return ZipEntry(
        index=index,
        name=name,
        comment=decode_entry_text(record.raw_comment, bool(flags & ZipEntryFlags.UTF8)),
        raw_name=record.raw_name,
        raw_comment=record.raw_comment,
        flags=flags,
        compression_method=CompressionMethod.from_code(record.method_code),
        crc32=record.crc32,
        compressed_size=record.compressed_size,
        uncompressed_size=record.uncompressed_size,
        dos_time=record.dos_time,
        dos_date=record.dos_date,
        last_modified=iso_from_dos_datetime(record.dos_time, record.dos_date),
        header_offset=record.header_offset,
        data_offset=data_offset,
        extra_fields=extra_fields,
    )


def _map_names(
    entries: Tuple[ZipEntry, ...], policy: DuplicateNamePolicy, file_name: Optional[str]
) -> Dict[str, int]:
    positions = dict()

    for entry in entries:
        if entry.name in positions:
            if policy == DuplicateNamePolicy.REJECT:
                raise DuplicateEntryNameError(file_name, entry.name)

            LOG.warning(
                f"Multiple entries named '{entry.name}' in {file_name or 'ZIP data'}, using the "
                f"{'first' if policy == DuplicateNamePolicy.FIRST_WINS else 'last'} one"
            )

            if policy == DuplicateNamePolicy.FIRST_WINS:
                continue

        positions[entry.name] = entry.index

    return positions
