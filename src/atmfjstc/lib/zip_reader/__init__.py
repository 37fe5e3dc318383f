"""
This package provides random-access reading of ZIP archives, without loading the archive into memory.

The main class of interest is `ZipArchive`. We can open a ZIP file like so::

    archive = ZipArchive('path/to/file.zip')

and obtain the metadata for all the entries as `ZipEntry` objects::

    for entry in archive:
        print(entry.name, entry.uncompressed_size)

To read an entry's content, we look it up by name or by index::

    with archive.by_name('docs/readme.txt') as f:
        f.read()

The content is verified against the entry's CRC-32 as it is read. The read call that reaches the end of a corrupt
entry raises `ZipEntryChecksumError` instead of returning.

Limitations: only stored (uncompressed) entries can be read, encrypted entries and multi-disk archives are not
supported, and neither are ZIP64 archives. This package does not offer functionality for writing ZIP archives.
"""

__version__ = '0.1.0'


from os import PathLike
from io import IOBase
from typing import ContextManager, BinaryIO, AnyStr, Union, Optional, Tuple, Iterator

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader

from .compression import CompressionMethod, StoredMethod, UnsupportedMethod, ZipMethodCode, open_decoder
from .entry import ZipEntry, ZipEntryFlags, ZipExtraField
from .errors import BadZipFileError, ZipFileCorruptError, NotAZipFileError, DuplicateEntryNameError, \
    UnsupportedZipFeatureError, MultiDiskZipError, EncryptedEntryError, UnsupportedCompressionError, \
    ZipEntryNotFoundError, ZipEntryChecksumError
from .index import DuplicateNamePolicy, build_index
from .stream import ZipEntryReader


class ZipArchive(ContextManager['ZipArchive']):
    """
    This class provides access to a ZIP archive stored in a file or file object.

    The central directory is read as soon as the archive is constructed, along with the local header of every entry.
    Afterwards, the metadata is available through `entries`, iteration, `len()` and `get_entry`, and the content of an
    entry can be read through a file object obtained from `by_name` or `by_index`.

    A `ZipArchive` can be either opened and closed manually::

        archive = ZipArchive("file.zip")
        print(archive.entries)
        archive.close()

    or used as a context manager::

        with ZipArchive("file.zip") as archive:
            print(archive.entries)

    The underlying file object is shared by all the entry readers. Each of them keeps its own position, so they can be
    read alternately, but no locking is performed: do not use an archive or its entry readers from multiple threads
    without synchronizing access externally.
    """

    _fileobj: Optional[BinaryIO] = None
    _fileobj_owned: bool = False
    _file_name: Optional[str] = None

    _entries: Tuple[ZipEntry, ...] = ()
    _positions_by_name: dict
    _comment: bytes = b''

    def __init__(
        self, path_or_fileobj: Union[PathLike, AnyStr, BinaryIO],
        duplicate_names: DuplicateNamePolicy = DuplicateNamePolicy.REJECT,
    ):
        """
        Opens a ZIP archive for reading.

        Args:
            path_or_fileobj: Either a filename, or an open, seekable binary file object containing the archive.
            duplicate_names: What to do if several entries have the same name. By default, such archives are rejected.
                See `DuplicateNamePolicy`.

        Raises:
            NotAZipFileError: If no end of central directory record could be found.
            ZipFileCorruptError: If the archive structure is malformed.
            MultiDiskZipError: If the archive is part of a multi-disk set.
            DuplicateEntryNameError: If entry names repeat and `duplicate_names` is `DuplicateNamePolicy.REJECT`.

        If a file object is passed, it should be kept open, and its data unchanged, for as long as entries are being
        read. The archive will not close it when the context ends.
        """

        if isinstance(path_or_fileobj, IOBase):
            if not path_or_fileobj.seekable():
                raise ValueError("File object must be seekable")

            self._fileobj = path_or_fileobj
        else:
            self._fileobj = open(path_or_fileobj, 'rb')
            self._fileobj_owned = True

        try:
            self._read_archive(duplicate_names)
        except BaseException:
            if self._fileobj_owned:
                self._fileobj.close()
            raise

    @property
    def entries(self) -> Tuple[ZipEntry, ...]:
        """
        Metadata about the entries in the archive, in central directory order.
        """
        return self._entries

    @property
    def comment(self) -> bytes:
        """
        The archive comment, as raw bytes (its encoding is not specified by the format).
        """
        return self._comment

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ZipEntry]:
        return iter(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._positions_by_name

    def get_entry(self, name: str) -> ZipEntry:
        """
        Gets the metadata for an entry by name, regardless of whether its content can be read.

        Raises:
            ZipEntryNotFoundError: If there is no such entry.
        """
        position = self._positions_by_name.get(name)
        if position is None:
            raise ZipEntryNotFoundError(name)

        return self._entries[position]

    def by_name(self, name: str) -> ZipEntryReader:
        """
        Opens the content of an entry, looked up by name, for reading.

        Raises:
            ZipEntryNotFoundError: If there is no such entry.
            EncryptedEntryError: If the entry is encrypted.
            UnsupportedCompressionError: If the entry uses any compression method other than STORE.
        """
        return self._open_entry(self.get_entry(name))

    def by_index(self, index: int) -> ZipEntryReader:
        """
        Opens the content of an entry, looked up by its position in the central directory, for reading.

        Raises:
            ZipEntryNotFoundError: If the index is negative or not less than the number of entries.
            EncryptedEntryError: If the entry is encrypted.
            UnsupportedCompressionError: If the entry uses any compression method other than STORE.
        """
        if not (0 <= index < len(self._entries)):
            raise ZipEntryNotFoundError(index)

        return self._open_entry(self._entries[index])

    def read(self, name: str) -> bytes:
        """
        Reads the full, CRC-verified content of an entry, looked up by name.
        """
        with self.by_name(name) as f:
            return f.read()

    def release(self) -> BinaryIO:
        """
        Detaches the underlying file object from the archive and returns it. Its position is unspecified.

        The metadata remains available afterwards, but entries can no longer be opened.
        """
        self._require_fileobj()

        fileobj = self._fileobj

        self._fileobj = None
        self._fileobj_owned = False

        return fileobj

    def close(self):
        """
        Closes the underlying file object.

        Once the file is closed, you can still read the metadata for the entries, but you won't be able to open their
        contents.

        Note that this method closes the file object regardless of whether it was created by `ZipArchive` or received
        from elsewhere!
        """

        if self._fileobj is not None:
            self._fileobj.close()

    def __enter__(self) -> 'ZipArchive':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if (not self._fileobj_owned) or (self._fileobj is None) or self._fileobj.closed:
            return

        self._fileobj.close()

    def _read_archive(self, duplicate_names: DuplicateNamePolicy):
        reader = BinaryReader(self._fileobj, big_endian=False)

        self._file_name = reader.name()

        index = build_index(reader, duplicate_names)

        self._entries = index.entries
        self._positions_by_name = index.positions_by_name
        self._comment = index.trailer.comment

    def _require_fileobj(self):
        if self._fileobj is None:
            raise ValueError("The file object has been released from this archive")
        if self._fileobj.closed:
            raise ValueError("Cannot read entries because the underlying file object has been closed")

    def _open_entry(self, entry: ZipEntry) -> ZipEntryReader:
        self._require_fileobj()

        if entry.is_encrypted:
            raise EncryptedEntryError(entry.name)

        return ZipEntryReader(open_decoder(self._fileobj, entry, self._file_name), entry, self._file_name)
