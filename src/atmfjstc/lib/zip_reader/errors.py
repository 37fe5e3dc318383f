from typing import Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .compression import CompressionMethod


class BadZipFileError(Exception):
    pass


class ZipFileCorruptError(BadZipFileError):
    """
    Raised when the structure of the archive is malformed: bad signatures, offsets or lengths pointing outside the
    data, truncated records etc.
    """

    file_name: Optional[str]
    reason: str

    def __init__(self, file_name: Optional[str], reason: str):
        self.file_name = file_name
        self.reason = reason

        quoted_name = f" '{file_name}'" if file_name is not None else ''
        super().__init__(f"ZIP file{quoted_name} is corrupt or malformed: {reason}")


class NotAZipFileError(ZipFileCorruptError):
    def __init__(self, file_name: Optional[str]):
        super().__init__(file_name, "end of central directory record not found")


class DuplicateEntryNameError(ZipFileCorruptError):
    name: str

    def __init__(self, file_name: Optional[str], name: str):
        self.name = name

        super().__init__(file_name, f"multiple entries are named '{name}'")


class UnsupportedZipFeatureError(BadZipFileError):
    """
    Raised when the archive or entry is well-formed, but uses a feature this reader does not implement. The `reason`
    attribute contains a human-readable explanation.
    """

    reason: str

    def __init__(self, reason: str):
        self.reason = reason

        super().__init__(reason)


class MultiDiskZipError(UnsupportedZipFeatureError):
    def __init__(self, disk_number: int, disk_with_directory: int):
        super().__init__(
            f"Multi-disk archives are not supported (this is disk {disk_number}, the central directory is on "
            f"disk {disk_with_directory})"
        )


class EncryptedEntryError(UnsupportedZipFeatureError):
    def __init__(self, entry_name: str):
        super().__init__(f"Entry '{entry_name}' is encrypted, and encrypted entries are not supported")


class UnsupportedCompressionError(UnsupportedZipFeatureError):
    method: 'CompressionMethod'

    def __init__(self, entry_name: str, method: 'CompressionMethod'):
        self.method = method

        super().__init__(f"Entry '{entry_name}' uses compression method {method.description}, which is not supported")


class ZipEntryNotFoundError(BadZipFileError, LookupError):
    key: Union[str, int]

    def __init__(self, key: Union[str, int]):
        self.key = key

        super().__init__(
            f"There is no entry named '{key}' in the archive" if isinstance(key, str)
            else f"There is no entry with index {key} in the archive"
        )


class ZipEntryChecksumError(BadZipFileError):
    entry_name: str
    expected: int
    actual: int

    def __init__(self, entry_name: str, expected: int, actual: int):
        self.entry_name = entry_name
        self.expected = expected
        self.actual = actual

        super().__init__(
            f"CRC check failed for entry '{entry_name}' (declared: 0x{expected:08x}, actual: 0x{actual:08x})"
        )
