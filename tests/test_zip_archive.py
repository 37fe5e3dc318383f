import os
import zlib
import zipfile
import unittest

from io import BytesIO
from tempfile import TemporaryDirectory

from atmfjstc.lib.zip_reader import ZipArchive, ZipEntryReader, StoredMethod, UnsupportedMethod, ZipEntryFlags, \
    DuplicateNamePolicy, NotAZipFileError, ZipFileCorruptError, MultiDiskZipError, EncryptedEntryError, \
    UnsupportedCompressionError, UnsupportedZipFeatureError, ZipEntryNotFoundError, ZipEntryChecksumError, \
    DuplicateEntryNameError

from zip_fixtures import RawEntry, build_raw_zip, build_stdlib_zip


SAMPLE_FILES = [
    ('hello.txt', b'Hello, world!\n'),
    ('dir/', b''),
    ('dir/data.bin', bytes(range(256)) * 4),
    ('empty.txt', b''),
]


def _open(data: bytes, **kwargs) -> ZipArchive:
    return ZipArchive(BytesIO(data), **kwargs)


class OpenTest(unittest.TestCase):
    def test_stdlib_archive(self):
        archive = _open(build_stdlib_zip(SAMPLE_FILES, comment=b'archive comment'))

        self.assertEqual(len(archive), 4)
        self.assertEqual([entry.name for entry in archive], [name for name, _ in SAMPLE_FILES])
        self.assertEqual(archive.comment, b'archive comment')

    def test_entry_metadata(self):
        archive = _open(build_stdlib_zip(SAMPLE_FILES))

        entry = archive.get_entry('dir/data.bin')

        self.assertEqual(entry.index, 2)
        self.assertEqual(entry.compression_method, StoredMethod())
        self.assertEqual(entry.crc32, zlib.crc32(bytes(range(256)) * 4))
        self.assertEqual(entry.compressed_size, 1024)
        self.assertEqual(entry.uncompressed_size, 1024)
        self.assertEqual(entry.last_modified, '2021-03-04 05:06:08')
        self.assertFalse(entry.is_encrypted)
        self.assertFalse(entry.is_dir)
        self.assertTrue(archive.get_entry('dir/').is_dir)

    def test_data_offset_is_computed_from_local_header(self):
        data = build_raw_zip([
            RawEntry(b'a.txt', b'AAAA', local_extra=b'\x99\x99\x02\x00xy'),
            RawEntry(b'b.txt', b'BB', local_name=b'something-longer.txt'),
        ])

        archive = _open(data)

        first, second = archive.entries

        self.assertEqual(first.header_offset, 0)
        self.assertEqual(first.data_offset, 30 + 5 + 6)
        self.assertEqual(data[first.data_offset:first.data_offset + 4], b'AAAA')
        self.assertEqual(second.name, 'b.txt')
        self.assertEqual(data[second.data_offset:second.data_offset + 2], b'BB')
        self.assertEqual(archive.read('a.txt'), b'AAAA')
        self.assertEqual(archive.read('b.txt'), b'BB')

    def test_empty_archive(self):
        archive = _open(build_stdlib_zip([]))

        self.assertEqual(len(archive), 0)
        self.assertEqual(archive.entries, ())

    def test_from_path(self):
        with TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'test.zip')
            with open(path, 'wb') as f:
                f.write(build_stdlib_zip(SAMPLE_FILES))

            with ZipArchive(path) as archive:
                self.assertEqual(archive.read('hello.txt'), b'Hello, world!\n')

    def test_not_a_zip(self):
        with self.assertRaises(NotAZipFileError):
            _open(b'This is just some text, not an archive at all.')

    def test_empty_data(self):
        with self.assertRaises(NotAZipFileError):
            _open(b'')

    def test_non_seekable(self):
        class NonSeekable(BytesIO):
            def seekable(self):
                return False

        with self.assertRaises(ValueError):
            ZipArchive(NonSeekable(build_stdlib_zip([])))

    def test_multi_disk_rejected_before_directory(self):
        data = build_raw_zip([RawEntry(b'a.txt', b'A')], disk_number=1, disk_with_directory=0,
                             central_magic=b'XXXX')

        with self.assertRaises(MultiDiskZipError) as cm:
            _open(data)

        self.assertIsInstance(cm.exception, UnsupportedZipFeatureError)
        self.assertIn('Multi-disk', cm.exception.reason)

    def test_bad_central_signature(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A')], central_magic=b'PK\x01\x03'))

    def test_bad_local_signature(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A')], local_magic=b'PK\x03\x05'))

    def test_header_offset_past_end(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A', header_offset_delta=1000000)]))

    def test_header_offset_misaligned(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A', header_offset_delta=1)]))

    def test_data_past_end(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A', compressed_size=1000000, uncompressed_size=1000000)]))

    def test_more_entries_declared_than_present(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A')], entries_this_disk=2, total_entries=2))

    def test_fewer_entries_declared_than_present(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip(
                [RawEntry(b'a.txt', b'A'), RawEntry(b'b.txt', b'B')], entries_this_disk=1, total_entries=1
            ))

    def test_inconsistent_entry_counts(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A')], entries_this_disk=1, total_entries=2))

    def test_extra_field_overrun(self):
        with self.assertRaises(ZipFileCorruptError):
            _open(build_raw_zip([RawEntry(b'a.txt', b'A', extra=b'\x01\x00\x10\x00abc')]))

    def test_extra_fields_kept(self):
        archive = _open(build_raw_zip([RawEntry(b'a.txt', b'A', extra=b'\x55\x54\x01\x00\x07\x99\x99\x00\x00')]))

        fields = archive.entries[0].extra_fields

        self.assertEqual([(field.tag, field.data) for field in fields], [(0x5455, b'\x07'), (0x9999, b'')])

    def test_file_closed_on_failure(self):
        with TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'bad.zip')
            with open(path, 'wb') as f:
                f.write(b'garbage')

            with self.assertRaises(NotAZipFileError):
                ZipArchive(path)

            os.remove(path)


class EncodingTest(unittest.TestCase):
    def test_utf8_name(self):
        archive = _open(build_stdlib_zip([('naïve/日本.txt', b'x')]))

        entry = archive.entries[0]

        self.assertTrue(entry.is_utf8)
        self.assertEqual(entry.name, 'naïve/日本.txt')
        self.assertEqual(archive.read('naïve/日本.txt'), b'x')

    def test_cp437_name(self):
        archive = _open(build_raw_zip([RawEntry(b'caf\x82.txt', b'x', comment=b'\x9c5')]))

        entry = archive.entries[0]

        self.assertFalse(entry.is_utf8)
        self.assertEqual(entry.name, 'café.txt')
        self.assertEqual(entry.raw_name, b'caf\x82.txt')
        self.assertEqual(entry.comment, '£5')

    def test_invalid_utf8_name_is_replaced(self):
        archive = _open(build_raw_zip([RawEntry(b'bad\xff.txt', b'x', flags=ZipEntryFlags.UTF8)]))

        self.assertEqual(archive.entries[0].name, 'bad�.txt')

    def test_invalid_dos_date(self):
        archive = _open(build_raw_zip([RawEntry(b'a.txt', b'x', dos_date=0, dos_time=0)]))

        self.assertIsNone(archive.entries[0].last_modified)


class LookupTest(unittest.TestCase):
    def setUp(self):
        self.archive = _open(build_stdlib_zip(SAMPLE_FILES))

    def test_by_name(self):
        for name, content in SAMPLE_FILES:
            with self.archive.by_name(name) as f:
                self.assertIsInstance(f, ZipEntryReader)
                self.assertEqual(f.name, name)
                self.assertEqual(f.size, len(content))
                self.assertEqual(f.read(), content)

    def test_by_index(self):
        for index, (name, content) in enumerate(SAMPLE_FILES):
            with self.archive.by_index(index) as f:
                self.assertEqual(f.name, name)
                self.assertEqual(f.read(), content)

    def test_by_name_missing(self):
        with self.assertRaises(ZipEntryNotFoundError) as cm:
            self.archive.by_name('nope.txt')

        self.assertIsInstance(cm.exception, LookupError)

        with self.assertRaises(ZipEntryNotFoundError):
            self.archive.get_entry('nope.txt')

        self.assertNotIn('nope.txt', self.archive)
        self.assertIn('hello.txt', self.archive)

    def test_by_index_out_of_range(self):
        for index in [len(self.archive), len(self.archive) + 1, 1000, -1]:
            with self.assertRaises(ZipEntryNotFoundError):
                self.archive.by_index(index)

    def test_by_index_on_empty_archive(self):
        with self.assertRaises(ZipEntryNotFoundError):
            _open(build_stdlib_zip([])).by_index(0)

    def test_interleaved_readers(self):
        with self.archive.by_name('dir/data.bin') as f1, self.archive.by_name('hello.txt') as f2:
            parts1 = []
            parts2 = []

            for _ in range(4):
                parts1.append(f1.read(256))
                parts2.append(f2.read(4))

            self.assertEqual(b''.join(parts1), bytes(range(256)) * 4)
            self.assertEqual(b''.join(parts2), b'Hello, world!\n')

    def test_closed_archive(self):
        self.archive.close()

        with self.assertRaises(ValueError):
            self.archive.by_index(0)

        self.assertEqual(len(self.archive), 4)

    def test_release(self):
        fileobj = self.archive.release()

        self.assertIsInstance(fileobj, BytesIO)
        self.assertFalse(fileobj.closed)

        with self.assertRaises(ValueError):
            self.archive.by_name('hello.txt')

        self.assertEqual(self.archive.entries[0].name, 'hello.txt')


class UnsupportedEntryTest(unittest.TestCase):
    def test_encrypted(self):
        archive = _open(build_raw_zip([RawEntry(b'secret.txt', b'xyz', flags=ZipEntryFlags.ENCRYPTED)]))

        self.assertTrue(archive.entries[0].is_encrypted)

        with self.assertRaises(EncryptedEntryError) as cm:
            archive.by_name('secret.txt')

        self.assertIsInstance(cm.exception, UnsupportedZipFeatureError)
        self.assertIn('encrypted', cm.exception.reason)

    def test_encrypted_regardless_of_method(self):
        archive = _open(build_raw_zip([
            RawEntry(b'a', b'xyz', flags=ZipEntryFlags.ENCRYPTED, method=8),
            RawEntry(b'b', b'xyz', flags=ZipEntryFlags.ENCRYPTED | ZipEntryFlags.UTF8, method=99),
        ]))

        for index in range(2):
            with self.assertRaises(EncryptedEntryError):
                archive.by_index(index)

    def test_deflated(self):
        archive = _open(build_stdlib_zip([('a.txt', b'aaaaaaaaaa' * 100)], compression=zipfile.ZIP_DEFLATED))

        entry = archive.entries[0]

        self.assertEqual(entry.compression_method, UnsupportedMethod(8))

        with self.assertRaises(UnsupportedCompressionError) as cm:
            archive.by_name('a.txt')

        self.assertEqual(cm.exception.method, UnsupportedMethod(8))
        self.assertIn('DEFLATE', cm.exception.reason)

    def test_stored_with_mismatched_sizes(self):
        archive = _open(build_raw_zip([RawEntry(b'a.txt', b'abcd', uncompressed_size=3)]))

        with self.assertRaises(ZipFileCorruptError):
            archive.by_name('a.txt')


class ChecksumTest(unittest.TestCase):
    def _corrupt(self, data: bytes, name: str) -> bytes:
        entry = _open(data).get_entry(name)

        corrupt = bytearray(data)
        corrupt[entry.data_offset + entry.compressed_size // 2] ^= 0x01

        return bytes(corrupt)

    def test_read_all(self):
        data = self._corrupt(build_stdlib_zip(SAMPLE_FILES), 'dir/data.bin')

        with _open(data).by_name('dir/data.bin') as f:
            with self.assertRaises(ZipEntryChecksumError):
                f.read()

    def test_read_in_chunks(self):
        data = self._corrupt(build_stdlib_zip(SAMPLE_FILES), 'dir/data.bin')

        with _open(data).by_name('dir/data.bin') as f:
            total = 0
            with self.assertRaises(ZipEntryChecksumError) as cm:
                while True:
                    chunk = f.read(100)
                    total += len(chunk)
                    if len(chunk) == 0:
                        break

            self.assertEqual(total, 1000)
            self.assertEqual(cm.exception.expected, zlib.crc32(bytes(range(256)) * 4))

            with self.assertRaises(ZipEntryChecksumError):
                f.read()

    def test_wrong_declared_crc(self):
        archive = _open(build_raw_zip([RawEntry(b'a.txt', b'abc', crc32=0x12345678)]))

        with self.assertRaises(ZipEntryChecksumError) as cm:
            archive.read('a.txt')

        self.assertEqual(cm.exception.expected, 0x12345678)
        self.assertEqual(cm.exception.actual, zlib.crc32(b'abc'))

    def test_empty_entry_with_wrong_crc(self):
        archive = _open(build_raw_zip([RawEntry(b'a.txt', b'', crc32=1)]))

        with self.assertRaises(ZipEntryChecksumError):
            archive.read('a.txt')

    def test_other_entries_unaffected(self):
        archive = _open(self._corrupt(build_stdlib_zip(SAMPLE_FILES), 'dir/data.bin'))

        self.assertEqual(archive.read('hello.txt'), b'Hello, world!\n')


class DuplicateNamesTest(unittest.TestCase):
    DATA = build_raw_zip([RawEntry(b'a.txt', b'first'), RawEntry(b'b.txt', b'b'), RawEntry(b'a.txt', b'second')])

    def test_reject_by_default(self):
        with self.assertRaises(DuplicateEntryNameError) as cm:
            _open(self.DATA)

        self.assertEqual(cm.exception.name, 'a.txt')

    def test_first_wins(self):
        archive = _open(self.DATA, duplicate_names=DuplicateNamePolicy.FIRST_WINS)

        self.assertEqual(archive.read('a.txt'), b'first')
        self.assertEqual(archive.get_entry('a.txt').index, 0)

    def test_last_wins(self):
        with self.assertLogs('atmfjstc.lib.zip_reader', level='WARNING'):
            archive = _open(self.DATA, duplicate_names=DuplicateNamePolicy.LAST_WINS)

        self.assertEqual(archive.read('a.txt'), b'second')
        self.assertEqual(archive.get_entry('a.txt').index, 2)

    def test_all_reachable_by_index(self):
        archive = _open(self.DATA, duplicate_names=DuplicateNamePolicy.LAST_WINS)

        self.assertEqual(len(archive), 3)

        with archive.by_index(0) as f:
            self.assertEqual(f.read(), b'first')
