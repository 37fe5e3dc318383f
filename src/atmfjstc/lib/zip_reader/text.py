"""
Decoding of entry names and comments.

ZIP predates Unicode, and the format only knows two encodings for text: UTF-8, when bit 11 of the entry flags is set,
and the original IBM PC code page 437 otherwise. Decoding never fails: invalid UTF-8 sequences are replaced, and
CP437 maps every one of the 256 byte values to some character.
"""


def decode_entry_text(raw_text: bytes, is_utf8: bool) -> str:
    if is_utf8:
        return raw_text.decode('utf-8', errors='replace')

    return raw_text.decode('cp437')
