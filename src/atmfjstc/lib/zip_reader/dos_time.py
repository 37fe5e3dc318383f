"""
Conversion of the packed MS-DOS date/time pairs used for ZIP entry modification times.

The time word holds the hour, minute and seconds/2 in 5/6/5 bits, and the date word holds the year-1980, month and
day in 7/4/5 bits. There is no timezone information, so the resulting timestamps are naive (usually local time on the
machine where the archive was made).
"""

from datetime import datetime
from typing import Optional, Tuple

from atmfjstc.lib.iso_timestamp import ISOTimestamp, iso_from_datetime


def unpack_dos_datetime(dos_time: int, dos_date: int) -> Tuple[int, int, int, int, int, int]:
    """
    Splits a DOS time/date pair into its (year, month, day, hour, minute, second) fields, without validating them.
    """
    return (
        1980 + (dos_date >> 9),
        (dos_date >> 5) & 0x0f,
        dos_date & 0x1f,
        dos_time >> 11,
        (dos_time >> 5) & 0x3f,
        (dos_time & 0x1f) * 2,
    )


def iso_from_dos_datetime(dos_time: int, dos_date: int) -> Optional[ISOTimestamp]:
    """
    Converts a DOS time/date pair to a naive ISO timestamp.

    Returns None if the fields do not make up a valid calendar date and time (e.g. month 0, as written by some tools
    that leave the field blank).
    """
    try:
        return iso_from_datetime(datetime(*unpack_dos_datetime(dos_time, dos_date)))
    except ValueError:
        return None
