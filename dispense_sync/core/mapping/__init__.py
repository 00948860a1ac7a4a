"""
Field mapping from raw store rows to normalized dispense records.
"""

from .field_mapper import FieldMapper, map_row
from .normalizers import (
    clean_text,
    combine_date_time,
    decode_flag,
    decode_sex,
    parse_float,
    parse_int,
    split_carrier,
)

__all__ = [
    "FieldMapper",
    "map_row",
    "clean_text",
    "combine_date_time",
    "decode_flag",
    "decode_sex",
    "parse_float",
    "parse_int",
    "split_carrier",
]
