# src/ace_rfid_qt5/nfc/codec.py
"""
Byte-exact codec between a MaterialRecord and the 144-byte tag image.

Layout (offsets inside the image, image starts at page 4):
  0..3     magic 7B 00 65 00
  4..23    SKU      (UTF-8, NUL padded)
  24..43   brand    (UTF-8, NUL padded)
  44..63   material type label
  64..67   color as A, B, G, R
  80..83   extruder min/max (LE16)
  100..103 bed min/max (LE16)
  104..107 diameter (175) / length in meters (LE16)
  108..111 reserved constant E8 03 00 00
Everything else is zero.
"""
from __future__ import annotations
import struct
from typing import Iterator, Optional, Tuple

from ..constants import (
    BASE_PAGE, DATA_SIZE, DIAMETER_CENTI_MM, IMAGE_SIZE, MAGIC, OFF_BED, OFF_BRAND,
    OFF_COLOR, OFF_EXTRUDER, OFF_FILAMENT, OFF_MAGIC, OFF_RESERVED, OFF_SKU, OFF_TYPE,
    PAGE_SIZE, RESERVED, TEXT_SLOT,
)
from ..config.filaments import MaterialRecord, MaterialType, SpoolSize, TemperatureRange
from ..utils.colors import Color
from .errors import DataErrorKind

# RGB channels at or below this are read back as "true black"
NEAR_BLACK_MAX = 2

_U16_PAIR = struct.Struct("<HH")


def _text_slot(text: str, width: int = TEXT_SLOT) -> bytes:
    """UTF-8 encode, truncate on a character boundary, pad with NUL."""
    raw = (text or "").encode("utf-8")[:width]
    # drop a trailing partial multi-byte sequence
    raw = raw.decode("utf-8", errors="ignore").encode("utf-8")
    return raw.ljust(width, b"\x00")


def _read_text(slot: bytes) -> Optional[str]:
    try:
        s = slot.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return s.replace("\x00", "").strip()


def encode(record: MaterialRecord) -> bytes:
    """Encode a record into a 144-byte image. Never raises for a valid record."""
    buf = bytearray(IMAGE_SIZE)

    buf[OFF_MAGIC:OFF_MAGIC + 4] = MAGIC
    buf[OFF_SKU:OFF_SKU + TEXT_SLOT] = _text_slot(record.sku)
    buf[OFF_BRAND:OFF_BRAND + TEXT_SLOT] = _text_slot(record.brand)
    buf[OFF_TYPE:OFF_TYPE + TEXT_SLOT] = _text_slot(record.material_type.value)

    c = record.color
    r, g, b = c.red & 0xFF, c.green & 0xFF, c.blue & 0xFF
    if r == 0 and g == 0 and b == 0:
        # printers treat RGB 0,0,0 as "no color set"
        r = g = b = 1
    buf[OFF_COLOR:OFF_COLOR + 4] = bytes((c.alpha & 0xFF, b, g, r))

    t = record.temperatures
    _U16_PAIR.pack_into(buf, OFF_EXTRUDER, t.extruder_min & 0xFFFF, t.extruder_max & 0xFFFF)
    _U16_PAIR.pack_into(buf, OFF_BED, t.bed_min & 0xFFFF, t.bed_max & 0xFFFF)
    _U16_PAIR.pack_into(buf, OFF_FILAMENT, DIAMETER_CENTI_MM, record.length_m & 0xFFFF)
    buf[OFF_RESERVED:OFF_RESERVED + 4] = RESERVED

    return bytes(buf)


def decode(image: bytes) -> Tuple[Optional[MaterialRecord], Optional[DataErrorKind]]:
    """
    Decode an image read from a tag.

    Returns (record, None) on success or (None, DataErrorKind) otherwise:
      - TOO_SHORT  fewer than 112 bytes
      - BLANK_TAG  byte 0 is zero (never written)
      - MALFORMED  a text slot is not valid UTF-8
    """
    data = bytes(image or b"")
    if len(data) < DATA_SIZE:
        return None, DataErrorKind.TOO_SHORT
    if data[0] == 0x00:
        return None, DataErrorKind.BLANK_TAG

    sku = _read_text(data[OFF_SKU:OFF_SKU + TEXT_SLOT])
    brand = _read_text(data[OFF_BRAND:OFF_BRAND + TEXT_SLOT])
    label = _read_text(data[OFF_TYPE:OFF_TYPE + TEXT_SLOT])
    if sku is None or brand is None or label is None:
        return None, DataErrorKind.MALFORMED

    a, b, g, r = data[OFF_COLOR:OFF_COLOR + 4]
    if r <= NEAR_BLACK_MAX and g <= NEAR_BLACK_MAX and b <= NEAR_BLACK_MAX:
        r = g = b = 0

    ext_min, ext_max = _U16_PAIR.unpack_from(data, OFF_EXTRUDER)
    bed_min, bed_max = _U16_PAIR.unpack_from(data, OFF_BED)
    _diameter, length_m = _U16_PAIR.unpack_from(data, OFF_FILAMENT)

    record = MaterialRecord(
        material_type=MaterialType.from_label(label),
        brand=brand,
        sku=sku,
        temperatures=TemperatureRange(ext_min, ext_max, bed_min, bed_max),
        color=Color(r, g, b, a),
        spool_size=SpoolSize.from_length(length_m),
    )
    return record, None


# ---------- page helpers ----------

def pages(image: bytes, start_page: int = BASE_PAGE, count: Optional[int] = None) -> Iterator[Tuple[int, bytes]]:
    """Yield (page_index, 4 bytes) for the image; the last chunk is zero padded."""
    total = (len(image) + PAGE_SIZE - 1) // PAGE_SIZE
    if count is not None:
        total = min(total, count)
    for i in range(total):
        chunk = image[i * PAGE_SIZE:(i + 1) * PAGE_SIZE]
        yield start_page + i, bytes(chunk).ljust(PAGE_SIZE, b"\x00")


def compare(expected: bytes, actual: bytes) -> Tuple[int, Optional[int], int]:
    """
    Byte-by-byte comparison over min(len(expected), len(actual), 112).
    Returns (mismatch_count, first_mismatch_offset or None, compared_length).
    """
    n = min(len(expected), len(actual), DATA_SIZE)
    mismatches = 0
    first = None
    for i in range(n):
        if expected[i] != actual[i]:
            mismatches += 1
            if first is None:
                first = i
    return mismatches, first, n
