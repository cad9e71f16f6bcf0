# src/ace_rfid_qt5/utils/colors.py
from __future__ import annotations
from dataclasses import dataclass


def normalize_hex_full(h: str) -> str:
    """Return '#RRGGBBAA' uppercase if possible; accept '#RRGGBB' -> '#RRGGBBFF'."""
    s = (h or "").strip()
    if not s.startswith("#"):
        s = "#" + s
    s = s.upper()
    if len(s) == 7:
        return s + "FF"
    if len(s) >= 9:
        return s[:9]
    return "#000000FF"


@dataclass(frozen=True)
class Color:
    """Display color with four independent 8-bit channels."""
    red: int
    green: int
    blue: int
    alpha: int = 0xFF

    @classmethod
    def from_hex(cls, hex_str: str) -> "Color":
        """Parse '#RRGGBB' or '#RRGGBBAA' (alpha defaults to FF)."""
        s = (hex_str or "").strip().lstrip("#")
        if len(s) not in (6, 8):
            raise ValueError(f"not a hex color: {hex_str!r}")
        s = normalize_hex_full(s).lstrip("#")
        try:
            r, g, b, a = (int(s[i:i + 2], 16) for i in range(0, 8, 2))
        except ValueError:
            raise ValueError(f"not a hex color: {hex_str!r}") from None
        return cls(r, g, b, a)

    def to_hex(self) -> str:
        return f"#{self.red:02X}{self.green:02X}{self.blue:02X}{self.alpha:02X}"

    @property
    def is_black(self) -> bool:
        return self.red == 0 and self.green == 0 and self.blue == 0


BLACK = Color(0, 0, 0)
WHITE = Color(0xFF, 0xFF, 0xFF)
