# src/ace_rfid_qt5/config/settings.py
# User settings kept in an INI file (~/.ace_rfid_qt5/settings.ini).
from __future__ import annotations
import configparser
import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..constants import DEFAULT_PASSWORDS
from ..nfc.auth import parse_password
from .filaments import SpoolSize

log = logging.getLogger(__name__)

SETTINGS_DIR = Path.home() / ".ace_rfid_qt5"
SETTINGS_FILE = SETTINGS_DIR / "settings.ini"
CUSTOM_PROFILES_FILE = SETTINGS_DIR / "custom_profiles.ini"


class TemperatureUnit(Enum):
    CELSIUS = "Celsius"
    FAHRENHEIT = "Fahrenheit"

    @property
    def symbol(self) -> str:
        return "°C" if self is TemperatureUnit.CELSIUS else "°F"

    def convert(self, celsius: int) -> int:
        """Celsius (as stored on the tag) -> this unit, truncated."""
        if self is TemperatureUnit.CELSIUS:
            return celsius
        return int(celsius * 9 / 5 + 32)

    def format(self, celsius: int) -> str:
        return f"{self.convert(celsius)}{self.symbol}"


@dataclass
class AppSettings:
    # [general]
    default_spool_size: SpoolSize = SpoolSize.KG_1
    auto_verify: bool = True
    feedback: bool = True
    temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS
    show_debug_info: bool = False
    # [nfc]
    page_delay_ms: int = 5
    release_delay_ms: int = 1500
    session_timeout_s: float = 30.0
    poll_interval_s: float = 0.5
    passwords: List[str] = field(default_factory=lambda: list(DEFAULT_PASSWORDS))
    # [catalog]
    custom_profiles: Path = CUSTOM_PROFILES_FILE

    _SECTIONS = {
        "general": ("default_spool_size", "auto_verify", "feedback",
                    "temperature_unit", "show_debug_info"),
        "nfc": ("page_delay_ms", "release_delay_ms", "session_timeout_s",
                "poll_interval_s", "passwords"),
        "catalog": ("custom_profiles",),
    }

    def password_bytes(self) -> List[bytes]:
        """Configured passwords as 4-byte values; invalid entries are skipped."""
        out = []
        for p in self.passwords:
            try:
                out.append(parse_password(p))
            except ValueError as e:
                log.warning("Ignoring password entry: %s", e)
        return out

    def reset(self) -> None:
        defaults = AppSettings()
        for f in fields(self):
            setattr(self, f.name, getattr(defaults, f.name))

    # ---------- (de)serialization ----------
    @staticmethod
    def _parse(name: str, raw: str, default):
        if isinstance(default, bool):
            v = raw.strip().lower()
            if v in ("1", "true", "yes", "on"):
                return True
            if v in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, SpoolSize):
            return SpoolSize.from_label(raw)
        if isinstance(default, TemperatureUnit):
            return TemperatureUnit(raw.strip().capitalize())
        if isinstance(default, Path):
            return Path(raw.strip()).expanduser()
        if isinstance(default, list):
            return [p.strip() for p in raw.split(",") if p.strip()]
        return raw

    @staticmethod
    def _format(value) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, list):
            return ", ".join(value)
        return str(value)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppSettings":
        """Read settings; a missing file or key keeps the default."""
        path = Path(path) if path else SETTINGS_FILE
        settings = cls()
        if not path.exists():
            log.debug("No settings file at %s, using defaults", path)
            return settings
        cp = configparser.ConfigParser()
        cp.read(path, encoding="utf-8")
        for section, names in cls._SECTIONS.items():
            if not cp.has_section(section):
                continue
            for name in names:
                if not cp.has_option(section, name):
                    continue
                raw = cp.get(section, name)
                default = getattr(settings, name)
                try:
                    setattr(settings, name, cls._parse(name, raw, default))
                except ValueError:
                    log.warning("Invalid value for [%s] %s: %r, using default %r",
                                section, name, raw, cls._format(default))
        return settings

    def save(self, path: Optional[Path] = None) -> Path:
        path = Path(path) if path else SETTINGS_FILE
        cp = configparser.ConfigParser()
        for section, names in self._SECTIONS.items():
            cp[section] = {name: self._format(getattr(self, name)) for name in names}
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            cp.write(f)
        return path
