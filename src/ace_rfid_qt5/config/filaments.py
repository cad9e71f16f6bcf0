# src/ace_rfid_qt5/config/filaments.py
from __future__ import annotations
import csv
import logging
from dataclasses import dataclass, replace
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..utils.colors import Color

log = logging.getLogger(__name__)


# ---------- Domain model ----------

class MaterialType(Enum):
    """Filament material; the value is the label text stored on the tag."""
    PLA = "PLA"
    PLA_MATTE = "PLA Matte"
    PLA_PLUS = "PLA Plus"
    PLA_SILK = "PLA Silk"
    ABS = "ABS"
    PETG = "PETG"
    TPU = "TPU"
    NYLON = "Nylon"
    ASA = "ASA"
    PC = "PC"
    PVA = "PVA"
    HIPS = "HIPS"

    @classmethod
    def from_label(cls, label: str) -> "MaterialType":
        """Exact label lookup; unknown labels fall back to PLA."""
        for t in cls:
            if t.value == label:
                return t
        return cls.PLA


class SpoolSize(Enum):
    """Quantity bucket; the value is the display label."""
    KG_0_25 = "0.25 KG"
    KG_0_5 = "0.5 KG"
    KG_0_75 = "0.75 KG"
    KG_1 = "1 KG"
    KG_2 = "2 KG"
    KG_3 = "3 KG"
    KG_5 = "5 KG"

    @property
    def length_m(self) -> int:
        return _SPOOL_LENGTH_M[self]

    @classmethod
    def from_length(cls, length_m: int) -> "SpoolSize":
        """Exact match on the stored length; no match falls back to 1 KG."""
        for size, meters in _SPOOL_LENGTH_M.items():
            if meters == length_m:
                return size
        return cls.KG_1

    @classmethod
    def from_label(cls, label: str) -> "SpoolSize":
        s = (label or "").strip().upper()
        for size in cls:
            if size.value == s:
                return size
        raise ValueError(f"unknown spool size: {label!r}")

    @classmethod
    def smallest(cls) -> "SpoolSize":
        return min(cls, key=lambda s: s.length_m)


_SPOOL_LENGTH_M: Dict[SpoolSize, int] = {
    SpoolSize.KG_0_25: 82,
    SpoolSize.KG_0_5: 165,
    SpoolSize.KG_0_75: 247,
    SpoolSize.KG_1: 330,
    SpoolSize.KG_2: 660,
    SpoolSize.KG_3: 990,
    SpoolSize.KG_5: 1650,
}


@dataclass(frozen=True)
class TemperatureRange:
    """Extruder and bed ranges in °C. Not validated here."""
    extruder_min: int
    extruder_max: int
    bed_min: int
    bed_max: int

    @classmethod
    def defaults_for(cls, material_type: MaterialType) -> "TemperatureRange":
        return cls(*_DEFAULT_TEMPS[material_type])


_PLA_TEMPS = (200, 220, 50, 60)
_DEFAULT_TEMPS: Dict[MaterialType, Tuple[int, int, int, int]] = {
    MaterialType.PLA: _PLA_TEMPS,
    MaterialType.PLA_MATTE: _PLA_TEMPS,
    MaterialType.PLA_SILK: _PLA_TEMPS,
    MaterialType.PLA_PLUS: (205, 225, 50, 70),
    MaterialType.ABS: (230, 250, 80, 100),
    MaterialType.PETG: (220, 250, 70, 80),
    MaterialType.TPU: (210, 230, 40, 60),
    MaterialType.NYLON: (240, 260, 70, 90),
    MaterialType.ASA: (240, 260, 90, 110),
    MaterialType.PC: (260, 280, 90, 110),
    MaterialType.PVA: (180, 200, 45, 60),
    MaterialType.HIPS: (230, 245, 90, 110),
}


@dataclass(frozen=True)
class MaterialRecord:
    """The record written to / read from a tag."""
    material_type: MaterialType
    brand: str
    sku: str
    temperatures: TemperatureRange
    color: Color
    spool_size: SpoolSize

    @property
    def length_m(self) -> int:
        return self.spool_size.length_m


# ---------- Profile catalog ----------

ProfileKey = Tuple[str, MaterialType, str]


@dataclass(frozen=True)
class FilamentProfile:
    name: str
    brand: str
    material_type: MaterialType
    sku: str
    temperatures: TemperatureRange
    custom: bool = False

    @property
    def key(self) -> ProfileKey:
        return (self.brand, self.material_type, self.sku)

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.material_type.value} {self.sku}".strip()


def _open_profile_file(path: Optional[Path]):
    if path:
        return open(path, "r", encoding="utf-8")
    # packaged default
    return (resources.files(__package__).joinpath("profiles.ini")
            .open("r", encoding="utf-8"))


def _to_int(text: str) -> Optional[int]:
    try:
        return int(text)
    except (TypeError, ValueError):
        return None


def load_profiles(path: Optional[Path] = None, *, custom: bool = False) -> List[FilamentProfile]:
    """
    Parse a profile file in the form
      SKU;BRAND;MATERIAL;NOZZLE_MIN;NOZZLE_MAX;BED_MIN;BED_MAX[;NAME]
    '#' lines and an optional header row are skipped. Missing temperatures fall
    back to the material defaults.
    """
    profiles: List[FilamentProfile] = []

    with _open_profile_file(path) as f:
        # ignore empty lines / comments
        def non_comment_lines():
            for line in f:
                s = line.strip()
                if not s or s.startswith("#"):
                    continue
                yield line

        for row in csv.reader(non_comment_lines(), delimiter=";"):
            parts = [c.strip() for c in row] + [""] * 8
            if parts[0].upper() == "SKU":
                continue
            sku, brand, material = parts[0], parts[1], parts[2]
            if not brand or not material:
                log.warning("Skipping incomplete profile row: %s", ";".join(row))
                continue
            mtype = MaterialType.from_label(material)
            temps = [_to_int(p) for p in parts[3:7]]
            if any(t is None for t in temps):
                t = TemperatureRange.defaults_for(mtype)
            else:
                t = TemperatureRange(*temps)
            name = parts[7] or f"{brand} {mtype.value}"
            profiles.append(FilamentProfile(name=name, brand=brand, material_type=mtype,
                                            sku=sku, temperatures=t, custom=custom))
    return profiles


def profile_line(p: FilamentProfile) -> str:
    t = p.temperatures
    return ";".join([p.sku, p.brand, p.material_type.value,
                     str(t.extruder_min), str(t.extruder_max),
                     str(t.bed_min), str(t.bed_max), p.name])


class ProfileCatalog:
    """
    Built-in profiles plus user defined ones.

    The custom file is appended to on ``add`` and rewritten on ``remove``.
    Without a custom path the catalog only keeps new profiles in memory.
    """
    def __init__(self, builtin: Iterable[FilamentProfile] = (),
                 custom_path: Optional[Path] = None):
        self._profiles: List[FilamentProfile] = list(builtin)
        self._custom_path = Path(custom_path) if custom_path else None
        if self._custom_path and self._custom_path.exists():
            self._profiles.extend(load_profiles(self._custom_path, custom=True))

    @classmethod
    def load(cls, custom_path: Optional[Path] = None) -> "ProfileCatalog":
        return cls(load_profiles(None), custom_path)

    @property
    def profiles(self) -> List[FilamentProfile]:
        return list(self._profiles)

    def find(self, brand: str, material_type: MaterialType, sku: str) -> Optional[FilamentProfile]:
        key = (brand, material_type, sku)
        for p in self._profiles:
            if p.key == key:
                return p
        return None

    def add(self, profile: FilamentProfile) -> FilamentProfile:
        profile = replace(profile, custom=True)
        self._profiles.append(profile)
        if self._custom_path:
            txt = (self._custom_path.read_text(encoding="utf-8", errors="ignore")
                   if self._custom_path.exists() else "")
            self._custom_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._custom_path, "a", encoding="utf-8") as f:
                f.write(("" if txt.endswith("\n") or txt == "" else "\n") + profile_line(profile) + "\n")
        return profile

    def remove(self, profile: FilamentProfile) -> bool:
        """Remove a custom profile. Built-in profiles are never removed."""
        if not profile.custom or profile not in self._profiles:
            return False
        self._profiles.remove(profile)
        if self._custom_path:
            lines = [profile_line(p) for p in self._profiles if p.custom]
            self._custom_path.write_text("".join(ln + "\n" for ln in lines), encoding="utf-8")
        return True

    def resolve(self, record: MaterialRecord) -> FilamentProfile:
        """
        Map a decoded record back to a catalog entry by (brand, type, sku).
        A known profile is returned with the tag's temperatures; an unknown one
        is registered as a new custom profile.
        """
        found = self.find(record.brand, record.material_type, record.sku)
        if found is not None:
            log.debug("Found existing profile: %s", found.display_name)
            return replace(found, temperatures=record.temperatures)
        name = f"{record.brand} {record.material_type.value} {record.sku}".strip()
        log.info("Created new custom profile from tag: %s", name)
        return self.add(FilamentProfile(name=name, brand=record.brand,
                                        material_type=record.material_type, sku=record.sku,
                                        temperatures=record.temperatures, custom=True))

    @staticmethod
    def record_for(profile: FilamentProfile, color: Color, spool_size: SpoolSize) -> MaterialRecord:
        return MaterialRecord(material_type=profile.material_type, brand=profile.brand,
                              sku=profile.sku, temperatures=profile.temperatures,
                              color=color, spool_size=spool_size)
