# tests/test_filaments.py
import pytest

from ace_rfid_qt5.config.filaments import (
    FilamentProfile, MaterialRecord, MaterialType, ProfileCatalog, SpoolSize, TemperatureRange,
    load_profiles,
)
from ace_rfid_qt5.utils.colors import Color


def test_builtin_profiles():
    catalog = ProfileCatalog.load()
    brands = [p.brand for p in catalog.profiles]
    assert brands.count("Anycubic") == 5
    assert brands.count("Generic") == len(MaterialType)
    assert not any(p.custom for p in catalog.profiles)


def test_find():
    catalog = ProfileCatalog.load()
    p = catalog.find("Anycubic", MaterialType.PETG, "AHPETG-001")
    assert p.temperatures == TemperatureRange(220, 250, 70, 80)
    assert catalog.find("Anycubic", MaterialType.PETG, "nope") is None


def test_resolve_known_profile_takes_tag_temperatures():
    catalog = ProfileCatalog.load()
    rec = MaterialRecord(MaterialType.PLA, "Generic", "", TemperatureRange(190, 210, 55, 65),
                         Color(1, 2, 3), SpoolSize.KG_1)
    p = catalog.resolve(rec)
    assert p.name == "Generic PLA"
    assert p.temperatures == TemperatureRange(190, 210, 55, 65)
    assert len(catalog.profiles) == 17


def test_resolve_unknown_creates_custom_profile(tmp_path):
    path = tmp_path / "custom.ini"
    catalog = ProfileCatalog.load(path)
    rec = MaterialRecord(MaterialType.ASA, "Acme", "X-1", TemperatureRange(250, 260, 95, 100),
                         Color(1, 2, 3), SpoolSize.KG_2)
    p = catalog.resolve(rec)
    assert p.custom
    assert p.key == ("Acme", MaterialType.ASA, "X-1")
    assert catalog.find("Acme", MaterialType.ASA, "X-1") == p

    reloaded = ProfileCatalog.load(path)
    assert reloaded.find("Acme", MaterialType.ASA, "X-1") == p


def test_remove_custom_only(tmp_path):
    path = tmp_path / "custom.ini"
    catalog = ProfileCatalog.load(path)
    custom = catalog.add(FilamentProfile("Mine", "Acme", MaterialType.TPU, "T",
                                         TemperatureRange.defaults_for(MaterialType.TPU)))
    builtin = catalog.find("Generic", MaterialType.TPU, "")
    assert not catalog.remove(builtin)
    assert catalog.remove(custom)
    assert catalog.find("Acme", MaterialType.TPU, "T") is None
    assert load_profiles(path, custom=True) == []


def test_load_profiles_skips_comments_and_fills_temps(tmp_path):
    path = tmp_path / "p.ini"
    path.write_text("# comment\nSKU;BRAND;MATERIAL\nS1;Acme;PETG\n;;\n", encoding="utf-8")
    profiles = load_profiles(path)
    assert len(profiles) == 1
    assert profiles[0].temperatures == TemperatureRange.defaults_for(MaterialType.PETG)
    assert profiles[0].name == "Acme PETG"


def test_record_for():
    p = ProfileCatalog.load().find("Generic", MaterialType.PLA, "")
    rec = ProfileCatalog.record_for(p, Color(9, 9, 9), SpoolSize.KG_0_5)
    assert rec.brand == "Generic"
    assert rec.length_m == 165


def test_spool_sizes():
    assert SpoolSize.from_length(990) is SpoolSize.KG_3
    assert SpoolSize.from_length(123) is SpoolSize.KG_1
    assert SpoolSize.from_label("0.75 kg") is SpoolSize.KG_0_75
    assert SpoolSize.smallest() is SpoolSize.KG_0_25
    with pytest.raises(ValueError):
        SpoolSize.from_label("7 KG")


def test_material_type_fallback():
    assert MaterialType.from_label("PLA Silk") is MaterialType.PLA_SILK
    assert MaterialType.from_label("pla silk") is MaterialType.PLA
    assert MaterialType.from_label("Wood") is MaterialType.PLA


def test_color_from_hex():
    assert Color.from_hex("#FF000080") == Color(255, 0, 0, 0x80)
    assert Color.from_hex("00ff00") == Color(0, 255, 0, 255)
    assert Color(1, 2, 3).to_hex() == "#010203FF"
    with pytest.raises(ValueError):
        Color.from_hex("#12345")
    with pytest.raises(ValueError):
        Color.from_hex("#GGGGGG")
