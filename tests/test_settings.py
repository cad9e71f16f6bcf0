# tests/test_settings.py
import logging

from ace_rfid_qt5.config.filaments import SpoolSize
from ace_rfid_qt5.config.settings import AppSettings, TemperatureUnit


def test_missing_file_gives_defaults(tmp_path):
    s = AppSettings.load(tmp_path / "none.ini")
    assert s == AppSettings()
    assert s.default_spool_size is SpoolSize.KG_1
    assert s.auto_verify
    assert s.page_delay_ms == 5
    assert s.release_delay_ms == 1500
    assert s.password_bytes() == [b"\xff\xff\xff\xff", b"\x00\x00\x00\x00"]


def test_save_and_load(tmp_path):
    path = tmp_path / "settings.ini"
    s = AppSettings(default_spool_size=SpoolSize.KG_3, auto_verify=False,
                    temperature_unit=TemperatureUnit.FAHRENHEIT, page_delay_ms=10,
                    session_timeout_s=12.5, passwords=["12345678"],
                    custom_profiles=tmp_path / "custom.ini")
    s.save(path)
    assert AppSettings.load(path) == s


def test_invalid_value_keeps_default(tmp_path, caplog):
    path = tmp_path / "settings.ini"
    path.write_text("[general]\nauto_verify = maybe\ndefault_spool_size = 2 KG\n"
                    "[nfc]\npage_delay_ms = fast\n", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        s = AppSettings.load(path)
    assert s.auto_verify is True
    assert s.page_delay_ms == 5
    assert s.default_spool_size is SpoolSize.KG_2
    assert "auto_verify" in caplog.text


def test_reset():
    s = AppSettings(show_debug_info=True, passwords=[])
    s.reset()
    assert s == AppSettings()


def test_bad_password_entries_are_skipped():
    s = AppSettings(passwords=["FFFFFFFF", "xyz"])
    assert s.password_bytes() == [b"\xff\xff\xff\xff"]


def test_temperature_unit():
    assert TemperatureUnit.CELSIUS.convert(200) == 200
    assert TemperatureUnit.FAHRENHEIT.convert(200) == 392
    assert TemperatureUnit.FAHRENHEIT.convert(211) == 411
    assert TemperatureUnit.FAHRENHEIT.format(0) == "32°F"
    assert TemperatureUnit.CELSIUS.format(60) == "60°C"
