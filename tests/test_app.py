# tests/test_app.py
import pytest

from ace_rfid_qt5.app import (
    build_parser, build_request, describe_outcome, outcome_ok, ring_feedback, select_profile,
)
from ace_rfid_qt5.config.filaments import MaterialType, ProfileCatalog, SpoolSize
from ace_rfid_qt5.config.settings import AppSettings, TemperatureUnit
from ace_rfid_qt5.nfc import codec
from ace_rfid_qt5.nfc.errors import ErrorKind
from ace_rfid_qt5.nfc.lock import LockVerdict
from ace_rfid_qt5.nfc.session import (
    Failed, Operation, ReadOk, VerifyMismatch, VerifyOk, WriteOk,
)


@pytest.fixture
def catalog():
    return ProfileCatalog.load()


def test_write_request_from_profile(catalog):
    args = build_parser().parse_args(["write", "--profile", "anycubic petg", "--color", "#FF0000",
                                      "--spool", "2 KG"])
    req = build_request(args, AppSettings(), catalog)
    assert req.operation is Operation.WRITE
    assert req.record.sku == "AHPETG-001"
    assert req.record.color.to_hex() == "#FF0000FF"
    assert req.record.spool_size is SpoolSize.KG_2
    assert req.passwords == ()


def test_write_request_with_passwords(catalog):
    args = build_parser().parse_args(["write", "--password", "11 22 33 44", "--try-default-passwords"])
    req = build_request(args, AppSettings(), catalog)
    assert req.passwords == (b"\x11\x22\x33\x44", b"\xff\xff\xff\xff", b"\x00\x00\x00\x00")
    assert req.record.brand == "Generic"
    assert req.record.spool_size is SpoolSize.KG_1


def test_unknown_brand_gets_material_defaults(catalog):
    args = build_parser().parse_args(["write", "--brand", "Acme", "--type", "PETG"])
    profile = select_profile(catalog, args)
    assert profile.material_type is MaterialType.PETG
    assert profile.temperatures.extruder_min == 220


def test_unknown_profile_exits(catalog):
    args = build_parser().parse_args(["write", "--profile", "nope"])
    with pytest.raises(SystemExit):
        select_profile(catalog, args)


def test_describe_read(catalog, record):
    text = describe_outcome(ReadOk(codec.encode(record)), TemperatureUnit.FAHRENHEIT, catalog)
    assert "Anycubic PETG" in text
    assert "428°F" in text
    assert "1 KG (330 m)" in text


def test_describe_blank_tag():
    assert "blank" in describe_outcome(ReadOk(bytes(144)))


def test_describe_failure_has_remedy():
    verdict = LockVerdict(False, False, False, auth0=4)
    text = describe_outcome(Failed(ErrorKind.PASSWORD_REQUIRED, "Write failed: tag is password protected",
                                   verdict=verdict))
    assert "--password" in text
    assert "required from page 4" in text


def test_outcome_ok():
    assert outcome_ok(WriteOk(bytes(144)))
    assert outcome_ok(VerifyOk(112))
    assert not outcome_ok(VerifyMismatch(1, 50, 112))
    assert not outcome_ok(Failed(ErrorKind.BUSY, "busy"))


def test_ring_feedback(capsys):
    ring_feedback([WriteOk(bytes(144)), VerifyOk(112)])
    assert capsys.readouterr().out == "\a"
    ring_feedback([WriteOk(bytes(144)), VerifyMismatch(1, 50, 112)])
    assert capsys.readouterr().out == "\a\a"


def test_ring_feedback_disabled(capsys):
    ring_feedback([Failed(ErrorKind.TRANSPORT, "lost")], enabled=False)
    assert capsys.readouterr().out == ""
