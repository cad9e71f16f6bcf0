# tests/test_lock.py
from dataclasses import replace

import pytest

from ace_rfid_qt5.nfc.errors import ErrorKind, TransportError
from ace_rfid_qt5.nfc.lock import LockVerdict, build_verdict, classify_failure, diagnose

from conftest import FakeTag

STATIC_OPEN = bytes((0x44, 0x48, 0x00, 0x00))
DYN_OPEN = bytes((0x00, 0x00, 0x00, 0xBD))
CFG1 = bytes((0x00, 0x05, 0x00, 0x00))


def _cfg0(auth0: int) -> bytes:
    return bytes((0x04, 0x00, 0x00, auth0))


def test_unprotected_tag():
    v = build_verdict(STATIC_OPEN, DYN_OPEN, _cfg0(0xFF), CFG1)
    assert not v.pages_locked
    assert not v.lock_bits_locked
    assert not v.otp_locked
    assert not v.dynamic_locked
    assert not v.password_required
    assert v.password_page is None
    assert classify_failure(v) is ErrorKind.UNKNOWN


def test_auth0_only_changes_password_fields():
    open_ = build_verdict(STATIC_OPEN, DYN_OPEN, _cfg0(0xFF), CFG1)
    protected = build_verdict(STATIC_OPEN, DYN_OPEN, _cfg0(0x05), CFG1)
    assert not open_.password_required
    assert protected.password_required
    assert protected.password_page == 5
    assert replace(protected, auth0=0xFF) == open_


def test_build_verdict_is_pure():
    args = (STATIC_OPEN, DYN_OPEN, _cfg0(0x10), CFG1)
    assert build_verdict(*args) == build_verdict(*args)


@pytest.mark.parametrize("bits, field", [
    (0x08, "pages_locked"),
    (0x01, "lock_bits_locked"),
    (0x02, "otp_locked"),
])
def test_static_lock_bits(bits, field):
    v = build_verdict(bytes((0x44, 0x48, bits, 0x00)), DYN_OPEN, _cfg0(0xFF), CFG1)
    flags = {"pages_locked": v.pages_locked, "lock_bits_locked": v.lock_bits_locked,
             "otp_locked": v.otp_locked}
    assert flags.pop(field) is True
    assert not any(flags.values())


def test_classify_priority():
    everything = LockVerdict(pages_locked=True, lock_bits_locked=True, otp_locked=True,
                             dynamic_lock=(0, 0, 0), auth0=4, access=0)
    assert classify_failure(everything) is ErrorKind.PASSWORD_REQUIRED
    assert classify_failure(replace(everything, auth0=0xFF)) is ErrorKind.PAGES_LOCKED
    only_dyn = LockVerdict(False, False, False, dynamic_lock=(0x01, 0, 0))
    assert classify_failure(only_dyn) is ErrorKind.PAGES_LOCKED
    assert classify_failure(LockVerdict(False, True, True)) is ErrorKind.PERMANENTLY_LOCKED
    assert classify_failure(LockVerdict(False, False, True)) is ErrorKind.OTP_LOCKED


def test_diagnose_reads_all_pages():
    v = diagnose(FakeTag(static_lock=0x08, auth0=0x04))
    assert v.pages_locked
    assert v.dynamic_lock == (0, 0, 0)
    assert v.auth0 == 0x04
    assert v.access == 0x00


def test_diagnose_small_tag_without_dynamic_lock():
    v = diagnose(FakeTag(fail_read={40}))
    assert v.dynamic_lock is None
    assert v.auth0 == 0xFF
    assert "not available" in v.describe()


def test_diagnose_without_config_pages():
    tag = FakeTag(fail_read={41})
    v = diagnose(tag)
    assert v.auth0 is None
    assert v.access is None
    assert not v.password_required


def test_diagnose_static_page_failure_propagates():
    with pytest.raises(TransportError):
        diagnose(FakeTag(fail_read={2}))


def test_describe():
    text = build_verdict(bytes((0, 0, 0x09, 0)), DYN_OPEN, _cfg0(0x04), CFG1).describe()
    assert "Pages 3-15: LOCKED" in text
    assert "PERMANENTLY LOCKED" in text
    assert "required from page 4" in text
