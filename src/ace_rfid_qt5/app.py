# src/ace_rfid_qt5/app.py
import sys, traceback
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from PyQt5 import QtCore

from .config.filaments import (
    FilamentProfile, MaterialType, ProfileCatalog, SpoolSize, TemperatureRange,
)
from .config.settings import AppSettings, TemperatureUnit
from .constants import APP_TITLE, APP_VERSION
from .nfc import codec
from .nfc.auth import parse_password
from .nfc.errors import DataErrorKind, ErrorKind, TransportError
from .nfc.pcsc import PcscLink, list_readers
from .nfc.session import (
    Failed, FormatOk, LockReport, ReadOk, SessionRequest, VerifyMismatch, VerifyOk, WriteOk,
)
from .nfc.worker import TagWorker
from .utils.colors import Color

log = logging.getLogger(__name__)

_REMEDY = {
    ErrorKind.PASSWORD_REQUIRED: "This tag requires a password for writing.\n"
                                 "Try --password, or use a blank NTAG215 tag instead.",
    ErrorKind.PAGES_LOCKED: "Some pages are locked.\n"
                            "Run 'lock' for details. Try 'format' first, or use a different tag.",
    ErrorKind.PERMANENTLY_LOCKED: "Lock bits cannot be changed. Use a different blank tag.",
    ErrorKind.OTP_LOCKED: "The OTP area is locked. Use a different blank tag.",
    ErrorKind.TRANSPORT: "Keep the tag on the reader until the operation finishes.",
    ErrorKind.NOTHING_TO_VERIFY: "Write a tag first.",
    ErrorKind.BUSY: "Wait for the running operation to finish.",
    ErrorKind.UNKNOWN: "Possible causes: tag connection lost, tag incompatibility or unknown "
                       "write protection.\nTry: 1. 'lock' 2. 'format' 3. a blank NTAG215 tag",
}

_DATA_ERROR_TEXT = {
    DataErrorKind.TOO_SHORT: "Incomplete read. Hold the tag still and try again.",
    DataErrorKind.BLANK_TAG: "Tag is blank (never written).",
    DataErrorKind.MALFORMED: "Tag contains unreadable text fields.",
}


# ---------- rendering ----------

def fmt_hex(b: bytes) -> str:
    return " ".join(f"{x:02X}" for x in b)


def fmt_ascii(b: bytes) -> str:
    return "".join(chr(x) if 32 <= x < 127 else "." for x in b)


def describe_record(record, unit: TemperatureUnit = TemperatureUnit.CELSIUS,
                    profile: Optional[FilamentProfile] = None) -> str:
    t = record.temperatures
    lines = [
        f"Profile:   {profile.display_name if profile else '-'}",
        f"Brand:     {record.brand}",
        f"Material:  {record.material_type.value}",
        f"SKU:       {record.sku or '-'}",
        f"Color:     {record.color.to_hex()}",
        f"Extruder:  {unit.format(t.extruder_min)} - {unit.format(t.extruder_max)}",
        f"Bed:       {unit.format(t.bed_min)} - {unit.format(t.bed_max)}",
        f"Spool:     {record.spool_size.value} ({record.length_m} m)",
    ]
    return "\n".join(lines)


def describe_outcome(outcome, unit: TemperatureUnit = TemperatureUnit.CELSIUS,
                     catalog: Optional[ProfileCatalog] = None) -> str:
    """Human readable text for a session outcome, with remediation hints on failure."""
    if isinstance(outcome, ReadOk):
        record, err = codec.decode(outcome.data)
        if err is not None:
            return _DATA_ERROR_TEXT[err]
        profile = catalog.resolve(record) if catalog is not None else None
        return "Tag read successfully\n" + describe_record(record, unit, profile)
    if isinstance(outcome, WriteOk):
        return "Tag written successfully"
    if isinstance(outcome, FormatOk):
        return "Tag formatted successfully"
    if isinstance(outcome, LockReport):
        return "Lock Status:\n" + outcome.verdict.describe()
    if isinstance(outcome, VerifyOk):
        return f"Verification OK: all {outcome.compared} bytes match"
    if isinstance(outcome, VerifyMismatch):
        return (f"Verification failed: {outcome.count} of {outcome.compared} bytes differ, "
                f"first at byte {outcome.first_offset}.\nThe write itself was accepted by the tag.")
    if isinstance(outcome, Failed):
        text = f"{outcome.message}\n\n{_REMEDY[outcome.kind]}"
        if outcome.verdict is not None:
            text += "\n\nLock Status:\n" + outcome.verdict.describe()
        return text
    return repr(outcome)


def outcome_ok(outcome) -> bool:
    return not isinstance(outcome, (Failed, VerifyMismatch))


def ring_feedback(outcomes, enabled: bool = True) -> None:
    """Terminal bell as the success / error cue: one ring on success, two on failure."""
    if not enabled or not outcomes:
        return
    ok = all(outcome_ok(o) for o in outcomes)
    sys.stdout.write("\a" if ok else "\a\a")
    sys.stdout.flush()


# ---------- argument handling ----------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ace-rfid", description=f"{APP_TITLE} {APP_VERSION}: "
                                "read and write ACE filament spool tags via PC/SC.")
    p.add_argument("--config", type=Path, default=None, help="Settings file (default: ~/.ace_rfid_qt5/settings.ini)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--timeout", type=float, default=None, help="Seconds to wait for a tag")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("readers", help="List PC/SC readers")
    rd = sub.add_parser("read", help="Read and decode a tag")
    rd.add_argument("--raw", action="store_true", help="Also print the raw image")

    wr = sub.add_parser("write", help="Write a filament profile to a tag")
    wr.add_argument("--profile", help="Catalog profile name (see 'profiles')")
    wr.add_argument("--brand", default="Generic")
    wr.add_argument("--type", dest="material", default=MaterialType.PLA.value,
                    choices=[t.value for t in MaterialType])
    wr.add_argument("--sku", default="")
    wr.add_argument("--color", default="#FFFFFFFF", help="#RRGGBB or #RRGGBBAA")
    wr.add_argument("--spool", default=None, choices=[s.value for s in SpoolSize])
    wr.add_argument("--password", action="append", default=[],
                    help="Authenticate with this password before writing (repeatable)")
    wr.add_argument("--try-default-passwords", action="store_true",
                    help="Authenticate with the passwords from the settings file")
    wr.add_argument("--no-verify", action="store_true", help="Skip the read-back verification")

    sub.add_parser("format", help="Blank the data area of a tag")
    sub.add_parser("lock", help="Show lock and password status")
    sub.add_parser("profiles", help="List catalog profiles")

    dp = sub.add_parser("dump", help="Dump raw pages")
    dp.add_argument("--start", type=int, default=0, help="Start page (default: 0)")
    dp.add_argument("--end", type=int, default=44, help="End page inclusive (default: 44)")
    dp.add_argument("--outfile", type=Path, default=None, help="Write the pages to a binary file")
    return p


def select_profile(catalog: ProfileCatalog, args) -> FilamentProfile:
    if args.profile:
        wanted = args.profile.strip().lower()
        for prof in catalog.profiles:
            if wanted in (prof.name.lower(), prof.display_name.lower()):
                return prof
        raise SystemExit(f"Unknown profile: {args.profile!r}")
    mtype = MaterialType.from_label(args.material)
    found = catalog.find(args.brand, mtype, args.sku)
    if found is not None:
        return found
    return FilamentProfile(name=f"{args.brand} {mtype.value}", brand=args.brand,
                           material_type=mtype, sku=args.sku,
                           temperatures=TemperatureRange.defaults_for(mtype), custom=True)


def build_request(args, settings: AppSettings, catalog: ProfileCatalog) -> SessionRequest:
    if args.command == "read":
        return SessionRequest.read()
    if args.command == "format":
        return SessionRequest.format()
    if args.command == "lock":
        return SessionRequest.check_lock()
    # write
    profile = select_profile(catalog, args)
    try:
        color = Color.from_hex(args.color)
    except ValueError as e:
        raise SystemExit(str(e))
    spool = SpoolSize.from_label(args.spool) if args.spool else settings.default_spool_size
    passwords: List[bytes] = []
    try:
        passwords.extend(parse_password(p) for p in args.password)
    except ValueError as e:
        raise SystemExit(str(e))
    if args.try_default_passwords:
        passwords.extend(settings.password_bytes())
    return SessionRequest.write(ProfileCatalog.record_for(profile, color, spool), passwords=passwords)


# ---------- commands ----------

def run_session(request: SessionRequest, settings: AppSettings, *, auto_verify: bool = True) -> list:
    """Run one request (plus a chained verify) inside a Qt event loop; return all outcomes."""
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv[:1])
    link = PcscLink(poll_interval_s=settings.poll_interval_s)
    worker = TagWorker(link, auto_verify=auto_verify,
                       release_delay_ms=settings.release_delay_ms,
                       page_delay_ms=settings.page_delay_ms,
                       session_timeout_s=settings.session_timeout_s)
    outcomes = []
    worker.outcomeReady.connect(outcomes.append)
    worker.logMessage.connect(lambda m: print(f"[INFO] {m}"))
    worker.idle.connect(app.quit)
    QtCore.QTimer.singleShot(0, lambda: worker.submit(request))
    app.exec_()
    return outcomes


def cmd_readers() -> int:
    rlist = list_readers()
    if not rlist:
        print("[ERROR] No PC/SC reader found. On macOS: `brew install pcsc-lite` and `brew services start pcscd`.")
        return 1
    for i, r in enumerate(rlist):
        print(f"{i}: {r}")
    return 0


def cmd_profiles(catalog: ProfileCatalog, unit: TemperatureUnit) -> int:
    for prof in catalog.profiles:
        t = prof.temperatures
        tag = " (custom)" if prof.custom else ""
        print(f"{prof.name:<28} {prof.sku or '-':<14} "
              f"{unit.format(t.extruder_min)}-{unit.format(t.extruder_max)}  "
              f"bed {unit.format(t.bed_min)}-{unit.format(t.bed_max)}{tag}")
    return 0


def cmd_dump(args, settings: AppSettings) -> int:
    if args.start < 0 or args.end < args.start:
        print("[ERROR] Invalid range. Ensure 0 <= start <= end.")
        return 1
    link = PcscLink(poll_interval_s=settings.poll_interval_s)
    out = bytearray()
    try:
        with link.open(settings.session_timeout_s) as tag:
            print(f"UID: {fmt_hex(tag.identify())}")
            for p in range(args.start, args.end + 1):
                try:
                    data4 = tag.read_page(p)
                except TransportError as e:
                    print(f"{p:02d}: READ ERROR ({e})")
                    data4 = b"\x00\x00\x00\x00"
                else:
                    print(f"{p:02d}: {fmt_hex(data4)}   |{fmt_ascii(data4)}|")
                out.extend(data4)
    except TransportError as e:
        print(f"[ERROR] {e}")
        return 1
    if args.outfile:
        args.outfile.write_bytes(bytes(out))
        print(f"\nSaved {len(out)} bytes to {args.outfile}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = AppSettings.load(args.config)
    if args.timeout is not None:
        settings.session_timeout_s = args.timeout
    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or settings.show_debug_info) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    catalog = ProfileCatalog.load(settings.custom_profiles)

    if args.command == "readers":
        return cmd_readers()
    if args.command == "profiles":
        return cmd_profiles(catalog, settings.temperature_unit)
    if args.command == "dump":
        return cmd_dump(args, settings)

    request = build_request(args, settings, catalog)
    auto_verify = settings.auto_verify and not getattr(args, "no_verify", False)
    outcomes = run_session(request, settings, auto_verify=auto_verify)
    for outcome in outcomes:
        print(describe_outcome(outcome, settings.temperature_unit, catalog))
        if args.command == "read" and args.raw and isinstance(outcome, ReadOk):
            for i in range(0, len(outcome.data), 16):
                print(f"{i:03d}: {fmt_hex(outcome.data[i:i + 16])}")
    ring_feedback(outcomes, settings.feedback)
    return 0 if outcomes and all(outcome_ok(o) for o in outcomes) else 1


def _global_excepthook(exctype, value, tb):
    text = "".join(traceback.format_exception(exctype, value, tb))
    # Terminal
    print(text, file=sys.stderr)
    with open("qt_error.log", "a", encoding="utf-8") as f:
        f.write(text + "\n")

sys.excepthook = _global_excepthook
if __name__ == "__main__":
    sys.exit(main())
