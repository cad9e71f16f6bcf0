# freeze_setup.py
# Frozen build of the ace-rfid command line tool (cx_Freeze).
#   python freeze_setup.py build        -> build/exe.<platform>/
#   python freeze_setup.py bdist_mac    -> build/AceRfidTaggerQT5-<version>.app
import sys
from cx_Freeze import setup, Executable

sys.path.insert(0, "src")
from ace_rfid_qt5.constants import APP_TITLE, APP_VERSION  # noqa: E402

# packaged data that must sit next to the modules
include_files = [
    ("src/ace_rfid_qt5/config/profiles.ini", "ace_rfid_qt5/config/profiles.ini"),
]

build_exe_options = dict(
    excludes=["tkinter", "tests", "PyQt5.QtWidgets", "PyQt5.QtGui"],
    includes=["PyQt5.QtCore", "smartcard"],
    packages=["ace_rfid_qt5"],
    include_files=include_files,
    optimize=1,
)

bdist_mac_options = {
    "bundle_name": APP_TITLE,
    "iconfile": "packaging/macos/app.icns",
    "custom_info_plist": {
        "CFBundleIdentifier": "com.yourorg.acerfidtaggerqt5",
        "CFBundleDisplayName": APP_TITLE,
        "LSMinimumSystemVersion": "12.0",
    },
}

executables = [
    Executable(
        script="AceRfidTaggerQT5.py",
        target_name="ace-rfid",
        base=None,  # console tool on every platform
    )
]

setup(
    name=APP_TITLE,
    version=APP_VERSION,
    description="Command line NFC tagger for ACE filament spools",
    options={"build_exe": build_exe_options, "bdist_mac": bdist_mac_options},
    executables=executables,
)
