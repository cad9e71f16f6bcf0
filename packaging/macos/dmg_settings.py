# packaging/macos/dmg_settings.py
# dmgbuild settings for the frozen tool. Build first:
#   python freeze_setup.py bdist_mac
#   dmgbuild -s packaging/macos/dmg_settings.py "AceRfidTaggerQT5" dist/AceRfidTaggerQT5.dmg

import os

volume_name = "AceRfidTaggerQT5"
format = "UDZO"

window_rect = ((200, 200), (540, 380))
default_view = "icon-view"
icon_size = 128
text_size = 12

symlinks = {"Applications": "/Applications"}

# explicit override: -D APP_PATH="build/AceRfidTaggerQT5-0.4.0.app"
APP_PATH = globals().get("APP_PATH")


def _find_app_under_build():
    # bdist_mac output first, then build/exe.macosx-*/<Name>.app
    for entry in sorted(os.listdir("build")):
        if entry.endswith(".app"):
            return os.path.join("build", entry)
    for root, dirs, _ in os.walk("build"):
        for d in dirs:
            if d.endswith(".app"):
                return os.path.join(root, d)
    raise FileNotFoundError(
        "No .app found under 'build/'. Build first with:\n"
        "  python freeze_setup.py bdist_mac"
    )


if not APP_PATH:
    APP_PATH = _find_app_under_build()

APP_NAME = os.path.basename(APP_PATH)

files = [(APP_PATH, APP_NAME)]

icon_locations = {
    APP_NAME: (140, 200),
    "Applications": (400, 200),
}
