# src/ace_rfid_qt5/constants.py
# Tag memory layout and command constants (NTAG21x, 4 bytes per page).

APP_TITLE = "AceRfidTaggerQT5"
APP_VERSION = "0.4.0"

PAGE_SIZE = 4
BASE_PAGE = 0x04            # first user page, holds the magic marker

IMAGE_SIZE = 144            # full record image exchanged with the codec
DATA_SIZE = 112             # meaningful prefix of the image
DATA_PAGES = DATA_SIZE // PAGE_SIZE     # 28 pages written by write/format
READ_PAGES = IMAGE_SIZE // PAGE_SIZE    # 36 pages read back (data + margin)

# --- record layout (byte offsets inside the image) ---
MAGIC = bytes((0x7B, 0x00, 0x65, 0x00))
RESERVED = bytes((0xE8, 0x03, 0x00, 0x00))
TEXT_SLOT = 20
OFF_MAGIC = 0
OFF_SKU = 4
OFF_BRAND = 24
OFF_TYPE = 44
OFF_COLOR = 64
OFF_EXTRUDER = 80
OFF_BED = 100
OFF_FILAMENT = 104
OFF_RESERVED = 108
DIAMETER_CENTI_MM = 175     # 1.75 mm

# --- configuration / lock pages ---
CC_PAGE = 0x03
CAPABILITY_CONTAINER = bytes((0xE1, 0x10, 0x3E, 0x00))
STATIC_LOCK_PAGE = 0x02
DYNAMIC_LOCK_PAGE = 0x28    # 40
CFG0_PAGE = 0x29            # 41, AUTH0 in byte 3
CFG1_PAGE = 0x2A            # 42, ACCESS in byte 0
AUTH0_DISABLED = 0xFF

DEFAULT_PASSWORDS = ("FFFFFFFF", "00000000")
