# AceRfidTaggerQT5.py
# Launcher script for frozen builds (freeze_setup.py).
import sys

from ace_rfid_qt5.app import main

if __name__ == "__main__":
    sys.exit(main())
