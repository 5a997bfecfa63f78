from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path


# Name of the UPX binary in every layout we look in.
UPX_EXE_NAME = "upx.exe" if os.name == "nt" else "upx"


def app_dir() -> Path:
    """
    Directory of the running application.

    Frozen builds (PyInstaller and friends) report the bundle executable in
    sys.executable; source runs use the entry script's directory.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent

    script = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if script:
        return Path(script).resolve().parent
    return Path.cwd()


def temp_root() -> Path:
    return Path(tempfile.gettempdir())
