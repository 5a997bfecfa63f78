from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .errors import ToolNotFoundError
from .paths import UPX_EXE_NAME, app_dir, temp_root


logger = logging.getLogger(__name__)

# Portable builds ship UPX next to this module and unpack it on first use.
PAYLOAD_PATH = Path(__file__).resolve().parent / "payload" / UPX_EXE_NAME

EXTRACT_DIR_NAME = "upx-gui-portable"

PayloadLoader = Callable[[], Optional[bytes]]


def load_bundled_payload() -> Optional[bytes]:
    try:
        return PAYLOAD_PATH.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Cannot read bundled UPX at %s: %s", PAYLOAD_PATH, e)
        return None


class ToolLocator:
    """
    Finds the UPX executable.

    Lookup order, first hit wins:
      1. <app dir>/_up_/upx/<exe>        (installed layout)
      2. <cwd>/../upx/<exe>              (development checkout)
      3. embedded payload unpacked under <temp>/upx-gui-portable/

    The extraction outcome is computed once per locator and kept, even when
    it is None.
    """

    def __init__(
        self,
        exe_dir: Optional[Path] = None,
        cwd: Optional[Path] = None,
        temp_dir: Optional[Path] = None,
        payload_loader: PayloadLoader = load_bundled_payload,
    ) -> None:
        self._exe_dir = exe_dir
        self._cwd = cwd
        self._temp_dir = temp_dir
        self._payload_loader = payload_loader

        self._lock = threading.Lock()
        self._extracted = False
        self._extracted_path: Optional[Path] = None

    def resolve(self) -> Optional[Path]:
        exe_dir = self._exe_dir if self._exe_dir is not None else app_dir()
        installed = exe_dir / "_up_" / "upx" / UPX_EXE_NAME
        if installed.exists():
            return installed

        cwd = self._cwd if self._cwd is not None else Path.cwd()
        dev = cwd / ".." / "upx" / UPX_EXE_NAME
        if dev.exists():
            return dev

        return self.extract_embedded()

    def extract_embedded(self) -> Optional[Path]:
        with self._lock:
            if not self._extracted:
                self._extracted_path = self._extract()
                self._extracted = True
            return self._extracted_path

    def _extract(self) -> Optional[Path]:
        try:
            payload = self._payload_loader()
        except OSError as e:
            logger.warning("Cannot load embedded UPX payload: %s", e)
            return None
        if payload is None:
            logger.debug("No embedded UPX payload in this build")
            return None

        base = self._temp_dir if self._temp_dir is not None else temp_root()
        target_dir = base / EXTRACT_DIR_NAME

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create %s: %s", target_dir, e)
            return None

        target = target_dir / UPX_EXE_NAME

        # Same length means same binary; no hash check.
        try:
            if target.is_file() and target.stat().st_size == len(payload):
                logger.debug("Reusing extracted UPX at %s", target)
                return target
        except OSError:
            pass

        try:
            target.write_bytes(payload)
            target.chmod(0o755)
        except OSError as e:
            logger.warning("Cannot extract UPX to %s: %s", target, e)
            return None

        logger.debug("Extracted UPX to %s", target)
        return target


_default_locator = ToolLocator()


def get_upx_path() -> Optional[Path]:
    return _default_locator.resolve()


def require_upx_path(override: Optional[Path] = None) -> Path:
    if override is not None:
        return Path(override)

    path = get_upx_path()
    if path is None:
        raise ToolNotFoundError("UPX tool not found! Make sure the installation is complete.")
    logger.debug("Using UPX at %s", path)
    return path
