from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import httpx

from .errors import UpdateError
from .paths import temp_root
from .settings import APP_VERSION


logger = logging.getLogger(__name__)

GITHUB_REPO = "Y-ASLant/UPX-Tools"
LATEST_RELEASE_URL = f"https://api.github.com/repos/{GITHUB_REPO}/releases/latest"
TOKEN_ENV_VAR = "GITHUB_TOKEN"

# Installer first or portable first does not matter: the first asset in
# feed order with either suffix is offered.
ASSET_SUFFIXES = ("-portable.exe", "-setup.exe")

DOWNLOAD_DIR_NAME = "upx-tools-update"

Launcher = Callable[[Path], None]


@dataclass(frozen=True)
class UpdateInfo:
    has_update: bool
    current_version: str
    latest_version: str
    release_url: str
    release_name: str
    notes: str
    published_at: str
    download_url: Optional[str] = None
    download_size: Optional[int] = None


def version_compare(latest: str, current: str) -> bool:
    """True when `latest` is strictly newer than `current`."""
    latest_parts = _parse_version(latest)
    current_parts = _parse_version(current)

    for i in range(max(len(latest_parts), len(current_parts))):
        lv = latest_parts[i] if i < len(latest_parts) else 0
        cv = current_parts[i] if i < len(current_parts) else 0
        if lv > cv:
            return True
        if lv < cv:
            return False
    return False


def _parse_version(text: str) -> list[int]:
    # Non-numeric components ("rc1") are dropped, not treated as zero.
    return [int(part) for part in text.split(".") if part.isascii() and part.isdigit()]


def select_asset(assets: Sequence[dict[str, Any]]) -> Optional[dict[str, Any]]:
    for asset in assets:
        if str(asset.get("name", "")).endswith(ASSET_SUFFIXES):
            return asset
    return None


def _build_headers() -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": f"UPX-Tools/{APP_VERSION}",
    }
    token = os.environ.get(TOKEN_ENV_VAR, "")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def check_update(client: httpx.Client | None = None) -> UpdateInfo:
    if client is not None:
        return _check_update_with_client(client)

    with httpx.Client(follow_redirects=True, timeout=None) as local_client:
        return _check_update_with_client(local_client)


async def check_update_async() -> UpdateInfo:
    return await asyncio.to_thread(check_update)


def _check_update_with_client(client: httpx.Client) -> UpdateInfo:
    try:
        response = client.get(LATEST_RELEASE_URL, headers=_build_headers())
    except httpx.HTTPError as exc:
        raise UpdateError(f"Network request failed: {exc}") from exc

    if not response.is_success:
        raise UpdateError(f"GitHub API request failed: {response.status_code}")

    try:
        release = response.json()
        info = _parse_release(release)
    except (ValueError, KeyError, TypeError) as exc:
        raise UpdateError(f"Failed to parse response: {exc}") from exc

    logger.debug(
        "Latest release %s, running v%s, update=%s",
        info.latest_version,
        APP_VERSION,
        info.has_update,
    )
    return info


def _parse_release(release: dict[str, Any]) -> UpdateInfo:
    if not isinstance(release, dict):
        raise TypeError("expected a JSON object")

    tag = str(release["tag_name"])
    latest = tag.removeprefix("v")
    current = APP_VERSION.removeprefix("v")

    assets = release.get("assets") or []
    if not isinstance(assets, list) or not all(isinstance(a, dict) for a in assets):
        raise TypeError("assets must be a list of objects")
    asset = select_asset(assets)

    return UpdateInfo(
        has_update=version_compare(latest, current),
        current_version=f"v{current}",
        latest_version=tag,
        release_url=str(release["html_url"]),
        release_name=str(release.get("name") or ""),
        notes=str(release.get("body") or ""),
        published_at=str(release["published_at"]),
        download_url=str(asset["browser_download_url"]) if asset else None,
        download_size=int(asset["size"]) if asset else None,
    )


def download_and_install(
    url: str,
    filename: str,
    *,
    client: httpx.Client | None = None,
    launcher: Launcher | None = None,
) -> Path:
    """
    Download `url` to the update temp folder and open it.

    The launched installer is not waited on. Returns the downloaded path.
    """
    if not filename or Path(filename).name != filename:
        raise UpdateError(f"Invalid file name: {filename!r}")

    if client is not None:
        content = _download_with_client(client, url)
    else:
        with httpx.Client(follow_redirects=True, timeout=None) as local_client:
            content = _download_with_client(local_client, url)

    target_dir = temp_root() / DOWNLOAD_DIR_NAME
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise UpdateError(f"Failed to create temp folder: {exc}") from exc

    file_path = target_dir / filename
    try:
        file_path.write_bytes(content)
    except OSError as exc:
        raise UpdateError(f"Failed to save file: {exc}") from exc

    logger.info("Downloaded %d bytes to %s", len(content), file_path)

    try:
        (launcher or open_with_shell)(file_path)
    except OSError as exc:
        raise UpdateError(f"Failed to start installer: {exc}") from exc

    return file_path


async def download_and_install_async(url: str, filename: str) -> Path:
    return await asyncio.to_thread(download_and_install, url, filename)


def _download_with_client(client: httpx.Client, url: str) -> bytes:
    try:
        response = client.get(url, headers={"User-Agent": f"UPX-Tools/{APP_VERSION}"})
    except httpx.HTTPError as exc:
        raise UpdateError(f"Download failed: {exc}") from exc

    if not response.is_success:
        raise UpdateError(f"Download failed: HTTP {response.status_code}")
    return response.content


def open_with_shell(path: Path) -> None:
    """Hand `path` to the OS "open" action and return immediately."""
    if os.name == "nt":
        os.startfile(str(path))  # type: ignore[attr-defined]
    elif sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    else:
        subprocess.Popen(["xdg-open", str(path)])
