"""Homebrew discovery: the brew executable and its bin directory."""

import logging
import os
import shutil
from pathlib import Path

from skill_install.core.context import BinaryLookup, InstallContext

logger = logging.getLogger("skill-install.brew")

_BREW_LOCATIONS = (
    "/opt/homebrew/bin/brew",
    "/usr/local/bin/brew",
    "/home/linuxbrew/.linuxbrew/bin/brew",
)
_BREW_BIN_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def resolve_brew_executable(which: BinaryLookup = shutil.which) -> str | None:
    """Return "brew" when on PATH, else an absolute path to a known install, else None."""
    if which("brew"):
        return "brew"

    candidates: list[str] = []
    env_file = os.environ.get("HOMEBREW_BREW_FILE", "").strip()
    if env_file:
        candidates.append(env_file)
    candidates.extend(_BREW_LOCATIONS)
    candidates.append(str(Path.home() / ".linuxbrew" / "bin" / "brew"))

    for candidate in candidates:
        if _is_executable(candidate):
            logger.debug("brew not on PATH, using %s", candidate)
            return candidate
    return None


async def resolve_brew_bin_dir(ctx: InstallContext, brew_exe: str | None = None) -> Path | None:
    """Directory where brew links executables (used as GOBIN)."""
    exe = brew_exe or ctx.brew_exe
    if not exe:
        return None

    prefix_result = await ctx.run([exe, "--prefix"], timeout_ms=min(ctx.timeout_ms, 30_000))
    if prefix_result.code == 0:
        prefix = prefix_result.stdout.strip()
        if prefix:
            return Path(prefix) / "bin"

    env_prefix = os.environ.get("HOMEBREW_PREFIX", "").strip()
    if env_prefix:
        return Path(env_prefix) / "bin"

    for candidate in _BREW_BIN_DIRS:
        if os.path.isdir(candidate):
            return Path(candidate)
    return None
