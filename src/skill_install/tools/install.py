"""Install tool: run one skill installer with per-skill serialization."""

import asyncio
from pathlib import Path

from skill_install.config import settings
from skill_install.core.installer import install_skill as _install
from skill_install.models import InstallResult, SkillInstallRequest

# Lock registry so the same installer never runs twice at once from this surface.
# Entries hold [lock, users] and are dropped when the last user leaves.
_install_locks: dict[tuple[str, str, str], list] = {}
_lock_guard = asyncio.Lock()


async def _get_lock(key: tuple[str, str, str]) -> asyncio.Lock:
    async with _lock_guard:
        slot = _install_locks.setdefault(key, [asyncio.Lock(), 0])
        slot[1] += 1
        return slot[0]


async def _release_lock(key: tuple[str, str, str]) -> None:
    async with _lock_guard:
        slot = _install_locks[key]
        slot[1] -= 1
        if slot[1] == 0:
            del _install_locks[key]


async def install_skill(
    skill_name: str,
    install_id: str,
    workspace_dir: Path | None = None,
    timeout_ms: int | None = None,
) -> InstallResult:
    """Install a skill's runtime dependency using one of its declared installers.

    Args:
        skill_name: Skill name as declared in its SKILL.md
        install_id: Installer id (declared id, or "{kind}-{index}")
        workspace_dir: Workspace to load skills from (default: configured)
        timeout_ms: Per-command timeout, clamped to 1s..15min (default: configured)

    Returns:
        InstallResult with ok, message, captured output and any scan warnings.
    """
    request = SkillInstallRequest(
        workspace_dir=workspace_dir or settings.workspace_dir,
        skill_name=skill_name,
        install_id=install_id,
        timeout_ms=timeout_ms if timeout_ms is not None else settings.install_timeout_ms,
    )

    key = (str(request.workspace_dir.expanduser().resolve()), skill_name, install_id)
    lock = await _get_lock(key)
    try:
        async with lock:
            return await _install(request, prefs=settings.install_preferences())
    finally:
        await _release_lock(key)
