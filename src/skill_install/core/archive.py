"""Download-kind installs: fetch an artifact to disk and optionally unpack it."""

import asyncio
import logging
import math
from pathlib import Path, PurePosixPath

import httpx

from skill_install.core.context import InstallContext
from skill_install.core.fetch import Fetcher, FetchBlockedError, fetch_with_guard
from skill_install.core.formatter import format_install_failure_message
from skill_install.models import CommandResult, DownloadInstallSpec, InstallResult, SkillEntry

logger = logging.getLogger("skill-install.archive")


class DownloadError(Exception):
    """Non-success HTTP status for a download."""


def resolve_archive_type(spec: DownloadInstallSpec, filename: str) -> str | None:
    """Explicit spec.archive wins, else infer from the filename suffix."""
    explicit = (spec.archive or "").strip().lower()
    if explicit:
        return explicit
    lower = filename.lower()
    if lower.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if lower.endswith((".tar.bz2", ".tbz2")):
        return "tar.bz2"
    if lower.endswith(".zip"):
        return "zip"
    return None


def resolve_download_target_dir(entry: SkillEntry, spec: DownloadInstallSpec, tools_dir: Path) -> Path:
    if spec.target_dir and spec.target_dir.strip():
        return Path(spec.target_dir.strip()).expanduser()
    return tools_dir / entry.key


def download_filename(url: str) -> str:
    try:
        name = PurePosixPath(httpx.URL(url).path).name
    except httpx.InvalidURL:
        name = PurePosixPath(url).name
    return name or "download"


async def download_file(
    url: str,
    dest_path: Path,
    timeout_ms: int,
    fetch: Fetcher = fetch_with_guard,
) -> int:
    """Stream url to dest_path through the guarded fetch. Returns bytes written."""
    async with fetch(url, max(1_000, timeout_ms)) as response:
        if not response.is_success:
            raise DownloadError(f"Download failed ({response.status_code} {response.reason_phrase})")
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        # Disk writes off the event loop; artifacts can be large
        fh = await asyncio.to_thread(dest_path.open, "wb")
        try:
            async for chunk in response.aiter_bytes():
                await asyncio.to_thread(fh.write, chunk)
        finally:
            await asyncio.to_thread(fh.close)
    size = dest_path.stat().st_size
    logger.info("Downloaded %d bytes: %s → %s", size, url, dest_path)
    return size


async def extract_archive(
    archive_path: Path,
    archive_type: str,
    target_dir: Path,
    ctx: InstallContext,
    strip_components: int | None = None,
) -> CommandResult:
    """Unpack with unzip (zip) or tar (everything else).

    A missing tool is reported as code=None with the reason in stderr.
    strip_components applies to tar only.
    """
    if archive_type == "zip":
        if not ctx.has_binary("unzip"):
            return CommandResult(code=None, stderr="unzip not found on PATH")
        argv = ["unzip", "-q", str(archive_path), "-d", str(target_dir)]
        return await ctx.run(argv, timeout_ms=ctx.timeout_ms)

    if not ctx.has_binary("tar"):
        return CommandResult(code=None, stderr="tar not found on PATH")
    argv = ["tar", "xf", str(archive_path), "-C", str(target_dir)]
    if strip_components is not None:
        argv.extend(["--strip-components", str(max(0, math.floor(strip_components)))])
    return await ctx.run(argv, timeout_ms=ctx.timeout_ms)


async def install_download_spec(
    entry: SkillEntry,
    spec: DownloadInstallSpec,
    ctx: InstallContext,
    *,
    tools_dir: Path,
    fetch: Fetcher = fetch_with_guard,
) -> InstallResult:
    url = (spec.url or "").strip()
    if not url:
        return InstallResult(ok=False, message="missing download url")

    filename = download_filename(url)
    target_dir = resolve_download_target_dir(entry, spec, tools_dir)
    archive_path = target_dir / filename

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        downloaded = await download_file(url, archive_path, ctx.timeout_ms, fetch=fetch)
    except (DownloadError, FetchBlockedError, httpx.HTTPError, httpx.InvalidURL, OSError) as e:
        message = str(e) or type(e).__name__
        logger.warning("Download failed for '%s': %s", entry.name, message)
        return InstallResult(ok=False, message=message, stderr=message)

    archive_type = resolve_archive_type(spec, filename)
    should_extract = spec.extract if spec.extract is not None else archive_type is not None
    if not should_extract or archive_type is None:
        if should_extract:
            logger.info("Extract requested but archive type unknown for %s; keeping download", filename)
        return InstallResult(
            ok=True,
            message=f"Downloaded to {archive_path}",
            stdout=f"downloaded={downloaded}",
            code=0,
        )

    result = await extract_archive(
        archive_path,
        archive_type,
        target_dir,
        ctx,
        strip_components=spec.strip_components,
    )
    success = result.code == 0
    return InstallResult(
        ok=success,
        message=f"Downloaded and extracted to {target_dir}" if success else format_install_failure_message(result, ctx.host),
        stdout=result.stdout.strip(),
        stderr=result.stderr.strip(),
        code=result.code,
    )
