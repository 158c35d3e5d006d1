"""Prerequisite binaries: detect what is missing and auto-install it.

Only binaries named in BIN_INSTALL_ALLOWLIST can ever trigger an install
subprocess, and only with the package names listed there. Anything else
fails without running a command.

Attempt order for a missing binary (first success wins):
1. brew, when preferred and a brew executable was resolved
2. the OS package manager (apt-get / dnf), Linux + root only
3. node global install
4. go install
"""

import logging
from types import MappingProxyType
from typing import NamedTuple

from pydantic import BaseModel, Field

from skill_install.core.commands import build_node_install_command
from skill_install.core.context import InstallContext
from skill_install.models import InstallSpec, PrereqInstallAttempt, SkillEntry

logger = logging.getLogger("skill-install.prereqs")


class BinRemedy(NamedTuple):
    """Package names per installer family for one binary."""

    apt: tuple[str, ...] = ()
    dnf: tuple[str, ...] = ()
    brew: tuple[str, ...] = ()
    node: tuple[str, ...] = ()
    go: tuple[str, ...] = ()


BIN_INSTALL_ALLOWLIST: MappingProxyType[str, BinRemedy] = MappingProxyType({
    # common tooling
    "git": BinRemedy(apt=("git",), dnf=("git",), brew=("git",)),
    "curl": BinRemedy(apt=("curl",), dnf=("curl",), brew=("curl",)),
    "unzip": BinRemedy(apt=("unzip",), dnf=("unzip",), brew=("unzip",)),
    "tar": BinRemedy(apt=("tar",), dnf=("tar",), brew=("gnu-tar",)),
    # media / image tooling
    "ffmpeg": BinRemedy(apt=("ffmpeg",), dnf=("ffmpeg-free",), brew=("ffmpeg",)),
    "convert": BinRemedy(apt=("imagemagick",), dnf=("ImageMagick",), brew=("imagemagick",)),
    # language runtimes / package managers
    "go": BinRemedy(apt=("golang-go",), dnf=("golang",), brew=("go",)),
    "uv": BinRemedy(dnf=("uv",), brew=("uv",)),
    "python3": BinRemedy(apt=("python3",), dnf=("python3",), brew=("python",)),
    "pip3": BinRemedy(apt=("python3-pip",), dnf=("python3-pip",), brew=("python",)),
})

# OS package manager executable -> BinRemedy field, in lookup order
_OS_PACKAGE_MANAGERS: dict[str, str] = {
    "apt-get": "apt",
    "dnf": "dnf",
}


class PrereqOutcome(BaseModel):
    ok: bool
    message: str | None = None
    stdout: str = ""
    stderr: str = ""
    warnings: list[str] = Field(default_factory=list)
    attempts: list[PrereqInstallAttempt] = Field(default_factory=list)


def unique_non_empty(values: list[str | None]) -> list[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def _os_package_manager(ctx: InstallContext) -> str | None:
    """First OS package manager on PATH. Linux only."""
    if ctx.host.system != "linux":
        return None
    for manager in _OS_PACKAGE_MANAGERS:
        if ctx.has_binary(manager):
            return manager
    return None


def _root_skip_warnings(missing: list[str], ctx: InstallContext) -> list[str]:
    """Note each binary the OS package manager could have installed as root."""
    manager = _os_package_manager(ctx)
    if manager is None or ctx.host.is_root:
        return []
    field = _OS_PACKAGE_MANAGERS[manager]
    return [
        f"{manager} can install {b} but requires root; skipped"
        for b in missing
        if b in BIN_INSTALL_ALLOWLIST and getattr(BIN_INSTALL_ALLOWLIST[b], field)
    ]


def _plan_attempts(remedy: BinRemedy, ctx: InstallContext) -> list[tuple[str, list[str]]]:
    """Ordered (kind, argv) candidates. Nothing runs here."""
    attempts: list[tuple[str, list[str]]] = []

    if ctx.prefs.prefer_brew and ctx.brew_exe:
        for formula in remedy.brew:
            attempts.append(("brew", [ctx.brew_exe, "install", formula]))

    # Root required: a sudo prompt would hang until the timeout
    manager = _os_package_manager(ctx)
    if manager and ctx.host.is_root:
        packages = getattr(remedy, _OS_PACKAGE_MANAGERS[manager])
        if packages:
            attempts.append((manager, [manager, "install", "-y", *packages]))

    for package in remedy.node:
        attempts.append(("node", build_node_install_command(package, ctx.prefs)))

    for module in remedy.go:
        attempts.append(("go", ["go", "install", module]))

    return attempts


async def try_install_prereq_bin(bin_name: str, ctx: InstallContext) -> PrereqInstallAttempt:
    """Try each allow-listed installer for bin_name until one exits 0."""
    remedy = BIN_INSTALL_ALLOWLIST.get(bin_name)
    if remedy is None:
        return PrereqInstallAttempt(
            bin=bin_name,
            ok=False,
            message=f"No auto-installer allowlisted for missing binary: {bin_name}",
        )

    attempts = _plan_attempts(remedy, ctx)
    if not attempts:
        manager = _os_package_manager(ctx)
        note = f" ({manager} present but needs root)" if manager and not ctx.host.is_root else ""
        return PrereqInstallAttempt(
            bin=bin_name,
            ok=False,
            message=f"No applicable installer for {bin_name}{note}",
        )

    for kind, argv in attempts:
        logger.info("Prerequisite '%s': trying %s", bin_name, " ".join(argv))
        result = await ctx.run(argv, timeout_ms=ctx.timeout_ms)
        if result.code == 0:
            return PrereqInstallAttempt(
                bin=bin_name,
                ok=True,
                message=f"Installed prerequisite ({kind}): {bin_name}",
                stdout=result.stdout.strip(),
                stderr=result.stderr.strip(),
                code=result.code,
            )
        logger.info("Prerequisite '%s': %s failed (code=%s)", bin_name, kind, result.code)

    # kind/result still hold the last attempt; surface its output
    return PrereqInstallAttempt(
        bin=bin_name,
        ok=False,
        message=f"Failed to auto-install prerequisite ({kind}): {bin_name}",
        stdout=result.stdout.strip(),
        stderr=result.stderr.strip(),
        code=result.code,
    )


async def ensure_prerequisite_bins(
    entry: SkillEntry,
    spec: InstallSpec,
    ctx: InstallContext,
) -> PrereqOutcome:
    """Make every required binary discoverable, or fail with the reason.

    Required = skill requires.bins + spec-level bins. If requires.any_bins
    is set and none is present we fail outright: there is no safe way to
    pick which one to install.
    """
    required = unique_non_empty([*entry.requires.bins, *spec.bins])
    any_bins = unique_non_empty(list(entry.requires.any_bins))

    if any_bins and not any(ctx.has_binary(b) for b in any_bins):
        return PrereqOutcome(
            ok=False,
            message=f"Missing prerequisite: need one of [{', '.join(any_bins)}]",
        )

    missing = [b for b in required if not ctx.has_binary(b)]
    if not missing:
        return PrereqOutcome(ok=True)

    warnings = _root_skip_warnings(missing, ctx)
    stdout_parts: list[str] = []
    stderr_parts: list[str] = []
    attempts: list[PrereqInstallAttempt] = []

    def _joined(parts: list[str]) -> str:
        return "\n".join(p for p in parts if p)

    for bin_name in missing:
        attempt = await try_install_prereq_bin(bin_name, ctx)
        attempts.append(attempt)
        stdout_parts.extend([f"==> prereq {bin_name}: {attempt.message}", attempt.stdout])
        if attempt.stderr:
            stderr_parts.extend([f"==> prereq {bin_name} stderr", attempt.stderr])
        if not attempt.ok:
            logger.warning("Prerequisite '%s' for '%s': %s", bin_name, entry.name, attempt.message)
            return PrereqOutcome(
                ok=False,
                message=attempt.message,
                stdout=_joined(stdout_parts),
                stderr=_joined(stderr_parts),
                attempts=attempts,
                warnings=warnings,
            )

    # An installer exiting 0 is not proof the binary landed on PATH
    still_missing = [b for b in missing if not ctx.has_binary(b)]
    if still_missing:
        return PrereqOutcome(
            ok=False,
            message=f"Prerequisites still missing after auto-install: {', '.join(still_missing)}",
            stdout=_joined(stdout_parts),
            stderr=_joined(stderr_parts),
            attempts=attempts,
            warnings=warnings,
        )

    return PrereqOutcome(
        ok=True,
        stdout=_joined(stdout_parts),
        stderr=_joined(stderr_parts),
        attempts=attempts,
        warnings=warnings,
    )
