"""Skill installation pipeline: scan, select installer, prerequisites, run.

Pipeline:
1. Load workspace skills and find the named one
2. Security scan (advisory: findings and scanner errors become warnings)
3. Select the install spec by resolved id
4. Download specs -> archive fetcher; everything else -> command build
5. Ensure prerequisite binaries (allow-listed auto-install)
6. Bootstrap uv/go when the installer tool itself is missing
7. Run the installer under the clamped timeout and summarize the result

Every failure comes back as InstallResult(ok=False); nothing is retried
outside the prerequisite fallback chain.
"""

import asyncio
import json
import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from skill_install.config import settings
from skill_install.core.archive import install_download_spec
from skill_install.core.brew import resolve_brew_bin_dir, resolve_brew_executable
from skill_install.core.commands import build_install_command
from skill_install.core.context import BinaryLookup, InstallContext, clamp_timeout_ms
from skill_install.core.fetch import Fetcher, fetch_with_guard
from skill_install.core.formatter import format_install_failure_message
from skill_install.core.manifest import SkillLoader, load_workspace_skill_entries
from skill_install.core.prereqs import ensure_prerequisite_bins
from skill_install.core.process import CommandRunner, run_command_with_timeout
from skill_install.core.scanner import scan_directory
from skill_install.models import (
    BrewInstallSpec,
    CommandResult,
    DownloadInstallSpec,
    GoInstallSpec,
    HostInfo,
    InstallPreferences,
    InstallResult,
    InstallSpec,
    ScanFinding,
    ScanSummary,
    SkillEntry,
    SkillInstallRequest,
    UvInstallSpec,
)

logger = logging.getLogger("skill-install.installer")

Scanner = Callable[[Path], ScanSummary]
BrewResolver = Callable[[BinaryLookup], str | None]

_AUDIT_HINT = 'Run the "scan_skill" tool for details.'


def with_warnings(result: InstallResult, warnings: list[str]) -> InstallResult:
    if not warnings:
        return result
    return result.model_copy(update={"warnings": list(warnings)})


def _format_finding(root: Path, finding: ScanFinding) -> str:
    path = Path(finding.file)
    if path.is_absolute():
        try:
            path = path.relative_to(root)
        except ValueError:
            path = Path(path.name)
    return f"{finding.message} ({path}:{finding.line})"


async def collect_scan_warnings(entry: SkillEntry, scanner: Scanner) -> list[str]:
    """Scan the skill directory and phrase the outcome as warnings."""
    warnings: list[str] = []
    skill_dir = entry.base_dir.resolve()

    try:
        summary = await asyncio.to_thread(scanner, skill_dir)
    except Exception as e:
        # Scanner unavailability must not block installs
        logger.warning("Security scan failed for '%s': %s", entry.name, e)
        warnings.append(
            f'Skill "{entry.name}" code safety scan failed ({e}). '
            f"Installation continues; scan it again after install."
        )
        return warnings

    if summary.critical > 0:
        details = "; ".join(
            _format_finding(skill_dir, f) for f in summary.findings if f.severity == "critical"
        )
        warnings.append(f'WARNING: Skill "{entry.name}" contains dangerous code patterns: {details}')
    elif summary.warn > 0:
        warnings.append(
            f'Skill "{entry.name}" has {summary.warn} suspicious code pattern(s). {_AUDIT_HINT}'
        )
    return warnings


def _debug_payload(entry: SkillEntry, install_id: str, spec: InstallSpec) -> str:
    debug = {
        "skill": {
            "name": entry.name,
            "source": entry.source,
            "baseDir": str(entry.base_dir),
            "filePath": str(entry.file_path),
        },
        "installId": install_id,
        "spec": spec.model_dump(mode="json", exclude_none=True),
    }
    return json.dumps(debug, indent=2)


async def _bootstrap_tool(tool: str, ctx: InstallContext) -> InstallResult | None:
    """Install the installer itself (uv, go) through brew. None when it's ready."""
    if ctx.has_binary(tool):
        return None
    if not ctx.brew_exe:
        return InstallResult(ok=False, message=f"{tool} not installed (install via brew)")

    logger.info("Bootstrapping %s via brew", tool)
    result = await ctx.run([ctx.brew_exe, "install", tool], timeout_ms=ctx.timeout_ms)
    if result.code != 0:
        return InstallResult(
            ok=False,
            message=f"Failed to install {tool} (brew)",
            stdout=result.stdout.strip(),
            stderr=result.stderr.strip(),
            code=result.code,
        )
    return None


def _merge_output(*parts: str) -> str:
    return "\n".join(p.strip() for p in parts if p and p.strip())


async def install_skill(
    request: SkillInstallRequest,
    *,
    prefs: InstallPreferences | None = None,
    host: HostInfo | None = None,
    tools_dir: Path | None = None,
    loader: SkillLoader = load_workspace_skill_entries,
    scanner: Scanner = scan_directory,
    runner: CommandRunner = run_command_with_timeout,
    fetch: Fetcher = fetch_with_guard,
    which: BinaryLookup = shutil.which,
    brew_resolver: BrewResolver = resolve_brew_executable,
) -> InstallResult:
    """Install one declared installer of one skill.

    Collaborators (loader, scanner, runner, fetch, which, brew_resolver)
    are injectable; defaults are the real implementations.
    """
    ctx = InstallContext(
        prefs=prefs or settings.install_preferences(),
        timeout_ms=clamp_timeout_ms(request.timeout_ms),
        host=host or HostInfo.detect(),
        run=runner,
        which=which,
    )

    entries = loader(request.workspace_dir.expanduser())
    entry = next((e for e in entries if e.name == request.skill_name), None)
    if entry is None:
        return InstallResult(ok=False, message=f"Skill not found: {request.skill_name}")

    warnings = await collect_scan_warnings(entry, scanner)

    spec = entry.find_install_spec(request.install_id)
    if spec is None:
        return with_warnings(
            InstallResult(ok=False, message=f"Installer not found: {request.install_id}"),
            warnings,
        )

    logger.info("Installing '%s' via %s (%s)", entry.name, request.install_id, spec.kind)

    if isinstance(spec, DownloadInstallSpec):
        result = await install_download_spec(
            entry,
            spec,
            ctx,
            tools_dir=tools_dir or settings.tools_dir,
            fetch=fetch,
        )
        return with_warnings(result, warnings)

    command = build_install_command(spec, ctx.prefs)
    if command.error or not command.argv:
        return with_warnings(
            InstallResult(
                ok=False,
                message=command.error or "invalid install command",
                stderr="Invalid installer spec (debug follows)\n"
                + _debug_payload(entry, request.install_id, spec),
            ),
            warnings,
        )

    ctx.brew_exe = brew_resolver(ctx.which)
    if isinstance(spec, BrewInstallSpec) and not ctx.brew_exe:
        return with_warnings(InstallResult(ok=False, message="brew not installed"), warnings)

    prereq = await ensure_prerequisite_bins(entry, spec, ctx)
    warnings.extend(prereq.warnings)
    if not prereq.ok:
        return with_warnings(
            InstallResult(
                ok=False,
                message=prereq.message or "Missing prerequisites",
                stdout=prereq.stdout.strip(),
                stderr=prereq.stderr.strip(),
            ),
            warnings,
        )

    argv = list(command.argv)
    env: dict[str, str] | None = None
    if isinstance(spec, BrewInstallSpec):
        argv[0] = ctx.brew_exe
    elif isinstance(spec, (UvInstallSpec, GoInstallSpec)):
        failure = await _bootstrap_tool(argv[0], ctx)
        if failure is not None:
            return with_warnings(failure, warnings)
        if isinstance(spec, GoInstallSpec) and ctx.brew_exe:
            brew_bin = await resolve_brew_bin_dir(ctx)
            if brew_bin:
                env = {"GOBIN": str(brew_bin)}

    try:
        result = await ctx.run(argv, timeout_ms=ctx.timeout_ms, env=env)
    except Exception as e:
        logger.warning("Installer command raised for '%s': %s", entry.name, e)
        result = CommandResult(code=None, stderr=str(e))

    stdout = _merge_output(prereq.stdout, result.stdout)
    stderr = _merge_output(prereq.stderr, result.stderr)
    success = result.code == 0

    if success:
        logger.info("Installed '%s' (%s)", entry.name, request.install_id)
        message = "Installed"
    else:
        message = format_install_failure_message(
            CommandResult(code=result.code, stdout=stdout, stderr=stderr),
            ctx.host,
        )
        logger.warning("Install of '%s' failed: %s", entry.name, message)

    return with_warnings(
        InstallResult(ok=success, message=message, stdout=stdout, stderr=stderr, code=result.code),
        warnings,
    )
