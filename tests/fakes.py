"""Test doubles for the installer's collaborators (runner, PATH, fetch, scanner)."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx

from skill_install.core.context import InstallContext
from skill_install.models import (
    CommandResult,
    HostInfo,
    InstallPreferences,
    ScanFinding,
    ScanSummary,
    SkillEntry,
    SkillRequires,
)


class FakePath:
    """Mutable set of binaries treated as present on PATH."""

    def __init__(self, *bins: str):
        self.bins = set(bins)

    def __call__(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.bins else None


class FakeRunner:
    """Records every argv and answers from responses keyed by argv prefix.

    installs: argv prefix -> binary that appears on PATH after that command
    succeeds (simulates a package manager dropping an executable).
    """

    def __init__(
        self,
        responses: dict[tuple[str, ...], CommandResult] | None = None,
        default: CommandResult | None = None,
        path: FakePath | None = None,
        installs: dict[tuple[str, ...], str] | None = None,
        raises: Exception | None = None,
    ):
        self.responses = responses or {}
        self.default = default or CommandResult(code=0, stdout="ok")
        self.path = path
        self.installs = installs or {}
        self.raises = raises
        self.calls: list[list[str]] = []
        self.envs: list[dict | None] = []
        self.timeouts: list[int] = []

    def _match(self, table: dict, argv: list[str]):
        for prefix, value in table.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return value
        return None

    async def __call__(self, argv, *, timeout_ms, env=None) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        self.envs.append(env)
        self.timeouts.append(timeout_ms)
        if self.raises is not None:
            raise self.raises

        result = self._match(self.responses, argv) or self.default
        installed = self._match(self.installs, argv)
        if result.code == 0 and installed and self.path is not None:
            self.path.bins.add(installed)
        return result


def fake_fetch(status: int = 200, content: bytes = b"", raises: Exception | None = None):
    """Build a fetch context manager returning canned httpx responses.

    The returned callable has an `opened` list recording url/released per call.
    """
    opened: list[dict] = []

    @asynccontextmanager
    async def _fetch(url: str, timeout_ms: int):
        state = {"url": url, "timeout_ms": timeout_ms, "released": False}
        opened.append(state)
        if raises is not None:
            state["released"] = True
            raise raises
        response = httpx.Response(status, content=content, request=httpx.Request("GET", url))
        try:
            yield response
        finally:
            state["released"] = True

    _fetch.opened = opened
    return _fetch


def clean_scanner(path: Path) -> ScanSummary:
    return ScanSummary(scanned_files=1)


def failing_scanner(path: Path) -> ScanSummary:
    raise RuntimeError("scanner exploded")


def critical_scanner(path: Path) -> ScanSummary:
    return ScanSummary(
        scanned_files=1,
        critical=1,
        findings=[ScanFinding(message="Shell injection via subprocess", file="run.py", line=3, severity="critical")],
    )


def no_brew(which) -> str | None:
    return None


def brew_if_on_path(which) -> str | None:
    return "brew" if which("brew") else None


def linux_host(arch: str = "x64", root: bool = False) -> HostInfo:
    return HostInfo(system="linux", arch=arch, is_root=root)


def make_context(
    runner: FakeRunner,
    path: FakePath,
    *,
    host: HostInfo | None = None,
    prefs: InstallPreferences | None = None,
    brew_exe: str | None = None,
    timeout_ms: int = 5_000,
) -> InstallContext:
    return InstallContext(
        prefs=prefs or InstallPreferences(),
        timeout_ms=timeout_ms,
        host=host or linux_host(),
        run=runner,
        which=path,
        brew_exe=brew_exe,
    )


def make_entry(
    name: str = "demo",
    install: list | None = None,
    bins: list[str] | None = None,
    any_bins: list[str] | None = None,
    base_dir: Path | None = None,
) -> SkillEntry:
    base = base_dir or Path("/tmp/skills") / name
    return SkillEntry(
        name=name,
        base_dir=base,
        file_path=base / "SKILL.md",
        source="workspace",
        requires=SkillRequires(bins=bins or [], any_bins=any_bins or []),
        install=install or [],
    )


def static_loader(*entries: SkillEntry):
    return lambda workspace_dir: list(entries)
