"""Data models for skill-install."""

import os
import platform
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

NODE_MANAGERS = ("npm", "pnpm", "yarn", "bun")

# platform.machine() spellings folded onto the names installers print
_ARCH_ALIASES: dict[str, str] = {
    "aarch64": "arm64",
    "arm64": "arm64",
    "x86_64": "x64",
    "amd64": "x64",
}


class InstallPreferences(BaseModel):
    """Per-call installer preferences."""

    node_manager: Literal["npm", "pnpm", "yarn", "bun"] = "npm"
    prefer_brew: bool = True


# ─── Install specs (tagged on `kind`) ─────────────────────────────────────


class _InstallSpecBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    label: str | None = None
    bins: list[str] = Field(default_factory=list)  # spec-level required binaries


class BrewInstallSpec(_InstallSpecBase):
    kind: Literal["brew"] = "brew"
    formula: str | None = None


class NodeInstallSpec(_InstallSpecBase):
    kind: Literal["node"] = "node"
    package: str | None = None


class GoInstallSpec(_InstallSpecBase):
    kind: Literal["go"] = "go"
    module: str | None = None


class UvInstallSpec(_InstallSpecBase):
    kind: Literal["uv"] = "uv"
    package: str | None = None


class DownloadInstallSpec(_InstallSpecBase):
    kind: Literal["download"] = "download"
    url: str | None = None
    archive: str | None = None  # explicit archive type: tar.gz, tar.bz2, zip
    extract: bool | None = None  # None = extract when the archive type is known
    strip_components: int | None = Field(default=None, alias="stripComponents")
    target_dir: str | None = Field(default=None, alias="targetDir")


InstallSpec = Annotated[
    Union[BrewInstallSpec, NodeInstallSpec, GoInstallSpec, UvInstallSpec, DownloadInstallSpec],
    Field(discriminator="kind"),
]


def resolve_install_id(spec: InstallSpec, index: int) -> str:
    """Stable installer id: the declared id, else `{kind}-{index}`."""
    return (spec.id or f"{spec.kind}-{index}").strip()


# ─── Skills ───────────────────────────────────────────────────────────────


class SkillRequires(BaseModel):
    """Binaries a skill needs on PATH."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bins: list[str] = Field(default_factory=list)
    any_bins: list[str] = Field(default_factory=list, alias="anyBins")


class SkillEntry(BaseModel):
    """One skill as loaded from a workspace manifest."""

    name: str
    description: str = ""
    base_dir: Path
    file_path: Path
    source: str = ""  # "workspace" or "managed"
    skill_key: str | None = None
    requires: SkillRequires = Field(default_factory=SkillRequires)
    install: list[InstallSpec] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return (self.skill_key or self.name).strip()

    def find_install_spec(self, install_id: str) -> InstallSpec | None:
        """First spec whose resolved id equals install_id."""
        for index, spec in enumerate(self.install):
            if resolve_install_id(spec, index) == install_id:
                return spec
        return None


class SkillInstallRequest(BaseModel):
    workspace_dir: Path
    skill_name: str
    install_id: str
    timeout_ms: int | None = None


# ─── Host / process ───────────────────────────────────────────────────────


class HostInfo(BaseModel):
    """Facts about the running host used for installer gating and hints."""

    system: str  # darwin, linux, windows
    arch: str  # arm64, x64, ...
    is_root: bool = False

    @classmethod
    def detect(cls) -> "HostInfo":
        machine = platform.machine().lower()
        return cls(
            system=platform.system().lower(),
            arch=_ARCH_ALIASES.get(machine, machine),
            is_root=hasattr(os, "geteuid") and os.geteuid() == 0,
        )


class CommandResult(BaseModel):
    """Outcome of one bounded subprocess run. code is None on spawn failure or timeout."""

    code: int | None = None
    stdout: str = ""
    stderr: str = ""


class PrereqInstallAttempt(BaseModel):
    """One remediation attempted for a missing binary."""

    bin: str
    ok: bool
    message: str
    stdout: str = ""
    stderr: str = ""
    code: int | None = None


class InstallResult(BaseModel):
    """Result of a skill install request."""

    ok: bool
    message: str
    stdout: str = ""
    stderr: str = ""
    code: int | None = None
    warnings: list[str] | None = None


# ─── Security scan ────────────────────────────────────────────────────────


class ScanFinding(BaseModel):
    message: str
    file: str
    line: int
    severity: Literal["critical", "warn"]


class ScanSummary(BaseModel):
    """Security scan result for a skill directory."""

    scanned_files: int = 0
    critical: int = 0
    warn: int = 0
    findings: list[ScanFinding] = Field(default_factory=list)
