"""Map an install spec + preferences to a command vector. Executes nothing."""

from typing import NamedTuple

from skill_install.models import (
    BrewInstallSpec,
    DownloadInstallSpec,
    GoInstallSpec,
    InstallPreferences,
    InstallSpec,
    NodeInstallSpec,
    UvInstallSpec,
)

DOWNLOAD_HANDLED_SEPARATELY = "download install handled separately"

_NODE_GLOBAL_INSTALL: dict[str, list[str]] = {
    "npm": ["npm", "install", "-g"],
    "pnpm": ["pnpm", "add", "-g"],
    "yarn": ["yarn", "global", "add"],
    "bun": ["bun", "add", "-g"],
}


class InstallCommand(NamedTuple):
    argv: list[str] | None
    error: str | None = None


def build_node_install_command(package: str, prefs: InstallPreferences) -> list[str]:
    base = _NODE_GLOBAL_INSTALL.get(prefs.node_manager, _NODE_GLOBAL_INSTALL["npm"])
    return [*base, package]


def build_install_command(spec: InstallSpec, prefs: InstallPreferences) -> InstallCommand:
    """Resolve the installer argv for a package-manager spec.

    A missing mandatory field yields an error and no argv. Download specs
    are rejected with DOWNLOAD_HANDLED_SEPARATELY so the caller can route
    them to the archive fetcher.
    """
    if isinstance(spec, BrewInstallSpec):
        if not spec.formula:
            return InstallCommand(None, "missing brew formula")
        return InstallCommand(["brew", "install", spec.formula])

    if isinstance(spec, NodeInstallSpec):
        if not spec.package:
            return InstallCommand(None, "missing node package")
        return InstallCommand(build_node_install_command(spec.package, prefs))

    if isinstance(spec, GoInstallSpec):
        if not spec.module:
            return InstallCommand(None, "missing go module")
        return InstallCommand(["go", "install", spec.module])

    if isinstance(spec, UvInstallSpec):
        if not spec.package:
            return InstallCommand(None, "missing uv package")
        return InstallCommand(["uv", "tool", "install", spec.package])

    if isinstance(spec, DownloadInstallSpec):
        return InstallCommand(None, DOWNLOAD_HANDLED_SEPARATELY)

    return InstallCommand(None, "unsupported installer")
