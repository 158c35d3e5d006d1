"""Inventory tools: list skills with their installers, scan a skill."""

import shutil
from pathlib import Path

from skill_install.config import settings
from skill_install.core.manifest import load_workspace_skill_entries
from skill_install.core.prereqs import BIN_INSTALL_ALLOWLIST, unique_non_empty
from skill_install.core.scanner import scan_directory
from skill_install.models import SkillEntry, resolve_install_id


def _installer_label(spec) -> str:
    if spec.label:
        return spec.label
    target = getattr(spec, "formula", None) or getattr(spec, "package", None) or getattr(spec, "module", None)
    if spec.kind == "download":
        target = spec.url
    return f"{spec.kind}: {target}" if target else spec.kind


def _describe(entry: SkillEntry) -> dict:
    required = unique_non_empty(list(entry.requires.bins))
    missing = [b for b in required if shutil.which(b) is None]
    any_bins = unique_non_empty(list(entry.requires.any_bins))

    return {
        "name": entry.name,
        "description": entry.description,
        "source": entry.source,
        "path": str(entry.file_path),
        "requires": {
            "bins": required,
            "any_bins": any_bins,
            "missing": missing,
            "any_bins_satisfied": not any_bins or any(shutil.which(b) for b in any_bins),
            "auto_installable": [b for b in missing if b in BIN_INSTALL_ALLOWLIST],
        },
        "installers": [
            {
                "id": resolve_install_id(spec, index),
                "kind": spec.kind,
                "label": _installer_label(spec),
                "bins": spec.bins,
            }
            for index, spec in enumerate(entry.install)
        ],
    }


def list_installers(workspace_dir: Path | None = None, managed_dir: Path | None = None) -> dict:
    """List skills visible from a workspace with their declared installers.

    Returns:
        Dictionary with the workspace path and one entry per skill, including
        which required binaries are currently missing.
    """
    workspace = (workspace_dir or settings.workspace_dir).expanduser()
    entries = load_workspace_skill_entries(workspace, managed_dir=managed_dir)
    return {
        "workspace": str(workspace),
        "total": len(entries),
        "skills": [_describe(e) for e in sorted(entries, key=lambda e: e.name)],
    }


def scan_skill(skill_name: str, workspace_dir: Path | None = None, managed_dir: Path | None = None) -> dict:
    """Run the security scanner over one skill's directory."""
    workspace = (workspace_dir or settings.workspace_dir).expanduser()
    entries = load_workspace_skill_entries(workspace, managed_dir=managed_dir)
    entry = next((e for e in entries if e.name == skill_name), None)
    if entry is None:
        return {"error": f"Skill not found: {skill_name}"}

    summary = scan_directory(entry.base_dir)
    return {"skill": entry.name, "path": str(entry.base_dir), **summary.model_dump()}
