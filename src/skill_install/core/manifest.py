"""Skill manifest loading: SKILL.md files with YAML frontmatter.

Frontmatter keys used here:

    name: my-skill
    description: What it does
    skill_key: my-skill          # optional, names the download target dir
    requires:
      bins: [git]
      any_bins: [python3, python]
    install:
      - kind: brew
        formula: ripgrep
      - id: cli
        kind: download
        url: https://example.com/tool.tar.gz
        stripComponents: 1
"""

import logging
import re
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import TypeAdapter, ValidationError

from skill_install.config import settings
from skill_install.models import InstallSpec, SkillEntry, SkillRequires

logger = logging.getLogger("skill-install.manifest")

SkillLoader = Callable[[Path], list[SkillEntry]]

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---", re.DOTALL)
_SPEC_ADAPTER: TypeAdapter[InstallSpec] = TypeAdapter(InstallSpec)


def _parse_install_specs(raw: object, path: Path) -> list[InstallSpec]:
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("Ignoring non-list 'install' in %s", path)
        return []

    specs: list[InstallSpec] = []
    for index, item in enumerate(raw):
        try:
            spec = _SPEC_ADAPTER.validate_python(item)
        except ValidationError as e:
            logger.warning("Skipping install entry %d in %s: %s", index, path, e.errors()[0]["msg"])
            continue
        # Pin the positional id now so skipped entries don't shift later ones
        if not (spec.id and spec.id.strip()):
            spec.id = f"{spec.kind}-{index}"
        specs.append(spec)
    return specs


def parse_skill_file(path: Path, source: str = "") -> SkillEntry | None:
    """Parse one SKILL.md. Returns None when it has no usable frontmatter."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read %s: %s", path, e)
        return None

    fm_match = _FRONTMATTER.match(content)
    if not fm_match:
        return None

    try:
        meta = yaml.safe_load(fm_match.group(1))
    except yaml.YAMLError as e:
        logger.warning("Invalid frontmatter in %s: %s", path, e)
        return None
    if not isinstance(meta, dict):
        return None

    try:
        requires = SkillRequires.model_validate(meta.get("requires") or {})
    except ValidationError:
        logger.warning("Ignoring malformed 'requires' in %s", path)
        requires = SkillRequires()

    skill_key = meta.get("skill_key") or meta.get("skillKey")
    return SkillEntry(
        name=str(meta.get("name") or path.parent.name),
        description=str(meta.get("description") or ""),
        base_dir=path.parent,
        file_path=path,
        source=source,
        skill_key=str(skill_key) if skill_key else None,
        requires=requires,
        install=_parse_install_specs(meta.get("install"), path),
    )


def _load_dir(skills_dir: Path, source: str, filename: str) -> list[SkillEntry]:
    if not skills_dir.is_dir():
        return []
    entries: list[SkillEntry] = []
    for skill_file in sorted(skills_dir.glob(f"*/{filename}")):
        entry = parse_skill_file(skill_file, source)
        if entry:
            entries.append(entry)
    return entries


def load_workspace_skill_entries(
    workspace_dir: Path,
    managed_dir: Path | None = None,
    filename: str | None = None,
) -> list[SkillEntry]:
    """All skills visible from a workspace; workspace skills shadow managed ones."""
    if managed_dir is None:
        managed_dir = settings.managed_skills_dir
    if filename is None:
        filename = settings.skill_filename

    by_name: dict[str, SkillEntry] = {}
    for entry in _load_dir(managed_dir, "managed", filename):
        by_name[entry.name] = entry
    for entry in _load_dir(workspace_dir / "skills", "workspace", filename):
        by_name[entry.name] = entry

    logger.debug("Loaded %d skills for %s", len(by_name), workspace_dir)
    return list(by_name.values())
