"""skill-install MCP server.

Provides 3 tools for installing agent skill dependencies:
- install_skill: Run one declared installer of a skill (brew, node, go, uv, download)
- list_installers: Skills in the workspace with their installers and missing binaries
- scan_skill: Security scan of a skill directory
"""

import json
import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

mcp = FastMCP(
    "skill-install",
    instructions=(
        "Skill Install sets up the runtime dependencies declared by agent skills. "
        "Use list_installers to see each skill's installer ids and which binaries are missing, "
        "then install_skill with a skill name and installer id. "
        "Results carry a one-line message, captured output and any security-scan warnings."
    ),
)


def _workspace(workspace_dir: str) -> Path | None:
    return Path(workspace_dir) if workspace_dir.strip() else None


@mcp.tool()
async def install_skill(
    skill_name: str,
    install_id: str,
    workspace_dir: str = "",
    timeout_ms: int = 0,
) -> str:
    """Install a skill's dependency using one of its declared installers.

    Pipeline: security scan -> installer lookup -> prerequisites -> run -> summarize.
    Scan findings are reported as warnings and never block the install.

    Args:
        skill_name: Skill name from its SKILL.md (e.g. "video-frames")
        install_id: Installer id from list_installers (e.g. "brew-0")
        workspace_dir: Workspace directory (default: configured workspace)
        timeout_ms: Per-command timeout in ms, 0 = configured default
    """
    from skill_install.tools.install import install_skill as _install

    result = await _install(
        skill_name=skill_name,
        install_id=install_id,
        workspace_dir=_workspace(workspace_dir),
        timeout_ms=timeout_ms or None,
    )
    return json.dumps(result.model_dump(), indent=2)


@mcp.tool()
async def list_installers(workspace_dir: str = "") -> str:
    """List skills with their installer ids, required binaries and what is missing.

    Args:
        workspace_dir: Workspace directory (default: configured workspace)
    """
    from skill_install.tools.inventory import list_installers as _list

    result = _list(workspace_dir=_workspace(workspace_dir))
    return json.dumps(result, indent=2)


@mcp.tool()
async def scan_skill(skill_name: str, workspace_dir: str = "") -> str:
    """Security-scan a skill's directory for dangerous code patterns.

    Args:
        skill_name: Skill name to scan
        workspace_dir: Workspace directory (default: configured workspace)
    """
    from skill_install.tools.inventory import scan_skill as _scan

    result = _scan(skill_name=skill_name, workspace_dir=_workspace(workspace_dir))
    return json.dumps(result, indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
