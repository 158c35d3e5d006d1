"""Configuration for the skill-install MCP server."""

from pathlib import Path

from pydantic_settings import BaseSettings

from skill_install.models import NODE_MANAGERS, InstallPreferences


class Settings(BaseSettings):
    """Skill-install configuration loaded from environment and .env file."""

    # Workspace whose skills/ directory is searched first
    workspace_dir: Path = Path.cwd()

    # Per-user state: managed skills and download targets live under here
    config_dir: Path = Path.home() / ".skill-install"

    # Skill manifest file name inside each skill directory
    skill_filename: str = "SKILL.md"

    # Installer preferences
    prefer_brew: bool = True
    node_manager: str = "npm"  # npm, pnpm, yarn, bun

    # Outer install timeout (clamped to 1s..15min per call)
    install_timeout_ms: int = 300_000

    model_config = {"env_prefix": "SKILL_INSTALL_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def managed_skills_dir(self) -> Path:
        return self.config_dir / "skills"

    @property
    def tools_dir(self) -> Path:
        """Default root for download-kind installs: tools_dir/{skill_key}/"""
        return self.config_dir / "tools"

    def install_preferences(self) -> InstallPreferences:
        manager = self.node_manager.strip().lower()
        if manager not in NODE_MANAGERS:
            manager = "npm"
        return InstallPreferences(node_manager=manager, prefer_brew=self.prefer_brew)


settings = Settings()
