"""Per-call install context threaded through the install pipeline."""

import shutil
from collections.abc import Callable
from dataclasses import dataclass

from skill_install.core.process import CommandRunner, run_command_with_timeout
from skill_install.models import HostInfo, InstallPreferences

BinaryLookup = Callable[[str], str | None]

MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 900_000
DEFAULT_TIMEOUT_MS = 300_000


def clamp_timeout_ms(timeout_ms: int | None) -> int:
    """Clamp a requested timeout to [1s, 15min]; None means the 5min default."""
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    return min(max(int(timeout_ms), MIN_TIMEOUT_MS), MAX_TIMEOUT_MS)


@dataclass
class InstallContext:
    """Everything one install call needs from its environment.

    Built per request and discarded afterwards; nothing here is shared
    between concurrent installs.
    """

    prefs: InstallPreferences
    timeout_ms: int
    host: HostInfo
    run: CommandRunner = run_command_with_timeout
    which: BinaryLookup = shutil.which
    brew_exe: str | None = None

    def has_binary(self, name: str) -> bool:
        return self.which(name) is not None
