"""Collapse installer output into a single diagnosable failure line."""

import re

from skill_install.models import CommandResult, HostInfo

SUMMARY_MAX_LEN = 200

_ERROR_LEADING = re.compile(r"^error\b", re.IGNORECASE)
_FAILURE_KEYWORD = re.compile(r"(?:\berr!|\berror:|\bfailed\b)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def summarize_install_output(text: str) -> str | None:
    """Pick the most telling line of tool output.

    Priority: a line starting with "error", then any line with a failure
    keyword (ERR!, error:, failed), then the last non-empty line.
    """
    lines = [line.strip() for line in text.strip().split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        return None

    preferred = next((line for line in lines if _ERROR_LEADING.search(line)), None)
    if preferred is None:
        preferred = next((line for line in lines if _FAILURE_KEYWORD.search(line)), None)
    if preferred is None:
        preferred = lines[-1]

    normalized = _WHITESPACE.sub(" ", preferred).strip()
    if len(normalized) > SUMMARY_MAX_LEN:
        return normalized[: SUMMARY_MAX_LEN - 1] + "…"
    return normalized


def detect_platform_incompatibility_hint(output: str, host: HostInfo) -> str | None:
    """Spot arch/OS requirement phrases that contradict the running host."""
    hay = output.lower()

    # brew formula requirement style (arch-specific bottles)
    if "required: arm64" in hay or "arm64 architecture" in hay:
        if host.arch != "arm64":
            return f"Not supported on this machine architecture (requires arm64; current {host.arch})."

    if "requires macos" in hay or "macos is required" in hay:
        if host.system != "darwin":
            return f"Not supported on this OS (requires macOS; current {host.system})."

    if "requires linux" in hay or "linux is required" in hay:
        if host.system != "linux":
            return f"Not supported on this OS (requires Linux; current {host.system})."

    return None


def format_install_failure_message(result: CommandResult, host: HostInfo) -> str:
    code = f"exit {result.code}" if result.code is not None else "unknown exit"
    summary = summarize_install_output(result.stderr) or summarize_install_output(result.stdout)
    hint = detect_platform_incompatibility_hint(f"{result.stderr}\n{result.stdout}", host)

    if not summary:
        return f"Install failed ({code}): {hint}" if hint else f"Install failed ({code})"
    if hint:
        return f"Install failed ({code}): {hint} {summary}"
    return f"Install failed ({code}): {summary}"
