"""Pattern-based security scanner for skill directories.

Advisory only: the installer turns findings into warnings and never
blocks on them.
"""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from skill_install.models import ScanFinding, ScanSummary

logger = logging.getLogger("skill-install.scanner")

# Patterns that indicate dangerous code in skill files
CRITICAL_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"os\.system\s*\([^)]*(?:input|format|%|\{)"), "Command injection via dynamic input"),
    (re.compile(r"subprocess\.(?:run|call|Popen)\s*\([^)]*shell\s*=\s*True"), "Shell injection via subprocess"),
    (re.compile(r"eval\s*\(\s*(?:input|request|os\.environ)"), "Code injection via eval"),
    (re.compile(r"exec\s*\(\s*(?:input|request|compile)"), "Code execution via exec"),
    (re.compile(r"shutil\.rmtree\s*\(\s*['\"]\/['\"]"), "Root directory deletion"),
    (re.compile(r"rm\s+-rf\s+/(?:\s|$)"), "Root directory deletion"),
    (re.compile(r"os\.environ\.get\s*\(\s*['\"](?:PASSWORD|API_KEY|SECRET|TOKEN|PRIVATE)"), "Credential harvesting"),
    (re.compile(r"curl\s[^|]*\|\s*(?:ba|z)?sh\b"), "Remote script piped to shell"),
    (re.compile(r"requests\.(?:post|put)\s*\([^)]*(?:password|api_key|secret|token)"), "Data exfiltration via HTTP"),
    (re.compile(r"child_process\.exec(?:Sync)?\s*\([^)]*(?:\+|\$\{)"), "Shell injection via child_process"),
    (re.compile(r"open\s*\(\s*['\"](?:/etc/passwd|/etc/shadow)"), "Sensitive file access"),
]

# Suspicious but common in legitimate code
WARNING_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\beval\s*\("), "Use of eval()"),
    (re.compile(r"\bexec\s*\("), "Use of exec()"),
    (re.compile(r"os\.system\s*\("), "Use of os.system()"),
    (re.compile(r"__import__\s*\("), "Dynamic import"),
    (re.compile(r"\bnew\s+Function\s*\("), "Dynamic function construction"),
    (re.compile(r"base64\.b64decode\s*\("), "Base64-decoded payload"),
]

SCANNABLE_EXTENSIONS = {".py", ".sh", ".bash", ".js", ".ts", ".mjs", ".cjs"}

_CODE_BLOCK = re.compile(r"```(?:python|py|bash|sh|js|javascript|ts)\n(.*?)```", re.DOTALL)


def _scan_lines(text: str, rel: str, first_line: int = 1) -> list[ScanFinding]:
    findings: list[ScanFinding] = []
    for offset, line in enumerate(text.splitlines()):
        lineno = first_line + offset
        critical = False
        for pattern, description in CRITICAL_PATTERNS:
            if pattern.search(line):
                findings.append(ScanFinding(message=description, file=rel, line=lineno, severity="critical"))
                critical = True
        if critical:
            continue
        for pattern, description in WARNING_PATTERNS:
            if pattern.search(line):
                findings.append(ScanFinding(message=description, file=rel, line=lineno, severity="warn"))
    return findings


def _iter_scannable_files(directory: Path) -> Iterator[Path]:
    """Yield files with scannable extensions."""
    for path in sorted(directory.rglob("*")):
        if path.is_file() and path.suffix.lower() in SCANNABLE_EXTENSIONS:
            yield path


def scan_directory(skill_dir: Path) -> ScanSummary:
    """Scan code files and Markdown code blocks under skill_dir."""
    findings: list[ScanFinding] = []
    files_scanned = 0

    for file_path in _iter_scannable_files(skill_dir):
        try:
            content = file_path.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue
        files_scanned += 1
        findings.extend(_scan_lines(content, str(file_path.relative_to(skill_dir))))

    # Embedded code blocks in the skill docs
    for md_file in sorted(skill_dir.rglob("*.md")):
        try:
            content = md_file.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue
        rel = str(md_file.relative_to(skill_dir))
        for block in _CODE_BLOCK.finditer(content):
            first_line = content.count("\n", 0, block.start(1)) + 1
            findings.extend(_scan_lines(block.group(1), rel, first_line))

    critical = sum(1 for f in findings if f.severity == "critical")
    warn = len(findings) - critical

    if findings:
        logger.warning("Security scan for %s: %d critical, %d warn", skill_dir, critical, warn)
    else:
        logger.info("Security scan for %s: clean (%d files)", skill_dir, files_scanned)

    return ScanSummary(scanned_files=files_scanned, critical=critical, warn=warn, findings=findings)
