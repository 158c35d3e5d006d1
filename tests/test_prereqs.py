"""Prerequisite resolution: allow-list boundary, fallback order, re-check after install."""

import asyncio
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import FakePath, FakeRunner, linux_host, make_context, make_entry
from skill_install.core.prereqs import BIN_INSTALL_ALLOWLIST, ensure_prerequisite_bins, try_install_prereq_bin
from skill_install.models import CommandResult, HostInfo, InstallPreferences, NodeInstallSpec

SPEC = NodeInstallSpec(package="some-cli")


def _ensure(entry, ctx, spec=SPEC):
    return asyncio.run(ensure_prerequisite_bins(entry, spec, ctx))


def test_present_binary_runs_nothing():
    runner = FakeRunner()
    ctx = make_context(runner, FakePath("git"))
    outcome = _ensure(make_entry(bins=["git"]), ctx)
    assert outcome.ok is True
    assert runner.calls == []


def test_any_bins_none_present_fails_before_install():
    runner = FakeRunner()
    ctx = make_context(runner, FakePath(), brew_exe="brew")
    outcome = _ensure(make_entry(bins=["git"], any_bins=["a", "b"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "Missing prerequisite: need one of [a, b]"
    assert runner.calls == []


def test_any_bins_one_present_is_enough():
    runner = FakeRunner()
    ctx = make_context(runner, FakePath("b"))
    assert _ensure(make_entry(any_bins=["a", "b"]), ctx).ok is True


def test_unlisted_binary_never_spawns():
    assert "definitely-not-allowlisted" not in BIN_INSTALL_ALLOWLIST
    runner = FakeRunner()
    ctx = make_context(runner, FakePath("brew", "apt-get"), host=linux_host(root=True), brew_exe="brew")
    outcome = _ensure(make_entry(bins=["definitely-not-allowlisted"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "No auto-installer allowlisted for missing binary: definitely-not-allowlisted"
    assert runner.calls == []


def test_allowlist_is_read_only():
    try:
        BIN_INSTALL_ALLOWLIST["evil"] = BIN_INSTALL_ALLOWLIST["git"]
    except TypeError:
        pass
    else:
        raise AssertionError("allow-list accepted a new entry")


def test_brew_first_when_preferred():
    path = FakePath("brew")
    runner = FakeRunner(path=path, installs={("brew", "install", "ffmpeg"): "ffmpeg"})
    ctx = make_context(runner, path, brew_exe="brew")
    outcome = _ensure(make_entry(bins=["ffmpeg"]), ctx)
    assert outcome.ok is True
    assert runner.calls == [["brew", "install", "ffmpeg"]]
    assert "==> prereq ffmpeg: Installed prerequisite (brew): ffmpeg" in outcome.stdout
    assert [a.ok for a in outcome.attempts] == [True]


def test_brew_skipped_when_not_preferred():
    path = FakePath("brew", "apt-get")
    runner = FakeRunner(path=path, installs={("apt-get",): "git"})
    ctx = make_context(
        runner,
        path,
        host=linux_host(root=True),
        prefs=InstallPreferences(prefer_brew=False),
        brew_exe="brew",
    )
    outcome = _ensure(make_entry(bins=["git"]), ctx)
    assert outcome.ok is True
    assert runner.calls == [["apt-get", "install", "-y", "git"]]


def test_falls_back_to_apt_after_brew_failure():
    path = FakePath("brew", "apt-get")
    runner = FakeRunner(
        responses={("brew",): CommandResult(code=1, stderr="brew boom")},
        path=path,
        installs={("apt-get",): "ffmpeg"},
    )
    ctx = make_context(runner, path, host=linux_host(root=True), brew_exe="brew")
    outcome = _ensure(make_entry(bins=["ffmpeg"]), ctx)
    assert outcome.ok is True
    assert runner.calls == [["brew", "install", "ffmpeg"], ["apt-get", "install", "-y", "ffmpeg"]]


def test_dnf_uses_its_own_package_names():
    path = FakePath("dnf")
    runner = FakeRunner(path=path, installs={("dnf",): "go"})
    ctx = make_context(runner, path, host=linux_host(root=True))
    outcome = _ensure(make_entry(bins=["go"]), ctx)
    assert outcome.ok is True
    assert runner.calls == [["dnf", "install", "-y", "golang"]]


def test_os_manager_requires_root():
    runner = FakeRunner()
    ctx = make_context(runner, FakePath("apt-get"), host=linux_host(root=False))
    outcome = _ensure(make_entry(bins=["git"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "No applicable installer for git (apt-get present but needs root)"
    assert outcome.warnings == ["apt-get can install git but requires root; skipped"]
    assert runner.calls == []


def test_os_manager_linux_only():
    runner = FakeRunner()
    mac = HostInfo(system="darwin", arch="arm64", is_root=True)
    ctx = make_context(runner, FakePath("apt-get"), host=mac)
    outcome = _ensure(make_entry(bins=["git"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "No applicable installer for git"
    assert runner.calls == []


def test_all_attempts_fail_surfaces_last_output():
    path = FakePath("brew", "apt-get")
    runner = FakeRunner(
        responses={
            ("brew",): CommandResult(code=1, stderr="brew boom"),
            ("apt-get",): CommandResult(code=100, stdout="Reading package lists...", stderr="E: Unable to locate package git"),
        },
        path=path,
    )
    ctx = make_context(runner, path, host=linux_host(root=True), brew_exe="brew")
    attempt = asyncio.run(try_install_prereq_bin("git", ctx))
    assert attempt.ok is False
    assert attempt.message == "Failed to auto-install prerequisite (apt-get): git"
    assert attempt.code == 100
    assert attempt.stderr == "E: Unable to locate package git"
    assert attempt.stdout == "Reading package lists..."
    # each strategy ran once, none repeated
    assert len(runner.calls) == 2


def test_failure_propagates_output():
    path = FakePath("brew")
    runner = FakeRunner(responses={("brew",): CommandResult(code=1, stderr="No bottle available")}, path=path)
    ctx = make_context(runner, path, brew_exe="brew")
    outcome = _ensure(make_entry(bins=["ffmpeg"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "Failed to auto-install prerequisite (brew): ffmpeg"
    assert "==> prereq ffmpeg stderr" in outcome.stderr
    assert "No bottle available" in outcome.stderr


def test_still_missing_after_claimed_success():
    path = FakePath("brew")
    runner = FakeRunner(path=path)  # exits 0 but never places git on PATH
    ctx = make_context(runner, path, brew_exe="brew")
    outcome = _ensure(make_entry(bins=["git"]), ctx)
    assert outcome.ok is False
    assert outcome.message == "Prerequisites still missing after auto-install: git"
    assert runner.calls == [["brew", "install", "git"]]


def test_spec_bins_merged_and_deduplicated():
    path = FakePath("brew")
    runner = FakeRunner(
        path=path,
        installs={("brew", "install", "git"): "git", ("brew", "install", "curl"): "curl"},
    )
    ctx = make_context(runner, path, brew_exe="brew")
    spec = NodeInstallSpec(package="x", bins=["curl", " git "])
    outcome = _ensure(make_entry(bins=["git", ""]), ctx, spec=spec)
    assert outcome.ok is True
    assert runner.calls == [["brew", "install", "git"], ["brew", "install", "curl"]]


def test_stops_at_first_failing_binary():
    path = FakePath("brew")
    runner = FakeRunner(path=path, installs={("brew", "install", "git"): "git"})
    ctx = make_context(runner, path, brew_exe="brew")
    outcome = _ensure(make_entry(bins=["not-listed", "git"]), ctx)
    assert outcome.ok is False
    assert "not-listed" in outcome.message
    assert runner.calls == []
