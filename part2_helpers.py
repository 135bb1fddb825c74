#!/usr/bin/env python3
# part2_helpers.py — subprocess, remote installer + package manager helpers for DevEssential

import os
import shutil
import hashlib
import subprocess
import tempfile
import urllib.request
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from part0_platform import PlatformFamily, PlatformInfo
from part1_bootstrap import (
    console, log, log_info, log_success, log_warn, DEBUG, HOMEBREW_INSTALL_URL,
    InstallFailedError, RefreshFailedError, PackageManagerInstallError,
    PackageManagerMissingError, ScriptDownloadError, ScriptExecutionError,
    UnsupportedPlatformError,
)
from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn, TimeElapsedColumn
from rich.panel import Panel
from rich.live import Live
from rich.text import Text
from rich.layout import Layout


# =============================================================================
# Subprocess runner with live output
# =============================================================================

def run_with_live_output(cmd: List[str], title: str, soft_total: int = 100,
                         env: Optional[Dict[str, str]] = None) -> Tuple[int, str]:
    """
    Run a command with a live progress bar + scrolling log panel.
    - soft_total: logical 'total' for the bar; we advance by 1 per line safely.
    - env: full environment for the child; stdin is closed so nothing can wait on a prompt.
    Returns (exit_code, combined_output_string).
    """
    if DEBUG:
        console.print(f"[grey50]$ {' '.join(cmd)}[/]")

    layout = Layout()
    layout.split_column(Layout(name="progress", size=3), Layout(name="logs", ratio=1))

    logs: List[str] = [title]
    combined: List[str] = []

    progress = Progress(
        SpinnerColumn(),
        BarColumn(),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
    task = progress.add_task(title, total=soft_total)

    layout["progress"].update(Panel(progress, title="Progress"))
    layout["logs"].update(Panel(Text("\n".join(logs)), title="Live Log"))

    try:
        proc = subprocess.Popen(
            cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            text=True, encoding="utf-8", errors="replace", env=env,
        )
    except FileNotFoundError:
        msg = f"Command not found: {cmd[0]}"
        console.print(f"[red]{msg}[/]")
        log(msg)
        return 127, msg

    tick = 0
    with Live(layout, refresh_per_second=12, console=console, screen=False):
        while True:
            line = proc.stdout.readline()
            if not line and proc.poll() is not None:
                break
            if line:
                s = line.rstrip()
                combined.append(s)
                logs.append(s)
                if len(logs) > 40:
                    logs = logs[-40:]
                tick += 1
                if tick <= soft_total:
                    progress.advance(task, 1)
                layout["logs"].update(Panel(Text("\n".join(logs)), title="Live Log"))

        proc.wait()
        progress.update(task, completed=soft_total)
        layout["progress"].update(Panel(progress, title="Progress"))

    output = "\n".join(combined)
    log(f"[run] {cmd} -> rc={proc.returncode}")
    if output.strip():
        log(output[:8000])
    return proc.returncode or 0, output


# Variables bash sets on its own; never copied back into our environment
_SHELL_INTERNAL_VARS = {"_", "SHLVL", "PWD", "OLDPWD"}


def source_environment(snippet: str) -> Dict[str, str]:
    """
    Run a shell snippet (e.g. `eval "$(brew shellenv)"`) in bash and copy the
    resulting environment into os.environ. Returns the variables that changed.
    """
    try:
        r = subprocess.run(["bash", "-c", f"{snippet}\nenv -0"], capture_output=True, text=True)
    except FileNotFoundError:
        log("[env] bash not found, cannot load environment")
        return {}
    if r.returncode != 0:
        log(f"[env] snippet failed rc={r.returncode}: {r.stderr.strip()[:2000]}")
        return {}

    changed: Dict[str, str] = {}
    for entry in r.stdout.split("\0"):
        if "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        if key in _SHELL_INTERNAL_VARS or key.startswith("BASH_FUNC_"):
            continue
        if os.environ.get(key) != value:
            changed[key] = value
    os.environ.update(changed)
    log(f"[env] loaded {sorted(changed)}")
    return changed


# =============================================================================
# Remote installer scripts (download, verify, then execute)
# =============================================================================

def download_script(url: str, dest: str) -> str:
    try:
        urllib.request.urlretrieve(url, dest)
    except (OSError, ValueError) as e:
        raise ScriptDownloadError(f"Could not download {url}: {e}") from e
    if not os.path.isfile(dest) or os.path.getsize(dest) == 0:
        raise ScriptDownloadError(f"Downloaded installer from {url} is empty")

    with open(dest, "rb") as f:
        digest = hashlib.sha256(f.read()).hexdigest()
    log(f"[download] {url} -> {dest} sha256={digest}")
    return dest


def run_remote_installer(url: str, name: str, shell: str = "bash",
                         env: Optional[Dict[str, str]] = None) -> None:
    """
    Fetch an installer script into a temporary directory, then run it with `shell`.
    The script keeps the terminal so it can prompt the user.
    """
    with tempfile.TemporaryDirectory(prefix="devessential-") as tmp:
        script = download_script(url, os.path.join(tmp, "install.sh"))
        log_info(f"Running {name} installer...")
        try:
            r = subprocess.run([shell, script], env=env)
        except OSError as e:
            raise ScriptExecutionError(f"Could not run {name} installer: {e}") from e
        log(f"[run] {name} installer -> rc={r.returncode}")
        if r.returncode != 0:
            raise ScriptExecutionError(f"{name} installer exited with code {r.returncode}")


# =============================================================================
# Package managers
# =============================================================================

@dataclass(frozen=True)
class PackageManager:
    name: str
    label: str
    update_cmd: Tuple[str, ...]
    install_cmd: Tuple[str, ...]
    needs_privilege: bool
    env: Tuple[Tuple[str, str], ...] = ()


PACKAGE_MANAGERS = {
    PlatformFamily.LINUX: PackageManager(
        name="apt-get",
        label="Linux",
        update_cmd=("apt-get", "update"),
        install_cmd=("apt-get", "install", "-y"),
        needs_privilege=True,
        # debconf prompts (tzdata) would wait on a closed stdin
        env=(("DEBIAN_FRONTEND", "noninteractive"),),
    ),
    PlatformFamily.MACOS: PackageManager(
        name="brew",
        label="Homebrew",
        update_cmd=("brew", "update"),
        install_cmd=("brew", "install"),
        needs_privilege=False,
    ),
}

COMMON_PACKAGES = ("make", "curl", "wget", "git", "llvm")

PLATFORM_PACKAGES = {
    PlatformFamily.LINUX: (
        "build-essential",
        "libssl-dev",
        "zlib1g-dev",
        "libbz2-dev",
        "libreadline-dev",
        "libsqlite3-dev",
        "libncursesw5-dev",
        "xz-utils",
        "tk-dev",
        "libxml2-dev",
        "libxmlsec1-dev",
        "libffi-dev",
        "liblzma-dev",
    ),
    PlatformFamily.MACOS: (
        "openssl@3",
        "zlib",
        "bzip2",
        "readline",
        "sqlite",
        "xz",
        "tk",
        "libxml2",
        "libffi",
    ),
}


def package_manager_for(info: PlatformInfo) -> PackageManager:
    try:
        return PACKAGE_MANAGERS[info.family]
    except KeyError:
        raise UnsupportedPlatformError(f"No package manager for {info.family.value}") from None


def resolve_package_set(family: PlatformFamily) -> Tuple[str, ...]:
    try:
        extra = PLATFORM_PACKAGES[family]
    except KeyError:
        raise UnsupportedPlatformError(f"No package set for {family.value}") from None
    return COMMON_PACKAGES + extra


def _command(pm: PackageManager, base: Sequence[str], prefix: Sequence[str]) -> List[str]:
    if not pm.needs_privilege:
        return list(base)
    if prefix and pm.env:
        # sudo resets the environment, pass the variables through env(1)
        return [*prefix, "env", *(f"{k}={v}" for k, v in pm.env), *base]
    return [*prefix, *base]


def _environment(pm: PackageManager) -> Dict[str, str]:
    return {**os.environ, **dict(pm.env)}


def update_packages(info: PlatformInfo, prefix: Sequence[str] = ()) -> None:
    pm = package_manager_for(info)
    log_info("Updating package lists...")
    rc, _ = run_with_live_output(_command(pm, pm.update_cmd, prefix), f"{pm.name} update",
                                 soft_total=60, env=_environment(pm))
    if rc != 0:
        raise RefreshFailedError(f"Failed to update package lists ({pm.name} exited with code {rc})")
    log_success(f"{pm.label} packages updated")


def install_packages(info: PlatformInfo, packages: Sequence[str], prefix: Sequence[str] = ()) -> None:
    pm = package_manager_for(info)
    if not packages:
        raise InstallFailedError("Package set is empty, nothing to install")
    log_info("Installing essential development packages...")
    log_info(f"Installing packages: {' '.join(packages)}")
    cmd = _command(pm, (*pm.install_cmd, *packages), prefix)
    rc, _ = run_with_live_output(cmd, f"{pm.name} install",
                                 soft_total=max(120, len(packages) * 20), env=_environment(pm))
    if rc != 0:
        raise InstallFailedError(f"Failed to install packages ({pm.name} exited with code {rc})")
    log_success("All packages installed successfully!")


# ---------------- macOS (brew) helpers ----------------

BREW_LOCATIONS = ("/opt/homebrew/bin/brew", "/usr/local/bin/brew")


def load_brew_shellenv() -> bool:
    """Load `brew shellenv` into this process (Apple Silicon first, then Intel)."""
    for brew in BREW_LOCATIONS:
        if os.path.isfile(brew):
            source_environment(f'eval "$({brew} shellenv)"')
            return True
    log_warn("brew binary not found in the standard Homebrew locations")
    return False


def ensure_homebrew(info: PlatformInfo) -> None:
    if info.family is not PlatformFamily.MACOS:
        return

    if shutil.which("brew"):
        log_info("Homebrew is already installed")
        return

    log_warn("Homebrew not found, installing...")
    try:
        run_remote_installer(HOMEBREW_INSTALL_URL, "Homebrew", shell="/bin/bash")
    except (ScriptDownloadError, ScriptExecutionError) as e:
        raise PackageManagerInstallError(f"Homebrew installation failed: {e}") from e

    load_brew_shellenv()
    if not shutil.which("brew"):
        raise PackageManagerMissingError("Homebrew installation failed: brew is not on PATH")
    log_success("Homebrew installed")
