#!/usr/bin/env python3
# part1_bootstrap.py — console, logging, errors, sudo privileges

import os
import subprocess
import tempfile
from datetime import datetime
from typing import Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

APP_NAME = "DevEssential"


# Debug flag
def _is_debugging() -> bool:
    return os.environ.get("DEVESSENTIAL_DEBUG") == "1"


DEBUG = _is_debugging()

NVM_INSTALL_URL = os.environ.get(
    "DEVESSENTIAL_NVM_INSTALL_URL",
    "https://raw.githubusercontent.com/nvm-sh/nvm/HEAD/install.sh",
)
HOMEBREW_INSTALL_URL = os.environ.get(
    "DEVESSENTIAL_HOMEBREW_INSTALL_URL",
    "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh",
)

console = Console()


# Logging paths
def _safe_log_dir() -> str:
    xdg = os.environ.get("XDG_DATA_HOME") or os.path.expanduser(os.path.join("~", ".local", "share"))
    pd_dir = os.path.join(xdg, APP_NAME)
    try:
        os.makedirs(pd_dir, exist_ok=True)
    except OSError:
        pd_dir = tempfile.gettempdir()
    return pd_dir


LOG_DIR = _safe_log_dir()
LOG_FILE = os.path.join(LOG_DIR, "devessential.log")


def log(msg: str) -> None:
    try:
        line = f"{datetime.now():%Y-%m-%d %H:%M:%S} | {msg}"
        with open(LOG_FILE, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        pass


def tail_log(n: int = 200) -> str:
    try:
        with open(LOG_FILE, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
            return "\n".join(lines[-n:])
    except OSError:
        return ""


# ---------------- Severity-tagged status lines ----------------

def _status(tag: str, style: str, msg: str) -> None:
    console.print(f"[{style}]\\[{tag}][/] {escape(msg)}")
    log(f"[{tag}] {msg}")


def log_info(msg: str) -> None:
    _status("INFO", "bold blue", msg)


def log_success(msg: str) -> None:
    _status("SUCCESS", "bold green", msg)


def log_warn(msg: str) -> None:
    _status("WARN", "bold yellow", msg)


def log_error(msg: str) -> None:
    _status("ERROR", "bold red", msg)


def print_banner() -> None:
    console.print(Panel.fit(
        "[bold]DevEssential[/]\nEssential Development Packages",
        border_style="blue",
    ))


# ---------------- Errors ----------------

class BootstrapError(RuntimeError):
    """A fatal stage failure; the run stops with exit code 1."""


class UnsupportedPlatformError(BootstrapError):
    pass


class MissingOSDescriptorError(BootstrapError):
    pass


class PrivilegeDeniedError(BootstrapError):
    pass


class PackageManagerMissingError(BootstrapError):
    pass


class PackageManagerInstallError(BootstrapError):
    pass


class RefreshFailedError(BootstrapError):
    pass


class InstallFailedError(BootstrapError):
    pass


class AuxiliaryInstallError(BootstrapError):
    pass


class ScriptDownloadError(BootstrapError):
    pass


class ScriptExecutionError(BootstrapError):
    pass


# ---------------- Privileges ----------------

def _is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def ensure_privileges(info) -> Tuple[str, ...]:
    """
    Make sure package-manager commands can run elevated.
    Returns the command prefix to use ("sudo",) or () when none is needed.
    """
    from part0_platform import PlatformFamily

    if info.family is PlatformFamily.MACOS:
        log_info("Skipping sudo check for macOS")
        return ()
    if info.family is not PlatformFamily.LINUX:
        raise UnsupportedPlatformError(f"Unsupported system: {info.kernel or info.family.value}")

    log_info("Checking sudo privileges...")
    if _is_root():
        log_success("Running as root, sudo not required")
        return ()

    try:
        cached = subprocess.run(["sudo", "-n", "true"], capture_output=True, text=True)
    except FileNotFoundError:
        raise PrivilegeDeniedError("sudo is not installed; re-run as root")

    if cached.returncode != 0:
        log_info("This script requires sudo privileges to install packages")
        log_info("You will be prompted for your password")
        prompt = subprocess.run(["sudo", "true"])
        if prompt.returncode != 0:
            raise PrivilegeDeniedError("Failed to obtain sudo privileges")

    log_success("Sudo privileges confirmed")
    return ("sudo",)
