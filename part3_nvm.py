#!/usr/bin/env python3
# part3_nvm.py — NVM install, shell detection and profile patching

import os
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from part1_bootstrap import (
    log_info, log_success, log_warn, NVM_INSTALL_URL,
    AuxiliaryInstallError, ScriptDownloadError, ScriptExecutionError,
)
from part2_helpers import run_remote_installer, source_environment

BEGIN_MARKER = "# >>> NVM setup >>>"
END_MARKER = "# <<< NVM setup <<<"

POSIX_BLOCK = "\n".join([
    BEGIN_MARKER,
    'export NVM_DIR="$HOME/.nvm"',
    '[ -s "$NVM_DIR/nvm.sh" ] && \\. "$NVM_DIR/nvm.sh"',
    '[ -s "$NVM_DIR/bash_completion" ] && \\. "$NVM_DIR/bash_completion"',
    END_MARKER,
]) + "\n"

# fish cannot source nvm.sh; export NVM_DIR so fish plugins (nvm.fish, bass) find it
FISH_BLOCK = "\n".join([
    BEGIN_MARKER,
    'set -gx NVM_DIR "$HOME/.nvm"',
    END_MARKER,
]) + "\n"

# ensure_profile_block results
ADDED = "added"
UPDATED = "updated"
UNCHANGED = "unchanged"


class ShellKind(Enum):
    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"
    OTHER = "other"


PROFILE_FILES = {
    ShellKind.BASH: (".bashrc",),
    ShellKind.ZSH: (".zshrc",),
    ShellKind.FISH: (".config", "fish", "config.fish"),
    ShellKind.OTHER: (".profile",),
}


@dataclass(frozen=True)
class ShellProfile:
    path: str
    kind: ShellKind
    exists: bool
    already_configured: bool


def shell_name(shell_env: Optional[str]) -> str:
    return os.path.basename((shell_env or "").rstrip("/"))


def detect_shell(shell_env: Optional[str]) -> ShellKind:
    name = shell_name(shell_env)
    for kind in ShellKind:
        if kind is not ShellKind.OTHER and kind.value == name:
            return kind
    return ShellKind.OTHER


def profile_path(kind: ShellKind, home: str) -> str:
    return os.path.join(home, *PROFILE_FILES[kind])


def render_block(kind: ShellKind) -> str:
    return FISH_BLOCK if kind is ShellKind.FISH else POSIX_BLOCK


def _find_block(text: str):
    """Return (start, end) offsets of the whole marker lines block, or None."""
    begin = text.find(BEGIN_MARKER)
    if begin == -1:
        return None
    end = text.find(END_MARKER, begin + len(BEGIN_MARKER))
    if end == -1:
        return None
    start = text.rfind("\n", 0, begin) + 1
    stop = text.find("\n", end)
    stop = len(text) if stop == -1 else stop + 1
    return start, stop


def _read(path: str) -> str:
    if not os.path.isfile(path):
        return ""
    with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
        return f.read()


def read_profile(path: str, kind: ShellKind) -> ShellProfile:
    exists = os.path.isfile(path)
    text = _read(path) if exists else ""
    return ShellProfile(
        path=path,
        kind=kind,
        exists=exists,
        already_configured=_find_block(text) is not None,
    )


def ensure_profile_block(path: str, kind: ShellKind) -> str:
    """
    Put the NVM block into `path`.
    An existing BEGIN/END marker pair is replaced in place; otherwise the block
    is appended after a blank line. Returns ADDED, UPDATED or UNCHANGED.
    """
    text = _read(path)
    block = render_block(kind)
    span = _find_block(text)

    if span is not None:
        start, stop = span
        if text[start:stop] == block:
            return UNCHANGED
        with open(path, "w", encoding="utf-8", errors="surrogateescape") as f:
            f.write(text[:start] + block + text[stop:])
        return UPDATED

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    if not text:
        sep = ""
    elif text.endswith("\n"):
        sep = "\n"
    else:
        sep = "\n\n"
    with open(path, "a", encoding="utf-8", errors="surrogateescape") as f:
        f.write(sep + block)
    return ADDED


def load_nvm(home: str) -> None:
    """Source nvm.sh into the current process environment."""
    nvm_dir = os.path.join(home, ".nvm")
    os.environ["NVM_DIR"] = nvm_dir
    source_environment(
        f"export NVM_DIR={shlex.quote(nvm_dir)}\n"
        '[ -s "$NVM_DIR/nvm.sh" ] && \\. "$NVM_DIR/nvm.sh"'
    )


def install_nvm(url: str = NVM_INSTALL_URL, shell_env: Optional[str] = None,
                home: Optional[str] = None) -> ShellProfile:
    log_info("Installing NVM (Node Version Manager)...")
    try:
        run_remote_installer(url, "NVM")
    except (ScriptDownloadError, ScriptExecutionError) as e:
        raise AuxiliaryInstallError(f"Failed to install NVM: {e}") from e
    log_success("NVM install script executed")

    home = home or os.path.expanduser("~")
    load_nvm(home)
    log_success("NVM initialized in current session")

    if shell_env is None:
        shell_env = os.environ.get("SHELL", "")
    kind = detect_shell(shell_env)
    path = profile_path(kind, home)
    if kind is ShellKind.OTHER:
        log_warn(f"Unrecognized shell ({shell_name(shell_env) or 'unset'}), defaulting to ~/.profile")

    try:
        result = ensure_profile_block(path, kind)
        profile = read_profile(path, kind)
    except (OSError, UnicodeError) as e:
        raise AuxiliaryInstallError(f"Could not update {path}: {e}") from e
    if result == ADDED:
        log_success(f"NVM configuration added to {path}")
    elif result == UPDATED:
        log_success(f"NVM configuration updated in {path}")
    else:
        log_info(f"NVM configuration already present in {path}")
    return profile
