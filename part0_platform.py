#!/usr/bin/env python3
# part0_platform.py — OS & distribution detection

import os
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from part1_bootstrap import (
    log_info, log_success, log_warn,
    UnsupportedPlatformError, MissingOSDescriptorError,
)

OS_RELEASE_FILE = "/etc/os-release"
ARCH = platform.machine()

# Debian family distributions that ship the apt package names we install
SUPPORTED_DISTROS = frozenset({"ubuntu", "debian", "pop", "elementary", "zorin", "mint"})


class PlatformFamily(Enum):
    LINUX = "linux"
    MACOS = "macos"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class PlatformInfo:
    family: PlatformFamily
    distribution_id: str
    pretty_name: str
    supported: bool = True
    kernel: str = ""
    arch: str = ARCH


def parse_os_release(text: str) -> Dict[str, str]:
    """
    Parse os-release(5) content into a dict.
    Blank lines and comments are skipped; surrounding quotes are stripped.
    """
    info: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        info[key.strip()] = value
    return info


def _linux_info(kernel: str) -> PlatformInfo:
    path = OS_RELEASE_FILE
    if not os.path.isfile(path):
        raise MissingOSDescriptorError(f"Unknown Linux distribution ({path} not found)")
    with open(path, "r", encoding="utf-8") as f:
        release = parse_os_release(f.read())

    distro = release.get("ID", "").lower()
    pretty = release.get("PRETTY_NAME") or release.get("NAME") or distro or "Linux"
    supported = distro in SUPPORTED_DISTROS
    if supported:
        log_success(f"Detected supported Linux system: {pretty}")
    else:
        log_warn(f"Detected unsupported Linux distro: {pretty}")
        log_warn("Some packages may not install correctly")
    return PlatformInfo(
        family=PlatformFamily.LINUX,
        distribution_id=distro,
        pretty_name=pretty,
        supported=supported,
        kernel=kernel,
    )


def _mac_info(kernel: str) -> PlatformInfo:
    version = platform.mac_ver()[0]
    pretty = f"macOS {version}".strip()
    log_success("Detected macOS system")
    return PlatformInfo(
        family=PlatformFamily.MACOS,
        distribution_id="macos",
        pretty_name=pretty,
        kernel=kernel,
    )


def detect_platform(kernel: Optional[str] = None) -> PlatformInfo:
    log_info("Checking system compatibility...")
    kernel = kernel if kernel is not None else platform.system()
    if kernel.startswith("Linux"):
        return _linux_info(kernel)
    if kernel.startswith("Darwin"):
        return _mac_info(kernel)
    raise UnsupportedPlatformError(f"Unsupported system: {kernel or 'unknown'}")
