#!/usr/bin/env python3
# part5_main.py — the install pipeline for DevEssential

import sys
from typing import Dict

from part0_platform import detect_platform
from part1_bootstrap import (
    BootstrapError,
    ensure_privileges,
    log_error,
    print_banner,
)
from part2_helpers import (
    ensure_homebrew,
    install_packages,
    resolve_package_set,
    update_packages,
)
from part3_nvm import install_nvm
from part4_verify import show_next_steps, verify_installation


def run_pipeline() -> Dict[str, bool]:
    """Run every stage in order; the first BootstrapError stops the run."""
    print_banner()
    info = detect_platform()
    prefix = ensure_privileges(info)
    ensure_homebrew(info)
    update_packages(info, prefix)
    packages = resolve_package_set(info.family)
    install_packages(info, packages, prefix)
    install_nvm()
    report = verify_installation()
    show_next_steps()
    return report


def main() -> int:
    try:
        run_pipeline()
    except BootstrapError as e:
        log_error(str(e))
        return 1
    except OSError as e:
        log_error(f"Installation failed: {e}")
        return 1
    except KeyboardInterrupt:
        log_error("Installation interrupted")
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
