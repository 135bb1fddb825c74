#!/usr/bin/env python3
# part4_verify.py — post-install checks and next-step guidance

import shutil
from typing import Dict

from part1_bootstrap import console, log_info, log_success, log_warn

VERIFY_TOOLS = ("gcc", "make", "curl", "wget", "git")

NEXT_STEPS = [
    ("Install pyenv for Python version management:", [
        "curl https://pyenv.run | bash",
    ]),
    ("Add pyenv to your shell configuration:", [
        "echo 'export PYENV_ROOT=\"$HOME/.pyenv\"' >> ~/.bashrc",
        "echo '[[ -d $PYENV_ROOT/bin ]] && export PATH=\"$PYENV_ROOT/bin:$PATH\"' >> ~/.bashrc",
        "echo 'eval \"$(pyenv init - bash)\"' >> ~/.bashrc",
    ]),
    ("Install Python versions:", [
        "pyenv install 3.11.5",
        "pyenv global 3.11.5",
    ]),
    ("Reload shell again to ensure NVM is loaded:", [
        "exec \"$SHELL\"",
    ]),
    ("Install Node.js using NVM:", [
        "nvm install --lts",
        "nvm use --lts",
    ]),
]


def verify_installation() -> Dict[str, bool]:
    """Report which key tools resolve on PATH. Never fails the run."""
    log_info("Verifying installation...")
    report: Dict[str, bool] = {}
    for tool in VERIFY_TOOLS:
        found = shutil.which(tool) is not None
        report[tool] = found
        if found:
            log_success(f"{tool} is available")
        else:
            log_warn(f"{tool} not found in PATH")
    return report


def show_next_steps() -> None:
    console.print()
    log_success("DevEssential installation completed!")
    console.print()
    log_info("Next steps:")
    for i, (title, commands) in enumerate(NEXT_STEPS, 1):
        console.print(f"  {i}. {title}", markup=False, highlight=False)
        for cmd in commands:
            console.print(f"     {cmd}", markup=False, highlight=False)
        console.print()
    log_info("Happy coding! 🚀")
