#!/usr/bin/env python3
# run.py — entrypoint for DevEssential
# Install with: python run.py  (or the `devessential` console script)

import sys

try:
    import part0_platform  # noqa: F401
    import part1_bootstrap  # noqa: F401
    import part2_helpers  # noqa: F401
    import part3_nvm  # noqa: F401
    import part4_verify  # noqa: F401
    import part5_main
except ImportError as e:
    print(f"[FATAL] Missing module: {e}. Ensure all partX files exist and rich is installed.")
    sys.exit(1)


def main():
    sys.exit(part5_main.main())


if __name__ == "__main__":
    main()
