#!/usr/bin/env python3
"""
Entry point for running the Ishikawa toolkit package directly.
This allows the package to be executed as: python -m ishikawa
"""

import sys

from . import main

if __name__ == "__main__":
    sys.exit(main())
