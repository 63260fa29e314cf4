#!/usr/bin/env python3
"""
Main script for running a statify calculator from the command line.
"""

# Usage overview:
# 1) Load a CSV of cases (rows) by variables (columns).
# 2) Build one calculator request per analysis from the --var arguments.
# 3) Run it through the request/response boundary.
# 4) Print the JSON response (or a table) and exit 0, or 1 on any error.

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from statify.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
