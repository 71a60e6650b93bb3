#!/usr/bin/env python3
"""
tfdrift - Main entry point.

Runs the analysis of the project directory given on the command line.
"""

import sys

from tfdrift.main import main


if __name__ == "__main__":
    sys.exit(main())
