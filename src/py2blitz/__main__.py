"""
Entry Point - Module Execution

This module serves as the entry point when running the package as a module:
    python -m py2blitz

All command-line argument parsing lives in cli.py.
"""

import sys

from py2blitz.cli import main

if __name__ == "__main__":
    sys.exit(main())
