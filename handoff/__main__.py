#!/usr/bin/env python3
"""
Handoff CLI entry point for `python -m handoff`.

Usage:
    python -m handoff scan actors.py
    python -m handoff scan src/ -f sarif -o results.sarif
"""

import sys
from handoff.sil.cli import main

if __name__ == "__main__":
    sys.exit(main())
