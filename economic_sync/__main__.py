"""
Main entry point for running economic_sync as a module.

Usage:
    python -m economic_sync [options]
"""
import sys

from .sync import main

if __name__ == "__main__":
    sys.exit(main())
