"""
Entry point for running sessh as a module.
Usage: python -m sessh <verb> <alias> <user@host> [...]
"""

import sys

from .cli import main

if __name__ == '__main__':
    sys.exit(main())
