#!/usr/bin/env python3
"""
minem: Minecraft server manager (script entry point)

Same as the installed `minem` console script:
    python launcher.py init
    python launcher.py download latest
    python launcher.py start
"""

import sys
from minem.cli import main

if __name__ == "__main__":
    sys.exit(main())
