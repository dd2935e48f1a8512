"""
PEInfo Module Entry Point
==========================

Allows running the PEInfo CLI via: python -m peinfo
"""

from peinfo.cli import main

if __name__ == "__main__":
    main()
