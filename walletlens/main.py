#!/usr/bin/env python3
"""Entry point: ``python -m walletlens.main <command>``."""
from .cli import main

if __name__ == "__main__":
    main()
