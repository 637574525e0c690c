"""
Entry point for running the syncer as a module.

Usage:
    python -m bridgeswap_syncer
"""

from bridgeswap_syncer.cli import main

if __name__ == "__main__":
    main()
