"""
Entry point for running a clustering pass as a module.

Usage:
    python3 -m idea_clustering [--dry-run]
"""

import logging

from .pipeline import main


def run():
    """Configure logging and run the CLI (also the console script target)."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return main()


if __name__ == '__main__':
    run()
