"""
Entry point for running groupme_sync as a module.

Usage:
    python -m groupme_sync --help
    python -m groupme_sync sync --dry-run
    python -m groupme_sync daemon start --interval 1h
"""

from groupme_sync.cli import cli

if __name__ == "__main__":
    cli()
