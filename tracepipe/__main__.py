"""
TracePipe CLI Entry Point

This module allows running TracePipe as:
    python -m tracepipe [command] [options]
"""

from tracepipe.cli import cli

if __name__ == "__main__":
    cli()
