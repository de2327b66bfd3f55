"""Command-line interface for the PICTONET studio.

This package contains the command runner, making scripts/ optional and deletable.
"""

from pictonet.cli.run_studio import main

__all__ = ['main']
