"""flatforge command-line interface.

Typer commands for building, installing, uninstalling and cleaning, plus
the interactive menu opened when no command is given.
"""

from importlib.metadata import version as get_package_version

__version__ = get_package_version("flatforge")
