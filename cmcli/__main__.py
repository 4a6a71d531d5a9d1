"""Main entry point when executing cmcli as a package.

This allows running the package using python -m cmcli.
"""

from cmcli.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
