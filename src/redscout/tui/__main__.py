"""Launch the redscout dashboard (same flags as the ``redscout`` command)."""

from __future__ import annotations

from redscout.cli.app import console_main

if __name__ == "__main__":
    console_main()
