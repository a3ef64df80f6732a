"""Module entrypoint for running Clipvoice as ``python -m clipvoice``."""

from __future__ import annotations

from clipvoice.cli import main


if __name__ == "__main__":
    main()
