"""CLI entry point for dir-q.

Provides the console-script entry point for running the ``dirq`` command
suite programmatically.

Examples
--------
Invoke the CLI entry point directly::

    from dir_q.cli import main

    main()

Run the CLI from the command line (via the console script)::

    echo hello | dirq add
    dirq get --block

"""

from __future__ import annotations

from dir_q.cli.app import app, main

__all__ = ["app", "main"]
