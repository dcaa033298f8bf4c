"""Cuprum-backed editor invocation for the dir-q CLI.

The ``put`` command hands a scratch file to the user's editor. The editor is
resolved from ``$VISUAL``/``$EDITOR`` and run through a cuprum catalogue that
allows exactly that program.

Examples
--------
Open a file in the configured editor::

    from pathlib import Path

    from dir_q.command_runner import EditorCommand, run_editor

    result = run_editor(EditorCommand.from_environment(), Path("draft.txt"))
    if not result.ok:
        raise RuntimeError("editor failed")

"""

from __future__ import annotations

import dataclasses as dc
import os
import shlex
import typing as typ
from functools import cache

from cuprum import (
    CommandResult,
    ExecutionContext,
    Program,
    ProgramCatalogue,
    ProjectSettings,
    sh,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from cuprum import SafeCmd

PROJECT_NAME = "dir-q"
DEFAULT_EDITOR = "vi"


@dc.dataclass(frozen=True)
class EditorCommand:
    """An editor program and the arguments placed before the file name.

    Attributes
    ----------
    program : Program
        Editor executable.
    args : tuple[str, ...]
        Extra arguments, e.g. ``("--wait",)`` for ``code --wait``.

    """

    program: Program
    args: tuple[str, ...] = ()

    @classmethod
    def from_environment(
        cls, environ: cabc.Mapping[str, str] | None = None
    ) -> EditorCommand:
        """Resolve the editor from VISUAL, then EDITOR, defaulting to vi.

        Parameters
        ----------
        environ : Mapping[str, str] | None, optional
            Environment to read; defaults to ``os.environ``.

        Returns
        -------
        EditorCommand
            The parsed editor command. Unparseable values fall back to vi.

        """
        env = os.environ if environ is None else environ
        editor = env.get("VISUAL") or env.get("EDITOR") or DEFAULT_EDITOR
        try:
            tokens = shlex.split(editor)
        except ValueError:
            tokens = []
        if not tokens:
            tokens = [DEFAULT_EDITOR]
        return cls(Program(tokens[0]), tuple(tokens[1:]))

    def argv(self, path: Path) -> list[str]:
        """Return the full command line for editing ``path``."""
        return [str(self.program), *self.args, str(path)]


@cache
def _catalogue_for(program: Program) -> ProgramCatalogue:
    """Return a cached catalogue allowing only ``program``."""
    project = ProjectSettings(
        name=PROJECT_NAME,
        programs=(program,),
        documentation_locations=(),
        noise_rules=(),
    )
    return ProgramCatalogue(projects=(project,))


@cache
def _builder_for(program: Program) -> typ.Callable[..., SafeCmd]:
    """Return a cached cuprum builder for the provided program."""
    return sh.make(program, catalogue=_catalogue_for(program))


def run_editor(command: EditorCommand, path: Path) -> CommandResult:
    """Run the editor on ``path`` and wait for it to exit.

    Output is neither captured nor echoed so the editor keeps the terminal.

    Parameters
    ----------
    command : EditorCommand
        Editor to run.
    path : Path
        File to edit.

    Returns
    -------
    CommandResult
        Result of the editor process.

    """
    builder = _builder_for(command.program)
    cmd = builder(*command.args, str(path))
    return cmd.run_sync(context=ExecutionContext(), echo=False, capture=False)
