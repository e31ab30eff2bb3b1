"""
Calling lilypond

How to find the lilypond binary, the command line used to render a file and
the names of the files lilypond generates
"""
from __future__ import annotations
import glob
import os
import re
import shutil
import subprocess
from dataclasses import dataclass

from partitions.common import getLogger, FORMATS

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Sequence


logger = getLogger('partitions')


_found: dict[str, str] = {}


def _run(args: list[str], encoding="utf-8") -> str | None:
    """
    The output of a command, or None if it could not be called or it failed
    """
    try:
        return subprocess.check_output(args, stdin=subprocess.DEVNULL,
                                       stderr=subprocess.STDOUT).decode(encoding)
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug(f"Calling {args} failed: {e}")
        return None


def findLilypond(binary='', install=True) -> str | None:
    """
    The path of the lilypond binary

    Args:
        binary: if given, the binary to use: a path, or a command name which is
            searched in the PATH. Otherwise 'lilypond' is searched in the PATH,
            falling back to a distribution managed by lilyponddist. The result of
            this search is remembered for the process
        install: if lilypond is not in the PATH and no lilyponddist distribution
            is installed yet, download one. Only used if no binary is given

    Returns:
        the path, or None if lilypond was not found
    """
    if binary:
        path = binary if os.path.isfile(binary) else shutil.which(binary)
        if not path:
            logger.error(f"lilypond binary '{binary}' not found")
        return path

    cached = _found.get('lilypond')
    if cached:
        if os.path.exists(cached):
            return cached
        logger.warning(f"The lilypond binary found previously ('{cached}') does not exist anymore")
    path = shutil.which('lilypond')
    if not path:
        logger.debug("lilypond is not in the PATH, trying lilyponddist")
        import lilyponddist
        if not lilyponddist.is_lilypond_installed() and not install:
            return None
        path = lilyponddist.lilypondbin().as_posix()
    logger.debug(f"Using lilypond at '{path}'")
    _found['lilypond'] = path
    return path


def getLilypondVersion(binary='') -> str | None:
    """
    The version of lilypond, as a string like '2.24.4'

    Args:
        binary: the lilypond binary, see :func:`findLilypond`

    Returns:
        the version, or None if lilypond was not found or its version could
        not be parsed

    Raises:
        RuntimeError: if lilypond was found but calling it failed
    """
    lilybin = findLilypond(binary, install=False)
    if not lilybin:
        return None
    output = _run([lilybin, "--version"])
    if output is None:
        raise RuntimeError(f"Calling '{lilybin} --version' failed")
    if (match := re.search(r"GNU LilyPond (\d+\.\d+\.\d+)", output)) is None:
        logger.error(f"Unexpected output from '{lilybin} --version': {output[:200]}")
        return None
    return match.group(1)


@dataclass(frozen=True)
class Engraver:
    """
    How to call the engraver

    Attributes:
        command: the command to call, as a list. Normally just the path to
            the lilypond binary
        fmt: the output format, one of 'pdf', 'png', 'ps'
        resolution: resolution in dpi, used for png output
        pointAndClick: if False, disable point-and-click links within the pdf
    """
    command: tuple[str, ...]
    fmt: str = 'pdf'
    resolution: int = 300
    pointAndClick: bool = False

    def __post_init__(self):
        if self.fmt not in FORMATS:
            raise ValueError(f"Invalid format '{self.fmt}', expected one of {FORMATS}")
        if not self.command:
            raise ValueError("The engraver command can't be empty")
        object.__setattr__(self, 'command', tuple(self.command))

    @classmethod
    def lilypond(cls, binary='', fmt='pdf', resolution=300, pointAndClick=False, install=True
                 ) -> Engraver | None:
        """
        Create an Engraver calling lilypond, or None if lilypond was not found

        See :func:`findLilypond` for binary and install
        """
        lilybin = findLilypond(binary, install=install)
        if not lilybin:
            return None
        return cls(command=(lilybin,), fmt=fmt, resolution=resolution,
                   pointAndClick=pointAndClick)

    def args(self, lilyfile: str, basename: str, includeDirs: Sequence[str] = ()) -> list[str]:
        """
        The command line rendering lilyfile to basename.<fmt>

        Args:
            lilyfile: the .ly file to render
            basename: the output file, without extension
            includeDirs: folders added to the search path of \\include

        Returns:
            the list of arguments
        """
        args = [*self.command, f'--{self.fmt}', f'-dresolution={self.resolution}']
        if not self.pointAndClick:
            args.append('-dpoint-and-click=#f')
        args.extend(f'--include={d}' for d in includeDirs)
        args.extend(['-o', basename, lilyfile])
        return args


def outputBasename(basename: str, suffix: str | None = None) -> str:
    """
    The name of the output generated by lilypond, without extension

    A \\book with a \\bookOutputSuffix appends the suffix to the output name
    """
    return f'{basename}-{suffix}' if suffix else basename


def findOutputs(basename: str, fmt: str, suffix: str | None = None) -> list[str]:
    """
    Find the files generated by lilypond

    Args:
        basename: the basename passed to lilypond via -o
        fmt: the output format
        suffix: the \\bookOutputSuffix of the rendered book, if any

    Returns:
        the list of generated files. Empty if nothing was generated. For png
        output lilypond generates one file per page ('<name>-page1.png', ...)
        when the score has multiple pages
    """
    name = outputBasename(basename, suffix)
    outfile = f'{name}.{fmt}'
    if os.path.exists(outfile):
        return [outfile]
    if fmt == 'png':
        pages = glob.glob(f"{glob.escape(name)}-page*.png")
        return sorted(pages, key=_pageNumber)
    return []


def _pageNumber(path: str) -> int:
    match = re.search(r'-page(\d+)\.png$', path)
    return int(match.group(1)) if match else 0
