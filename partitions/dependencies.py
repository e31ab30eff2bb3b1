"""
Check the external dependencies of partitions: lilypond and the font directories
"""
from __future__ import annotations
import os
import sys

from partitions.common import getLogger
from partitions import lilytools

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Callable, Sequence
    from partitions.config import RunOptions


logger = getLogger('partitions')


def checkLilypond(binary='') -> str:
    """
    Check that lilypond can be called

    Args:
        binary: the lilypond binary to check. If not given, lilypond is searched
            in the PATH or within an installed lilyponddist distribution

    Returns:
        a description of the problem, or an empty string if lilypond works
    """
    lilybin = lilytools.findLilypond(binary, install=False)
    if not lilybin:
        return f"lilypond not found (binary: '{binary or 'lilypond'}')"
    try:
        version = lilytools.getLilypondVersion(lilybin)
    except RuntimeError as e:
        return str(e)
    if not version:
        return f"Could not determine the version of '{lilybin}'"
    logger.debug(f"lilypond {version} at '{lilybin}'")
    return ''


def checkFontDirs(fontDirs: Sequence[str]) -> list[str]:
    """
    One error per font directory which does not exist
    """
    return [f"Font directory not found: '{d}'" for d in fontDirs
            if not os.path.isdir(os.path.expanduser(d))]


def checkDependencies(options: RunOptions, abortIfErrors=False, verbose=False) -> list[str]:
    """
    Check everything needed to render with the given options

    Args:
        options: the RunOptions
        abortIfErrors: stop at the first failed check
        verbose: print each check as it runs

    Returns:
        the errors found, empty if everything is ok
    """
    checks: list[tuple[str, Callable[[], list[str]]]] = [
        ('lilypond', lambda: [err] if (err := checkLilypond(options.lilypondBinary)) else []),
        ('font directories', lambda: checkFontDirs(options.fontDirs)),
    ]
    echo = print if verbose else logger.debug
    errors: list[str] = []
    for name, check in checks:
        found = check()
        echo(f"Checking {name}: {'ok' if not found else 'FAILED'}")
        for err in found:
            logger.error(err)
        errors.extend(found)
        if found and abortIfErrors:
            break
    return errors


def printReport(options: RunOptions, echo=print) -> None:
    """
    Print the versions and paths partitions would use with the given options
    """
    import importlib.metadata
    try:
        version = importlib.metadata.version('partitions')
    except importlib.metadata.PackageNotFoundError:
        version = 'unknown'
    lilybin = lilytools.findLilypond(options.lilypondBinary, install=False)
    lines = [f"Python: {sys.version.split()[0]}",
             f"partitions: {version}",
             f"Lilypond binary: {lilybin or 'not found'}"]
    if lilybin:
        try:
            lines.append(f"Lilypond version: {lilytools.getLilypondVersion(lilybin)}")
        except RuntimeError as e:
            lines.append(f"Lilypond version: error, {e}")
    lines.append("Font directories:")
    for d in options.fontDirs:
        status = 'ok' if os.path.isdir(os.path.expanduser(d)) else 'NOT FOUND'
        lines.append(f"    {d} ({status})")
    if not options.fontDirs:
        lines.append("    (none, only the fonts bundled with lilypond)")
    for line in lines:
        echo(line)
