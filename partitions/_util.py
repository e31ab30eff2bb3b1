from __future__ import annotations
import os

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Sequence
    import tempfile


_state = {}


def userCacheDir() -> str:
    """
    Folder for files partitions generates and reuses between runs (font configurations, workdirs)
    """
    import appdirs
    return appdirs.user_cache_dir(appname='partitions')


def sessionTempdir() -> tempfile.TemporaryDirectory:
    """
    A temporary folder within the user cache, shared by all runs of this process

    The folder is created at the first call and removed when the process exits

    Raises:
        OSError: if the folder can't be created or is not writable
    """
    if (tempdir := _state.get('tempdir')) is not None:
        return tempdir
    import tempfile
    base = userCacheDir()
    os.makedirs(base, exist_ok=True)
    tempdir = tempfile.TemporaryDirectory(dir=base, prefix='run-')
    if not os.access(tempdir.name, os.W_OK):
        raise OSError(f"The temporary folder '{tempdir.name}' is not writable")
    _state['tempdir'] = tempdir
    return tempdir


def guessEncoding(data: bytes) -> str:
    import chardet
    return chardet.detect(data[:8192])['encoding'] or 'latin-1'


def readText(path: str) -> str:
    """
    Read a text file. utf-8 is tried first, otherwise the encoding is guessed
    """
    with open(path, "rb") as f:
        data = f.read()
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        encoding = guessEncoding(data)
        return data.decode(encoding, errors='replace')


def closestMatches(query: str, choices: Sequence[str], limit=3) -> list[str]:
    """
    The choices most similar to query, best first
    """
    import thefuzz.process
    return [choice for choice, score in thefuzz.process.extract(query, choices, limit=limit)]


def checkChoice(name: str, value: str, choices: Sequence[str]) -> None:
    """
    Raise ValueError if value is not one of choices

    The error message suggests the closest choice

    Args:
        name: what is being checked, for the error message
        value: the value to check
        choices: the valid values
    """
    if value in choices:
        return
    if not choices:
        raise ValueError(f"Invalid {name} '{value}', there are no possible choices")
    suggestion = closestMatches(value, choices, limit=1)[0]
    raise ValueError(f"Invalid {name} '{value}', did you mean '{suggestion}'? "
                     f"Possible values: {', '.join(choices)}")


def readableTime(t: float) -> str:
    """
    A duration in seconds as a short string: 850ms, 2.4s, 1m12s
    """
    if t < 1:
        return f"{t*1000:.0f}ms"
    if t < 60:
        return f"{t:.1f}s"
    minutes, seconds = divmod(round(t), 60)
    return f"{minutes}m{seconds:02d}s"
