"""
Configuration
=============

The configuration is a :class:`configdict.ConfigDict`. The user configuration
is persistent: any modification is saved as yaml and read back in the next
session (see ``activeConfig().getPath()``)::

    >>> from partitions import config
    >>> cfg = config.activeConfig()
    >>> cfg['jobs'] = 4
    >>> cfg['fontDirs'] = ['/usr/share/fonts/opentype/tex-gyre']

or from the command line::

    $ partitions config --set jobs=4

Some keys can also be set via environment variables, which take precedence
over the user configuration:

* ``PARTITIONS_LILYPOND``: ``lilypondBinary``
* ``PARTITIONS_FONTDIRS``: ``fontDirs``, separated by ``os.pathsep``
* ``PARTITIONS_JOBS``: ``jobs``

Values are validated. An invalid value raises ValueError::

    >>> cfg['format'] = 'svg'
    ValueError: key 'format' should be one of {'pdf', 'png', 'ps'}, got 'svg'
"""
from __future__ import annotations
import functools
import math
import os
from dataclasses import dataclass, field

from configdict import ConfigDict

from partitions.common import getLogger, FORMATS

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Any


logger = getLogger('partitions')


defaultdict = {
    'format': 'pdf',
    'resolution': 300,
    'timeout': 300.0,
    'jobs': 0,
    'fontDirs': [],
    'lilypondBinary': '',
    'pointAndClick': False,
    'keepWorkdirs': False,
    'musicPath': 'music',
    'outputPath': 'pdf',
}


validator = {
    'format::choices': FORMATS,
    'resolution::choices': (150, 200, 300, 600, 1200),
    'timeout::type': float,
    'timeout::range': (0.001, math.inf),
    'jobs::type': int,
    'jobs::range': (0, 1024),
    'fontDirs::type': list,
    'lilypondBinary::type': str,
    'pointAndClick::type': bool,
    'keepWorkdirs::type': bool,
    'musicPath::type': str,
    'outputPath::type': str,
}


docs = {
    'format':
        "Output format of the engraver",
    'resolution':
        "Resolution in dpi, used when rendering to png",
    'timeout':
        "Max. time in seconds for a single engraver process. The process is killed "
        "after this time",
    'jobs':
        "Max. number of engraver processes running in parallel. 0 uses the "
        "number of cpus",
    'fontDirs':
        "Font directories available to the engraver. No other fonts are visible "
        "to it, apart from the fonts bundled with lilypond itself",
    'lilypondBinary':
        "Path to the lilypond binary. If not given, lilypond is searched in the PATH "
        "and then within a distribution installed via lilyponddist",
    'pointAndClick':
        "Include point-and-click links in the generated pdf files",
    'keepWorkdirs':
        "Keep the working directory of each job after a run, for debugging",
    'musicPath':
        "Root of the music tree, used by the 'lilypond' command",
    'outputPath':
        "Output folder of the 'lilypond' command",
}


_envOverrides = {
    'PARTITIONS_LILYPOND': 'lilypondBinary',
    'PARTITIONS_FONTDIRS': 'fontDirs',
    'PARTITIONS_JOBS': 'jobs',
}


_defaultName = 'partitions:config'

_state: dict[str, ConfigDict] = {}


def makeConfig(temp=False) -> ConfigDict:
    """
    Create a configuration

    Args:
        temp: if True, the configuration is neither read from disk nor saved.
            Otherwise this is the persistent user configuration. There can only
            be one persistent configuration per process, use :func:`activeConfig`

    Returns:
        the ConfigDict
    """
    if temp:
        return ConfigDict('', defaultdict, validator=validator, docs=docs, persistent=False)
    return ConfigDict(_defaultName, defaultdict, validator=validator, docs=docs,
                      persistent=True)


def activeConfig() -> ConfigDict:
    """
    The user configuration. Any modification made to it is saved
    """
    cfg = _state.get('config')
    if cfg is None:
        cfg = _state['config'] = makeConfig()
        logger.debug(f"Using configuration at '{cfg.getPath()}'")
    return cfg


@functools.cache
def _checker() -> ConfigDict:
    return makeConfig(temp=True)


def checkValue(key: str, value) -> None:
    """
    Raise ValueError if value is not valid for key
    """
    if error := _checker().checkValue(key, value):
        raise ValueError(error)


def _fromEnviron(environ: dict[str, str]) -> dict[str, Any]:
    out = {}
    for var, key in _envOverrides.items():
        value = environ.get(var)
        if not value:
            continue
        if key == 'fontDirs':
            out[key] = [d for d in value.split(os.pathsep) if d]
        elif key == 'jobs':
            try:
                out[key] = int(value)
            except ValueError:
                raise ValueError(f"{var} should be an integer, got '{value}'")
        else:
            out[key] = value
    return out


def loadConfig(path='', environ: dict[str, str] | None = None) -> ConfigDict:
    """
    The configuration for a run: the user configuration plus any environment overrides

    Args:
        path: a yaml file to read instead of the user configuration. Unknown keys
            and invalid values within it are skipped with an error message
        environ: the environment to read overrides from. Defaults to os.environ

    Returns:
        a temporary copy. Modifying it does not modify the user configuration
    """
    if path:
        cfg = makeConfig(temp=True)
        cfg.load(path)
    else:
        cfg = activeConfig()
    overrides = _fromEnviron(os.environ if environ is None else environ)
    return cfg.clone(updates=overrides)


@dataclass
class RunOptions:
    """
    Holds all options needed for a run
    """
    fmt: str = 'pdf'
    """Output format, one of pdf, png, ps"""

    resolution: int = 300
    """Resolution in dpi for png output"""

    timeout: float = 300.
    """Max. duration of one engraver process, in seconds"""

    jobs: int = 0
    """Max. number of parallel engraver processes. 0 uses the number of cpus"""

    fontDirs: list[str] = field(default_factory=list)
    """Font directories, in search order"""

    lilypondBinary: str = ''
    """The lilypond binary. If not given lilypond is searched in the PATH"""

    pointAndClick: bool = False
    """Include point-and-click links in the pdf"""

    keepWorkdirs: bool = False
    """Keep the working directories of the jobs"""

    tempdir: str = ''
    """Where to create the working directories. Defaults to a folder within the user cache"""

    cacheDir: str = ''
    """Where to write the font configuration. Defaults to the user cache"""

    def __post_init__(self):
        checkValue('format', self.fmt)
        checkValue('resolution', self.resolution)
        checkValue('timeout', self.timeout)
        checkValue('jobs', self.jobs)

    @classmethod
    def fromConfig(cls, cfg: dict[str, Any] | None = None, **overrides) -> RunOptions:
        """
        Create RunOptions from a configuration

        Args:
            cfg: a configuration as returned by :func:`loadConfig`. If not given
                the configuration is loaded
            overrides: any attribute of RunOptions. None values are ignored

        Returns:
            the RunOptions
        """
        if cfg is None:
            cfg = loadConfig()
        kws = dict(fmt=cfg['format'],
                   resolution=cfg['resolution'],
                   timeout=float(cfg['timeout']),
                   jobs=cfg['jobs'],
                   fontDirs=list(cfg['fontDirs']),
                   lilypondBinary=cfg['lilypondBinary'],
                   pointAndClick=cfg['pointAndClick'],
                   keepWorkdirs=cfg['keepWorkdirs'])
        kws.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kws)
