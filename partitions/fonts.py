"""
Isolated font configuration for the engraver

Lilypond finds text fonts through fontconfig. To make a render independent of
the fonts installed on the host, every engraver process gets its own
``fonts.conf`` listing only the directories of the font bundle, passed via the
``FONTCONFIG_FILE`` and ``FONTCONFIG_PATH`` environment variables.
"""
from __future__ import annotations
import hashlib
import os
from dataclasses import dataclass

from partitions.common import getLogger
from partitions.errors import MissingFontDirectory
from partitions import _util

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Sequence


logger = getLogger('partitions')


@dataclass(frozen=True)
class FontConfig:
    """
    A resolved, immutable font configuration

    It can be shared by any number of concurrent render jobs
    """
    configFile: str
    """Path to the generated fonts.conf"""

    configPath: str
    """The folder holding configFile"""

    directories: tuple[str, ...]
    """The font directories, absolute, in search order"""

    digest: str
    """Hash identifying the list of directories"""

    def environ(self) -> dict[str, str]:
        """
        Environment variables applying this configuration to a subprocess
        """
        return {'FONTCONFIG_FILE': self.configFile,
                'FONTCONFIG_PATH': self.configPath}


def _digest(directories: Sequence[str]) -> str:
    h = hashlib.sha1()
    for d in directories:
        h.update(d.encode('utf-8'))
        h.update(b'\0')
    return h.hexdigest()


def _readBytes(path: str) -> bytes | None:
    if not os.path.exists(path):
        return None
    with open(path, 'rb') as f:
        return f.read()


def fontsConf(directories: Sequence[str], cachedir: str) -> bytes:
    """
    Generate the contents of a self-contained fonts.conf

    Args:
        directories: the font directories
        cachedir: the folder where fontconfig should write its cache

    Returns:
        the xml, as bytes
    """
    from lxml import etree
    root = etree.Element('fontconfig')
    for d in directories:
        etree.SubElement(root, 'dir').text = d
    etree.SubElement(root, 'cachedir').text = cachedir
    return etree.tostring(root,
                          xml_declaration=True,
                          encoding='UTF-8',
                          pretty_print=True,
                          doctype='<!DOCTYPE fontconfig SYSTEM "urn:fontconfig:fonts.dtd">')


def resolveFonts(directories: Sequence[str], cacheDir='') -> FontConfig:
    """
    Resolve a font bundle into a FontConfig

    Resolving the same directories twice results in the same configuration file,
    with byte-identical contents

    Args:
        directories: the font directories, in search order. Relative paths are
            made absolute
        cacheDir: the folder where the configuration is written. If not given,
            the user cache folder is used

    Returns:
        the FontConfig

    Raises:
        MissingFontDirectory: if any of the directories does not exist
    """
    dirs: list[str] = []
    for d in directories:
        d = os.path.abspath(os.path.expanduser(str(d)))
        if not os.path.isdir(d):
            raise MissingFontDirectory(d)
        if d not in dirs:
            dirs.append(d)
    if not dirs:
        logger.warning("No font directories given, only the fonts bundled with "
                       "the engraver will be available")

    digest = _digest(dirs)
    base = os.path.join(cacheDir or _util.userCacheDir(), 'fontconfig', digest)
    os.makedirs(os.path.join(base, 'cache'), exist_ok=True)
    configfile = os.path.join(base, 'fonts.conf')
    content = fontsConf(dirs, cachedir=os.path.join(base, 'cache'))
    if _readBytes(configfile) != content:
        # Write to a temporary file first, a concurrent run might be reading it
        tmpfile = f'{configfile}.{os.getpid()}.tmp'
        with open(tmpfile, 'wb') as f:
            f.write(content)
        os.replace(tmpfile, configfile)
        logger.debug(f"Wrote font configuration '{configfile}' for {dirs}")
    return FontConfig(configFile=configfile, configPath=base, directories=tuple(dirs),
                      digest=digest)
