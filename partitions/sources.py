"""
Find the scores within a music tree

A music tree is organized as::

    <root>/<category>/<title>/<layout>/<instrument>[_<voice>_<tone>][_clef_fa].ly

where category is one of 'concerts', 'animations', 'marches' and layout is one
of 'a4' (full page) or 'carnet' (marching band lyre format). The file name
tells for which instrument the sheet is written, its voice, its tone (the
transposition of the instrument) and its clef. For example::

    music/marches/sambre-et-meuse/a4/trompette_I_sib.ly
    music/marches/sambre-et-meuse/a4/trombone_II_ut_clef_fa.ly
    music/marches/sambre-et-meuse/carnet/saxophone_alto_Solo_mib.ly
    music/marches/sambre-et-meuse/carnet/caisse_claire.ly

Drums (caisse_claire, grosse_caisse) have no voice and no tone. Files which
do not follow this scheme are skipped
"""
from __future__ import annotations
import os
from dataclasses import dataclass

from partitions.common import getLogger
from partitions._util import checkChoice


logger = getLogger('partitions')


INSTRUMENTS = (
    'baryton',
    'basse',
    'bugle',
    'caisse_claire',
    'clarinette',
    'contrebasse',
    'cor',
    'euphonium',
    'flute',
    'grosse_caisse',
    'piccolo',
    'saxophone_alto',
    'saxophone_baryton',
    'saxophone_soprano',
    'saxophone_tenor',
    'trombone',
    'trompette',
    'tuba',
)

DRUMS = ('caisse_claire', 'grosse_caisse')

VOICES = ('I', 'II', 'III', 'Solo')

TONES = ('ut', 'mib', 'fa', 'sib')

CLEFS = ('clef_sol', 'clef_fa', 'clef_drums')

CATEGORIES = ('concerts', 'animations', 'marches')

LAYOUTS = ('a4', 'carnet')


# instrument names made of two words
_compoundPrefixes = ('grosse', 'caisse', 'saxophone')


@dataclass(frozen=True)
class SheetSource:
    """
    A score within a music tree
    """
    path: str
    """Path to the .ly file"""

    title: str
    category: str
    layout: str
    """One of 'a4', 'carnet'"""

    instrument: str
    voice: str | None = None
    """One of 'I', 'II', 'III', 'Solo'. None for drums"""

    tone: str | None = None
    """One of 'ut', 'mib', 'fa', 'sib'. None for drums"""

    clef: str = 'clef_sol'

    @property
    def name(self) -> str:
        return os.path.splitext(os.path.basename(self.path))[0]

    @property
    def sheetName(self) -> str:
        """
        <title>_<instrument>[_<voice>][_<tone>][_clef_fa]
        """
        parts = [self.title, self.instrument, self.voice, self.tone]
        if self.clef == 'clef_fa':
            parts.append(self.clef)
        return '_'.join(part for part in parts if part)

    @property
    def description(self) -> str:
        """
        A readable description, as 'sambre-et-meuse - trombone ut II (Clef de Fa) [a4]'
        """
        words = [f"{self.title} - {self.instrument}"]
        if self.tone:
            words.append(self.tone)
        if self.voice:
            words.append(self.voice)
        if self.clef == 'clef_fa':
            words.append("(Clef de Fa)")
        words.append(f"[{self.layout}]")
        return " ".join(words)

    def outputFolder(self, outputRoot: str) -> str:
        """
        The folder where the parts of this score are written

        Args:
            outputRoot: the root of the output tree

        Returns:
            <outputRoot>/<layout>/<sheetName>
        """
        return os.path.join(outputRoot, self.layout, self.sheetName)


def _parseSheetName(name: str) -> tuple[str, str | None, str | None, str] | None:
    """
    Parse a file name (without extension) as (instrument, voice, tone, clef)

    Returns None if the name does not follow the naming scheme of a music tree
    """
    words = name.split('_')
    instrument = words.pop(0)
    if instrument in _compoundPrefixes and words:
        instrument = f"{instrument}_{words.pop(0)}"
    if instrument not in INSTRUMENTS:
        return None
    if instrument in DRUMS:
        return instrument, None, None, 'clef_drums'
    if len(words) < 2:
        return None
    voice, tone, *rest = words
    if voice not in VOICES or tone not in TONES:
        return None
    clef = '_'.join(rest)
    if clef not in CLEFS:
        clef = 'clef_sol'
    return instrument, voice, tone, clef


def sheetSourceFromPath(path: str) -> SheetSource | None:
    """
    Create a SheetSource from the path of a .ly file within a music tree

    Returns:
        the SheetSource, or None if the path does not follow the layout of a music tree
    """
    if not path.endswith('.ly'):
        return None
    parts = os.path.normpath(path).split(os.sep)
    if len(parts) < 4:
        return None
    category, title, layout, filename = parts[-4:]
    if layout not in LAYOUTS or category not in CATEGORIES:
        return None
    sheet = _parseSheetName(filename[:-3])
    if sheet is None:
        logger.debug(f"Skipping '{path}', its name does not describe a sheet")
        return None
    instrument, voice, tone, clef = sheet
    return SheetSource(path=path, title=title, category=category, layout=layout,
                       instrument=instrument, voice=voice, tone=tone, clef=clef)


def findSources(root: str,
                title: str | None = None,
                layout: str | None = None,
                category: str | None = None,
                instrument: str | None = None,
                voice: str | None = None,
                tone: str | None = None,
                clef: str | None = None,
                limit: int | None = None
                ) -> list[SheetSource]:
    """
    Find the scores within a music tree

    Args:
        root: the root of the music tree
        title: only include scores with this title
        layout: only include scores with this layout ('a4' or 'carnet')
        category: only include scores within this category
        instrument: only include sheets for this instrument
        voice: only include sheets for this voice. Drums have no voice and are
            excluded by this filter
        tone: only include sheets in this tone. As for voice, drums are excluded
        clef: only include sheets with this clef
        limit: max. number of scores returned

    Returns:
        the list of scores found, sorted by path

    Raises:
        ValueError: if any of the filters is not a possible value
        FileNotFoundError: if root does not exist
    """
    filters = {'layout': (layout, LAYOUTS),
               'category': (category, CATEGORIES),
               'instrument': (instrument, INSTRUMENTS),
               'voice': (voice, VOICES),
               'tone': (tone, TONES),
               'clef': (clef, CLEFS)}
    for name, (value, choices) in filters.items():
        if value is not None:
            checkChoice(name, value, choices)
    if not os.path.isdir(root):
        raise FileNotFoundError(f"Music folder not found: '{root}'")
    sources = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            source = sheetSourceFromPath(os.path.join(dirpath, filename))
            if source is None:
                continue
            if title is not None and source.title != title:
                continue
            if any(value is not None and getattr(source, name) != value
                   for name, (value, _) in filters.items()):
                continue
            sources.append(source)
    sources.sort(key=lambda source: source.path)
    logger.debug(f"Found {len(sources)} scores within '{root}'")
    if limit is not None:
        sources = sources[:limit]
    return sources
