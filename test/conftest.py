"""Shared fixtures. Makes the project root importable when running pytest from a checkout"""
from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from partitions import config
from partitions.config import RunOptions
from partitions.fonts import resolveFonts
from partitions.lilytools import Engraver


FAKELILY = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'fakelily.py')


MENUET = r'''\version "2.24.0"
\header {
  title = "Menuet { in G }"
  composer = "J. S. Bach"
}
#(set-global-staff-size 18)

violinMusic = \relative c'' {
  \key g \major
  d4 g,8 a b c | d4 g, g |
}

celloMusic = \relative c {
  \clef bass \key g \major
  g2. | b2. |
}

\book {
  \bookOutputSuffix "violin"
  % VIOLIN
  \score { \new Staff \violinMusic }
}

\book {
  \bookOutputSuffix "cello"
  % CELLO
  \score { \new Staff \celloMusic }
}

\score {
  % SCORE
  <<
    \new Staff \violinMusic
    \new Staff \celloMusic
  >>
  \layout { }
}
'''


def makeMenuet(violin='', cello='', score='') -> str:
    """
    The menuet source, with extra lines inserted within the violin book,
    the cello book or the score
    """
    return (MENUET
            .replace('% VIOLIN', violin or '% violin')
            .replace('% CELLO', cello or '% cello')
            .replace('% SCORE', score or '% score'))


@pytest.fixture
def menuetPath(tmp_path: Path) -> Path:
    path = tmp_path / 'menuet.ly'
    path.write_text(makeMenuet(), encoding='utf-8')
    return path


@pytest.fixture
def fakeEngraver() -> Engraver:
    return Engraver(command=(sys.executable, FAKELILY), fmt='pdf')


@pytest.fixture
def fakeLilypondBinary(tmp_path: Path) -> str:
    """An executable calling fakelily.py, usable wherever a lilypond binary is expected"""
    path = tmp_path / 'bin' / 'lilypond'
    path.parent.mkdir()
    path.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKELILY}" "$@"\n')
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fontDir(tmp_path: Path) -> Path:
    d = tmp_path / 'fonts' / 'dejavu'
    d.mkdir(parents=True)
    (d / 'DejaVuSans.ttf').write_bytes(b'\0')
    return d


@pytest.fixture
def fontconfig(tmp_path: Path, fontDir: Path):
    return resolveFonts([str(fontDir)], cacheDir=str(tmp_path / 'cache'))


@pytest.fixture
def options(tmp_path: Path, fontDir: Path) -> RunOptions:
    return RunOptions(jobs=2,
                      timeout=60,
                      fontDirs=[str(fontDir)],
                      tempdir=str(tmp_path / 'work'),
                      cacheDir=str(tmp_path / 'cache'))


@pytest.fixture(autouse=True)
def userConfig(monkeypatch):
    """A temporary configuration in place of the persistent user configuration"""
    cfg = config.makeConfig(temp=True)
    monkeypatch.setitem(config._state, 'config', cfg)
    return cfg
