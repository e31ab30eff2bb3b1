"""
Split a lilypond score into top level blocks

The parser does not interpret music. It only tokenizes the source far enough to
find where each top level construct begins and ends, and which of them define
the full score and the instrument parts:

* ``\\book { \\bookOutputSuffix "violin" ... }`` defines the part *violin*
* a top level ``\\score { ... }``, or a ``\\book`` without output suffix,
  defines the full score
* ``\\version``, ``\\include``, ``\\language``, ``\\header``, ``\\paper``,
  ``\\layout``, ``\\midi`` and variable assignments are headers
* anything else is kept as an opaque block

Example
~~~~~~~

.. code-block:: lilypond

    \\version "2.24.0"
    \\header { title = "Menuet" }
    violinMusic = \\relative c'' { c4 d e f }
    celloMusic = \\relative c { c4 b a g }

    \\book {
      \\bookOutputSuffix "violin"
      \\score { \\new Staff \\violinMusic }
    }
    \\book {
      \\bookOutputSuffix "cello"
      \\score { \\new Staff { \\clef bass \\celloMusic } }
    }
    \\score {
      <<
        \\new Staff \\violinMusic
        \\new Staff { \\clef bass \\celloMusic }
      >>
    }
"""
from __future__ import annotations
import re
from dataclasses import dataclass

from partitions.common import getLogger, FULL_SCORE
from partitions.document import Block, BlockKind, ScoreDocument
from partitions.errors import (MalformedBlock, DuplicatePart, NoScoreDefinition,
                               DuplicateScoreDefinition, InvalidPartName)
from partitions import _util

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Iterator


logger = getLogger('partitions')


__all__ = (
    'parseScore',
    'readScore',
)


_groupDelimiters = {'{': '}', '<<': '>>', '#{': '#}'}

# Commands followed by exactly one braced group
_blockCommands = {'\\header', '\\paper', '\\layout', '\\midi', '\\book', '\\bookpart', '\\score'}

# Commands followed by exactly one string
_stringCommands = {'\\version', '\\include', '\\language'}

_headerCommands = _stringCommands | {'\\header', '\\paper', '\\layout', '\\midi'}

_wordStop = set('{}"%\\=#$')

_validPartName = re.compile(r"^\w[\w .+-]*$")

# png output of a multi-page target is named <target>-page<N>.png
_pageSuffix = re.compile(r"-page\d+$")

# Commands whose music argument may start on a following line
_musicFunctions = {'\\relative', '\\transpose', '\\fixed', '\\absolute', '\\new', '\\context',
                   '\\with', '\\repeat', '\\tuplet', '\\times', '\\grace', '\\acciaccatura',
                   '\\appoggiatura', '\\lyricmode', '\\chordmode', '\\drummode', '\\figuremode',
                   '\\notemode', '\\markup', '\\markuplist', '\\addlyrics', '\\lyricsto',
                   '\\simultaneous', '\\sequential', '\\tag', '\\keepWithTag', '\\removeWithTag',
                   '\\unfoldRepeats'}


@dataclass
class _Token:
    kind: str
    """One of command, string, scheme, open, close, equals, word"""

    text: str
    start: int
    end: int
    line: int
    endline: int


def _skipString(s: str, i: int, line: int) -> int:
    # i points to the opening quote. Returns the index after the closing quote
    n = len(s)
    j = i + 1
    while j < n:
        c = s[j]
        if c == '\\':
            j += 2
        elif c == '"':
            return j + 1
        else:
            j += 1
    raise MalformedBlock("Unterminated string", line)


def _skipSchemeList(s: str, i: int, line: int) -> int:
    # i points to an opening parenthesis
    n = len(s)
    depth = 0
    j = i
    while j < n:
        c = s[j]
        if c == '"':
            j = _skipString(s, j, line)
            continue
        elif c == ';':
            eol = s.find('\n', j)
            j = n if eol < 0 else eol
            continue
        elif c == '#' and s.startswith('#\\', j):
            # character literal, as in #\( or #\space
            j += 3
            continue
        elif c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    raise MalformedBlock("Unterminated Scheme expression", line)


def _skipScheme(s: str, i: int, line: int) -> int:
    # i points to the first char after '#' or '$'
    n = len(s)
    while i < n and s[i] in "'`,":
        i += 1
    if i >= n:
        return i
    if s[i] == '(':
        return _skipSchemeList(s, i, line)
    if s[i] == '"':
        return _skipString(s, i, line)
    j = i
    while j < n and not s[j].isspace() and s[j] not in '{}"':
        j += 1
    return j


def _tokenize(s: str) -> list[_Token]:
    """
    Tokenize lilypond source. Comments are dropped

    Raises MalformedBlock for unterminated strings, comments or Scheme expressions
    """
    tokens: list[_Token] = []
    n = len(s)
    i = 0
    line = 1
    while i < n:
        c = s[i]
        if c == '\n':
            line += 1
            i += 1
            continue
        if c.isspace():
            i += 1
            continue
        if c == '%':
            if s.startswith('%{', i):
                end = s.find('%}', i + 2)
                if end < 0:
                    raise MalformedBlock("Unterminated block comment", line)
                line += s.count('\n', i, end)
                i = end + 2
            else:
                eol = s.find('\n', i)
                i = n if eol < 0 else eol
            continue

        start, startline = i, line
        if c == '"':
            i = _skipString(s, i, line)
            kind = 'string'
        elif c == '#' and s.startswith('#{', i):
            i += 2
            kind = 'open'
        elif c == '#' and s.startswith('#}', i):
            i += 2
            kind = 'close'
        elif c == '#' or c == '$':
            i = _skipScheme(s, i + 1, line)
            kind = 'scheme'
        elif c == '\\':
            j = i + 1
            if j < n and s[j].isalpha():
                while j < n and (s[j].isalpha() or
                                 (s[j] in '-_' and j + 1 < n and s[j+1].isalpha())):
                    j += 1
            else:
                j = min(j + 1, n)
            i = j
            kind = 'command'
        elif c == '{':
            i += 1
            kind = 'open'
        elif c == '}':
            i += 1
            kind = 'close'
        elif s.startswith('<<', i):
            i += 2
            kind = 'open'
        elif s.startswith('>>', i):
            i += 2
            kind = 'close'
        elif c == '=':
            i += 1
            kind = 'equals'
        else:
            j = i
            while (j < n and not s[j].isspace() and s[j] not in _wordStop
                   and not s.startswith('<<', j) and not s.startswith('>>', j)):
                j += 1
            i = max(j, i + 1)
            kind = 'word'
        line += s.count('\n', start, i)
        tokens.append(_Token(kind=kind, text=s[start:i], start=start, end=i,
                             line=startline, endline=line))
    return tokens


def _splitBlocks(tokens: list[_Token]) -> Iterator[tuple[int, int]]:
    """
    Yields (start, end) token indexes for each top level block
    """
    n = len(tokens)
    i = 0
    while i < n:
        first = tokens[i]
        if first.kind == 'close':
            raise MalformedBlock(f"Unexpected '{first.text}' at top level", first.line)

        if first.kind == 'command' and first.text in _stringCommands:
            if i + 1 < n and tokens[i + 1].kind == 'string':
                yield i, i + 2
                i += 2
                continue
            raise MalformedBlock(f"{first.text} expects a string argument", first.line)

        needsGroup = first.kind == 'command' and first.text in _blockCommands
        stack: list[_Token] = []
        # music functions at depth 0 still waiting for their music
        pending = 0
        withGroup = False
        j = i
        while True:
            tok = tokens[j]
            if tok.kind == 'open':
                if not stack:
                    withGroup = j > i and tokens[j - 1].text == '\\with'
                stack.append(tok)
            elif tok.kind == 'close':
                if not stack:
                    raise MalformedBlock(f"Unexpected '{tok.text}'", tok.line)
                opener = stack.pop()
                if _groupDelimiters[opener.text] != tok.text:
                    raise MalformedBlock(f"'{opener.text}' (line {opener.line}) is closed "
                                         f"by '{tok.text}'", tok.line)
                if not stack:
                    if needsGroup:
                        j += 1
                        break
                    # \new Staff \with { ... } { ... } takes two groups
                    pending = max(pending - 1, 0) if withGroup else 0
            elif not stack and tok.kind == 'command' and tok.text in _musicFunctions:
                pending += 1
            j += 1
            if j == n:
                if stack:
                    raise MalformedBlock(f"'{stack[0].text}' is never closed", stack[0].line)
                if needsGroup:
                    raise MalformedBlock(f"{first.text} without a {{ ... }} block", first.line)
                break
            if stack or needsGroup:
                continue
            if tok.kind == 'equals' or tokens[j].kind == 'equals':
                continue
            if tokens[j].line > tok.endline:
                nxt = tokens[j]
                if pending and (nxt.kind == 'open' or
                                (nxt.kind == 'command' and nxt.text in _musicFunctions)):
                    continue
                # a line break at depth 0 ends the block
                break
        yield i, j
        i = j


def _unquote(s: str) -> str:
    return re.sub(r'\\(.)', r'\1', s[1:-1])


def _bookOutputSuffix(tokens: list[_Token]) -> tuple[str, _Token] | None:
    # Only a \bookOutputSuffix directly inside the book counts
    depth = 0
    for i, tok in enumerate(tokens):
        if tok.kind == 'open':
            depth += 1
        elif tok.kind == 'close':
            depth -= 1
        elif (depth == 1 and tok.kind == 'command' and tok.text == '\\bookOutputSuffix'
              and i + 1 < len(tokens) and tokens[i + 1].kind == 'string'):
            return _unquote(tokens[i + 1].text), tok
    return None


def _checkPartName(name: str, line: int) -> None:
    if not name:
        raise InvalidPartName(name, "the name is empty", line)
    if name == FULL_SCORE:
        raise InvalidPartName(name, f"'{FULL_SCORE}' is reserved for the full score", line)
    if _pageSuffix.search(name):
        raise InvalidPartName(name, "names ending in '-page<N>' are reserved for the pages "
                                    "of png output", line)
    if name != name.strip() or not _validPartName.match(name):
        raise InvalidPartName(name, "only letters, digits, spaces and the characters "
                                    "'.', '+', '-', '_' are allowed", line)


def _makeBlock(tokens: list[_Token], text: str) -> Block:
    first = tokens[0]
    line = first.line
    if first.kind == 'command':
        if first.text in _headerCommands:
            return Block(BlockKind.HEADER, text, keyword=first.text, line=line)
        if first.text == '\\score':
            return Block(BlockKind.SCORE, text, keyword=first.text, line=line)
        if first.text == '\\book':
            suffix = _bookOutputSuffix(tokens)
            if suffix is None:
                return Block(BlockKind.SCORE, text, keyword=first.text, line=line)
            name, tok = suffix
            _checkPartName(name, tok.line)
            return Block(BlockKind.PART, text, identifier=name, keyword=first.text, line=line)
    elif first.kind in ('word', 'string') and len(tokens) > 1 and tokens[1].kind == 'equals':
        return Block(BlockKind.HEADER, text, keyword=first.text, line=line)
    return Block(BlockKind.OPAQUE, text, keyword=first.text, line=line)


def parseScore(source: str, path='') -> ScoreDocument:
    """
    Parse a lilypond score into a ScoreDocument

    Args:
        source: the lilypond source text
        path: the path of the source, if known. Only used for information

    Returns:
        the parsed document

    Raises:
        MalformedBlock: if a block is opened and never closed, or its delimiters
            do not match
        DuplicatePart: if two parts share the same name
        InvalidPartName: if a part name is empty, reserved or not usable as a filename
        NoScoreDefinition: if the source has no score definition
        DuplicateScoreDefinition: if the source has more than one score definition
    """
    tokens = _tokenize(source)
    blocks: list[Block] = []
    for start, end in _splitBlocks(tokens):
        blocktokens = tokens[start:end]
        text = source[blocktokens[0].start:blocktokens[-1].end]
        blocks.append(_makeBlock(blocktokens, text))

    partnames: set[str] = set()
    scoreblock: Block | None = None
    for block in blocks:
        if block.kind is BlockKind.PART:
            if block.identifier in partnames:
                raise DuplicatePart(block.identifier, block.line)
            partnames.add(block.identifier)
        elif block.kind is BlockKind.SCORE:
            if scoreblock is not None:
                raise DuplicateScoreDefinition(block.line)
            scoreblock = block

    if scoreblock is None:
        raise NoScoreDefinition()

    logger.debug(f"Parsed {path or 'score'}: {len(blocks)} blocks, parts: {sorted(partnames)}")
    return ScoreDocument(blocks=tuple(blocks), source=path)


def readScore(path: str) -> ScoreDocument:
    """
    Read and parse a lilypond file

    Args:
        path: the path to a .ly file

    Returns:
        the parsed ScoreDocument
    """
    source = _util.readText(path)
    return parseScore(source, path=str(path))
