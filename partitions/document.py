"""
In-memory representation of a parsed score

A score source is an ordered sequence of top level :class:`Block`. The parser
only needs to know the kind of each block and, for parts, its name. The content
of a block is kept verbatim and is never interpreted.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass

from partitions.common import FULL_SCORE


class BlockKind(enum.Enum):
    HEADER = 'header'
    PART = 'part-definition'
    SCORE = 'score-definition'
    OPAQUE = 'opaque'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Block:
    """
    A top level block of a score source
    """
    kind: BlockKind
    """The kind of block"""

    text: str
    """The source text of this block, verbatim"""

    identifier: str | None = None
    """The part name, only for part definitions"""

    keyword: str = ''
    """The first token of the block (``\\header``, ``\\book``, a variable name, ...)"""

    line: int = 0
    """Line within the source where this block starts"""

    @property
    def isShared(self) -> bool:
        """Is this block included in every derived document?"""
        return self.kind is BlockKind.HEADER or self.kind is BlockKind.OPAQUE

    def __repr__(self):
        ident = f", identifier={self.identifier!r}" if self.identifier else ''
        return f"Block({self.kind.value}, keyword={self.keyword!r}{ident}, line={self.line})"


@dataclass(frozen=True)
class ScoreDocument:
    """
    A parsed score

    Holds exactly one score definition and any number of uniquely named parts.
    Instances are created via :func:`partitions.parser.parseScore`
    """
    blocks: tuple[Block, ...]
    source: str = ''

    def parts(self) -> list[Block]:
        """The part definitions, in declaration order"""
        return [b for b in self.blocks if b.kind is BlockKind.PART]

    def partNames(self) -> list[str]:
        return [b.identifier for b in self.blocks if b.kind is BlockKind.PART]

    def scoreBlock(self) -> Block:
        """The score definition"""
        for b in self.blocks:
            if b.kind is BlockKind.SCORE:
                return b
        raise ValueError("This document has no score definition")

    def sharedBlocks(self) -> list[Block]:
        """Header and opaque blocks, in source order"""
        return [b for b in self.blocks if b.isShared]


@dataclass(frozen=True)
class DerivedDocument:
    """
    A score restricted to its shared blocks plus one target block

    A derived document is the input of exactly one engraver invocation
    """
    target: str
    """The part name, or FULL_SCORE"""

    blocks: tuple[Block, ...]

    outputSuffix: str | None = None
    """The \\bookOutputSuffix of the target block, if any"""

    includeDirs: tuple[str, ...] = ()
    """Folders searched for \\include files: the folder of the source score"""

    @property
    def isFullScore(self) -> bool:
        return self.target == FULL_SCORE

    def serialize(self) -> str:
        """
        The lilypond source of this document
        """
        return "\n\n".join(b.text for b in self.blocks) + "\n"
