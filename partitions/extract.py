"""
Derive one render-ready document per part, plus one for the full score
"""
from __future__ import annotations
import os

from partitions.common import FULL_SCORE, getLogger
from partitions.document import Block, ScoreDocument, DerivedDocument
from partitions.errors import UnknownPart
from partitions import _util

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Sequence


logger = getLogger('partitions')


def _derive(doc: ScoreDocument, target: str, targetBlock: Block) -> DerivedDocument:
    blocks = tuple(b for b in doc.blocks if b.isShared or b is targetBlock)
    suffix = None if target == FULL_SCORE else target
    # the engraver runs in its own workdir, relative \include paths are resolved from here
    includeDirs = (os.path.dirname(os.path.abspath(doc.source)),) if doc.source else ()
    return DerivedDocument(target=target, blocks=blocks, outputSuffix=suffix,
                           includeDirs=includeDirs)


def extractParts(doc: ScoreDocument) -> list[DerivedDocument]:
    """
    Derive the documents to render from a parsed score

    Each derived document holds every header and opaque block of the score, in
    source order, plus its target block. Parts come first, in declaration order;
    the full score is always the last entry

    Args:
        doc: the parsed score

    Returns:
        a list of DerivedDocument, one per part plus one for the full score
    """
    out = [_derive(doc, block.identifier, block) for block in doc.parts()]
    out.append(_derive(doc, FULL_SCORE, doc.scoreBlock()))
    return out


def selectTargets(derived: Sequence[DerivedDocument],
                  parts: Sequence[str],
                  includeScore=False
                  ) -> list[DerivedDocument]:
    """
    Keep only the given parts

    Args:
        derived: the derived documents, as returned by :func:`extractParts`
        parts: the names of the parts to keep. Use 'score' to keep the full score.
            If empty, everything is kept
        includeScore: if True, keep the full score even if it is not named in `parts`

    Returns:
        the selected documents, in their original order

    Raises:
        UnknownPart: if a name in parts is not defined in the score
    """
    if not parts:
        return list(derived)
    targets = [d.target for d in derived]
    for part in parts:
        try:
            _util.checkChoice('part', part, targets)
        except ValueError as e:
            raise UnknownPart(part, str(e))
    wanted = set(parts)
    if includeScore:
        wanted.add(FULL_SCORE)
    selected = [d for d in derived if d.target in wanted]
    logger.debug(f"Selected targets: {[d.target for d in selected]}")
    return selected
