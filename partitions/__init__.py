"""
partitions: render the instrument parts of a lilypond score

A score defines its full arrangement plus one ``\\book`` per instrument part.
partitions renders each of them with lilypond, in parallel, using an isolated
font configuration, and collects the results into one output folder.
"""
from partitions.common import FULL_SCORE
from partitions.config import RunOptions
from partitions.document import Block, BlockKind, ScoreDocument, DerivedDocument
from partitions.parser import parseScore, readScore
from partitions.extract import extractParts, selectTargets
from partitions.fonts import FontConfig, resolveFonts
from partitions.lilytools import Engraver
from partitions.render import RenderJob, JobResult, JobStatus, Orchestrator
from partitions.collect import RunSummary
from partitions.pipeline import renderScore, renderMusicTree


__all__ = (
    'FULL_SCORE',
    'RunOptions',
    'Block',
    'BlockKind',
    'ScoreDocument',
    'DerivedDocument',
    'parseScore',
    'readScore',
    'extractParts',
    'selectTargets',
    'FontConfig',
    'resolveFonts',
    'Engraver',
    'RenderJob',
    'JobResult',
    'JobStatus',
    'Orchestrator',
    'RunSummary',
    'renderScore',
    'renderMusicTree',
)
