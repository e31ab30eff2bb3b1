"""
Render a score to its parts, end to end

.. code-block:: python

    from partitions import pipeline, RunOptions
    options = RunOptions(jobs=4, fontDirs=['/usr/share/fonts/truetype/dejavu'])
    summary = pipeline.renderScore("menuet.ly", outdir="parts", options=options)
    print(summary.table())
"""
from __future__ import annotations
import os

from partitions.common import getLogger
from partitions.config import RunOptions
from partitions.errors import EngraverNotFound
from partitions import parser
from partitions import extract
from partitions import fonts
from partitions import lilytools
from partitions import render
from partitions import collect
from partitions import sources

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Callable, Sequence


logger = getLogger('partitions')


SUMMARY_FILENAME = 'summary.json'


def makeEngraver(options: RunOptions) -> lilytools.Engraver:
    """
    The lilypond Engraver for the given options

    Raises:
        EngraverNotFound: if lilypond could not be found
    """
    engraver = lilytools.Engraver.lilypond(binary=options.lilypondBinary,
                                           fmt=options.fmt,
                                           resolution=options.resolution,
                                           pointAndClick=options.pointAndClick)
    if engraver is None:
        raise EngraverNotFound(f"lilypond not found (binary: '{options.lilypondBinary or 'lilypond'}')")
    return engraver


def renderScore(path: str,
                outdir: str,
                options: RunOptions | None = None,
                parts: Sequence[str] = (),
                engraver: lilytools.Engraver | None = None,
                onResult: Callable[[render.JobResult], None] | None = None,
                orchestrator: render.Orchestrator | None = None
                ) -> collect.RunSummary:
    """
    Render the parts and the full score of a lilypond score

    Parsing, selecting parts, resolving fonts and finding the engraver happen
    before anything is rendered. Any error there is raised and the output folder
    is not created. Once rendering starts, failures of single jobs are recorded
    in the summary

    Args:
        path: the .ly file
        outdir: the output folder. One file per part plus one for the full score
            ('score.pdf') are written here, together with 'summary.json'
        options: the RunOptions. If not given, they are created from the user
            configuration
        parts: if given, only render these parts. Include 'score' to also render
            the full score
        engraver: the Engraver to use. If not given, lilypond is used
        onResult: a function called with each JobResult as soon as it finishes
        orchestrator: an Orchestrator to use, for example to be able to cancel
            the run from another thread. It overrides engraver and onResult

    Returns:
        the RunSummary

    Raises:
        ParseError: if the score can't be parsed
        UnknownPart: if any of parts is not defined in the score
        ResolveError: if a font directory does not exist
        EngraverNotFound: if lilypond could not be found
    """
    if options is None:
        options = RunOptions.fromConfig()
    doc = parser.readScore(path)
    derived = extract.extractParts(doc)
    if parts:
        derived = extract.selectTargets(derived, parts)
    fontconfig = fonts.resolveFonts(options.fontDirs, cacheDir=options.cacheDir)
    if orchestrator is None:
        if engraver is None:
            engraver = makeEngraver(options)
        orchestrator = render.Orchestrator(engraver=engraver,
                                           maxWorkers=options.jobs,
                                           tempdir=options.tempdir,
                                           onResult=onResult)
    jobs = render.makeJobs(derived, fontconfig, timeout=options.timeout)
    logger.info(f"Rendering {path}: {', '.join(job.target for job in jobs)}")
    results = orchestrator.run(jobs)
    summary = collect.collect(results, outdir=outdir, fmt=orchestrator.engraver.fmt,
                              keepWorkdirs=options.keepWorkdirs, source=str(path))
    summary.dump(os.path.join(outdir, SUMMARY_FILENAME))
    return summary


def renderMusicTree(root: str,
                    outdir: str,
                    options: RunOptions | None = None,
                    title: str | None = None,
                    layout: str | None = None,
                    category: str | None = None,
                    instrument: str | None = None,
                    voice: str | None = None,
                    tone: str | None = None,
                    clef: str | None = None,
                    limit: int | None = None,
                    parts: Sequence[str] = (),
                    engraver: lilytools.Engraver | None = None
                    ) -> dict[str, collect.RunSummary]:
    """
    Render every score within a music tree

    The parts of each score are written to ``<outdir>/<layout>/<sheetName>``
    (see :attr:`SheetSource.sheetName <partitions.sources.SheetSource.sheetName>`). A
    score which can't be parsed is logged and skipped, it does not stop the
    other scores

    Args:
        root: the root of the music tree (see :mod:`partitions.sources`)
        outdir: the root of the output tree
        options: the RunOptions
        title: only render the score with this title
        layout: only render scores with this layout ('a4' or 'carnet')
        category: only render scores within this category
        instrument: only render the sheets for this instrument
        voice: only render the sheets for this voice
        tone: only render the sheets in this tone
        clef: only render the sheets with this clef
        limit: max. number of scores to render
        parts: only render these parts. Scores not defining any of them are skipped
        engraver: the Engraver to use. If not given, lilypond is used

    Returns:
        a dict mapping the path of each rendered score to its RunSummary
    """
    from partitions.errors import ParseError, UnknownPart
    if options is None:
        options = RunOptions.fromConfig()
    if engraver is None:
        engraver = makeEngraver(options)
    found = sources.findSources(root, title=title, layout=layout, category=category,
                                instrument=instrument, voice=voice, tone=tone, clef=clef,
                                limit=limit)
    if not found:
        logger.warning(f"No scores found within '{root}'")
    summaries = {}
    for source in found:
        logger.info(f"Rendering {source.description}")
        try:
            summaries[source.path] = renderScore(source.path,
                                                 outdir=source.outputFolder(outdir),
                                                 options=options,
                                                 parts=parts,
                                                 engraver=engraver)
        except ParseError as e:
            logger.error(f"Could not parse '{source.path}' ({source.description}): {e}")
        except UnknownPart as e:
            logger.info(f"Skipping '{source.path}': {e}")
    return summaries

