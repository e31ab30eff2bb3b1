"""
Collect rendered artifacts into the output folder and summarize a run
"""
from __future__ import annotations
import json
import os
import re
import shutil
import threading
from dataclasses import dataclass, field

from partitions.common import getLogger, FULL_SCORE
from partitions.errors import ArtifactError
from partitions.render import JobStatus

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Sequence
    from partitions.render import JobResult


logger = getLogger('partitions')


_collectLock = threading.Lock()


@dataclass
class SummaryEntry:
    """
    The outcome of one target of a run
    """
    target: str
    status: JobStatus
    outputs: list[str] = field(default_factory=list)
    """The files written to the output folder"""

    diagnostic: str = ''
    """For failed jobs, the error and the output of the engraver"""

    error: str = ''
    """The kind of error ('EngraverFailed', 'RenderTimeout', ...)"""

    returncode: int | None = None
    elapsed: float = 0.

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    def asdict(self) -> dict:
        return {'target': self.target,
                'status': self.status.value,
                'outputs': self.outputs,
                'error': self.error,
                'diagnostic': self.diagnostic,
                'returncode': self.returncode,
                'elapsed': round(self.elapsed, 3)}


@dataclass
class RunSummary:
    """
    One entry per render job of a run, in the order the jobs were scheduled
    """
    entries: list[SummaryEntry]
    outdir: str = ''
    source: str = ''

    @property
    def ok(self) -> bool:
        """True if every job succeeded"""
        return all(entry.ok for entry in self.entries)

    def targets(self) -> list[str]:
        return [entry.target for entry in self.entries]

    def get(self, target: str) -> SummaryEntry | None:
        return next((entry for entry in self.entries if entry.target == target), None)

    def succeeded(self) -> list[SummaryEntry]:
        return [entry for entry in self.entries if entry.status is JobStatus.SUCCEEDED]

    def failed(self) -> list[SummaryEntry]:
        """Entries which failed, including timeouts"""
        return [entry for entry in self.entries
                if entry.status in (JobStatus.FAILED, JobStatus.TIMEOUT)]

    def cancelled(self) -> list[SummaryEntry]:
        return [entry for entry in self.entries if entry.status is JobStatus.CANCELLED]

    def asdict(self) -> dict:
        return {'source': self.source,
                'outdir': self.outdir,
                'ok': self.ok,
                'entries': [entry.asdict() for entry in self.entries]}

    def dump(self, path: str) -> None:
        """
        Save this summary as json
        """
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.asdict(), f, indent=2, ensure_ascii=False)

    def table(self, tablefmt='simple') -> str:
        """
        This summary as a text table
        """
        import tabulate
        rows = []
        for entry in self.entries:
            outputs = ", ".join(os.path.basename(o) for o in entry.outputs)
            diagnostic = entry.diagnostic.splitlines()[0] if entry.diagnostic else ''
            rows.append((entry.target, entry.status.value, outputs or '-', diagnostic))
        return tabulate.tabulate(rows, headers=('target', 'status', 'outputs', 'diagnostic'),
                                 tablefmt=tablefmt)

    def __str__(self):
        return self.table()


def artifactName(target: str, fmt: str, page=0) -> str:
    """
    The name of the artifact of the given target within the output folder

    The full score is named after the reserved target 'score'

    Args:
        target: the part name or 'score'
        fmt: the output format
        page: for multi-page png output, the page number (starting at 1)

    Returns:
        the filename
    """
    if page:
        return f'{target}-page{page}.{fmt}'
    return f'{target}.{fmt}'


def existingArtifacts(outdir: str, target: str, fmt: str) -> list[str]:
    """
    The artifacts of target already present in outdir, from a previous run

    Returns:
        the paths of '<target>.<fmt>' and '<target>-page<N>.<fmt>', if present
    """
    if not os.path.isdir(outdir):
        return []
    pattern = re.compile(rf'{re.escape(target)}(-page\d+)?\.{re.escape(fmt)}')
    return sorted(os.path.join(outdir, f) for f in os.listdir(outdir) if pattern.fullmatch(f))


def _collectOne(result: JobResult, outdir: str, fmt: str, claimed: set[str]) -> SummaryEntry:
    entry = SummaryEntry(target=result.target, status=result.status,
                         returncode=result.returncode, elapsed=result.elapsed)
    if not result.ok:
        entry.diagnostic = result.diagnostic()
        entry.error = type(result.error).__name__ if result.error is not None else ''
        return entry

    multipage = len(result.artifacts) > 1
    for page, artifact in enumerate(result.artifacts, start=1):
        dest = os.path.join(outdir, artifactName(result.target, fmt, page=page if multipage else 0))
        error = None
        if dest in claimed:
            error = ArtifactError(f"'{dest}' was already written by another target of this run",
                                  target=result.target)
        else:
            try:
                shutil.move(artifact, dest)
            except OSError as e:
                error = ArtifactError(f"Could not move '{artifact}' to '{dest}': {e}",
                                      target=result.target)
        if error is not None:
            logger.error(str(error))
            for output in entry.outputs:
                os.remove(output)
                claimed.discard(output)
            entry.outputs = []
            entry.status = JobStatus.FAILED
            entry.error = error.kind
            entry.diagnostic = str(error)
            return entry
        claimed.add(dest)
        entry.outputs.append(dest)
    return entry


def collect(results: Sequence[JobResult],
            outdir: str,
            fmt='pdf',
            keepWorkdirs=False,
            source=''
            ) -> RunSummary:
    """
    Move the artifacts of the succeeded jobs to the output folder

    The output folder is created if needed. Artifacts left in it by a previous
    run for any of the targets of this run are removed first, so that the
    output folder holds exactly the artifacts of the succeeded targets. The
    working directory of each job is removed once its result has been recorded

    Args:
        results: the results of a run, as returned by Orchestrator.run
        outdir: the output folder
        fmt: the output format
        keepWorkdirs: if True, do not remove the working directories
        source: the path of the score, for information

    Returns:
        a RunSummary with one entry per result
    """
    targets = [result.target for result in results]
    if len(set(targets)) != len(targets):
        duplicates = sorted({t for t in targets if targets.count(t) > 1})
        raise ValueError(f"Duplicate targets in results: {duplicates}")

    entries = []
    claimed: set[str] = set()
    with _collectLock:
        os.makedirs(outdir, exist_ok=True)
        for target in targets:
            for stale in existingArtifacts(outdir, target, fmt):
                logger.debug(f"Removing '{stale}' from a previous run")
                os.remove(stale)
        for result in results:
            try:
                entries.append(_collectOne(result, outdir, fmt, claimed))
            finally:
                if result.workdir and not keepWorkdirs:
                    shutil.rmtree(result.workdir, ignore_errors=True)

    summary = RunSummary(entries=entries, outdir=outdir, source=source)
    if FULL_SCORE not in targets:
        logger.debug("The full score was not rendered in this run")
    logger.info(f"Collected {len(summary.succeeded())}/{len(entries)} targets into '{outdir}'")
    return summary
