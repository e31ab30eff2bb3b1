"""
Render derived documents in parallel

Each :class:`RenderJob` is rendered by one lilypond process, running in its
own working directory. At most ``maxWorkers`` processes run at the same time.
Results are returned in the order of the jobs, independently of the order in
which they finish.

Example
~~~~~~~

.. code-block:: python

    from partitions import parser, extract, fonts, lilytools, render

    doc = parser.readScore("menuet.ly")
    fontconfig = fonts.resolveFonts(["/usr/share/fonts/truetype/dejavu"])
    jobs = [render.RenderJob(d, fontconfig) for d in extract.extractParts(doc)]
    orchestrator = render.Orchestrator(lilytools.Engraver.lilypond(), maxWorkers=4)
    results = orchestrator.run(jobs)
"""
from __future__ import annotations
import enum
import os
import subprocess
import tempfile
import textwrap
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from partitions.common import getLogger
from partitions.errors import (RenderError, EngraverFailed, MissingOutput, RenderTimeout,
                               JobCancelled)
from partitions import lilytools
from partitions import _util

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Callable, Sequence
    from partitions.document import DerivedDocument
    from partitions.fonts import FontConfig


logger = getLogger('partitions')


_inputName = 'input.ly'
_outputBasename = 'output'


class JobStatus(enum.Enum):
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMEOUT = 'timeout'
    CANCELLED = 'cancelled'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class RenderJob:
    """
    One engraver invocation
    """
    document: DerivedDocument
    """The document to render"""

    fonts: FontConfig
    """The font configuration, shared by all jobs of a run"""

    timeout: float = 300.
    """Deadline, in seconds. The engraver is killed if it runs longer"""

    @property
    def target(self) -> str:
        return self.document.target


@dataclass
class JobResult:
    """
    The terminal state of a RenderJob
    """
    target: str
    status: JobStatus
    artifacts: list[str] = field(default_factory=list)
    """Files generated by the engraver, within workdir"""

    workdir: str = ''
    returncode: int | None = None
    stdout: str = ''
    stderr: str = ''
    pid: int | None = None
    elapsed: float = 0.
    error: RenderError | JobCancelled | None = None

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    def diagnostic(self) -> str:
        """
        A description of the failure, including the engraver's error output
        """
        if self.error is None:
            return ''
        msg = str(self.error)
        if self.stderr.strip():
            msg += "\n" + self.stderr.strip()
        return msg


def _killProcessTree(proc: subprocess.Popen) -> None:
    """
    Kill a process and all its descendants
    """
    import psutil
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    proc.kill()
    if children:
        psutil.wait_procs(children, timeout=5)


class Orchestrator:
    """
    Runs render jobs in a bounded pool of worker threads

    An Orchestrator is meant for one run. Once cancelled it does not start
    any new jobs

    Args:
        engraver: how to call the engraver
        maxWorkers: max. number of engraver processes running at the same time.
            If 0, the number of cpus is used
        tempdir: the folder where the working directory of each job is created.
            If not given a temporary folder within the user space is used
        onResult: if given, a function called with each JobResult as soon as the
            job finishes. It is called from the worker thread
    """
    def __init__(self,
                 engraver: lilytools.Engraver,
                 maxWorkers=0,
                 tempdir='',
                 onResult: Callable[[JobResult], None] | None = None):
        if maxWorkers < 0:
            raise ValueError(f"maxWorkers must be positive, got {maxWorkers}")
        self.engraver = engraver
        self.maxWorkers = maxWorkers or os.cpu_count() or 1
        self.tempdir = tempdir
        self.onResult = onResult
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._active: dict[int, subprocess.Popen] = {}

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """
        Cancel the run

        Running engraver processes are killed and queued jobs are not started.
        Can be called from any thread
        """
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            procs = list(self._active.values())
        logger.warning(f"Cancelling run, killing {len(procs)} active processes")
        for proc in procs:
            _killProcessTree(proc)

    def activePids(self) -> list[int]:
        """
        The pids of the engraver processes currently running
        """
        with self._lock:
            return [proc.pid for proc in self._active.values()]

    def run(self, jobs: Sequence[RenderJob]) -> list[JobResult]:
        """
        Render the given jobs

        A KeyboardInterrupt received while waiting cancels the run. In this case
        the jobs which did not finish are reported as cancelled

        Args:
            jobs: the jobs to run

        Returns:
            a list of JobResult, one per job, in the order of the jobs
        """
        if not jobs:
            return []
        tempdir = self.tempdir or _util.sessionTempdir().name
        os.makedirs(tempdir, exist_ok=True)
        numworkers = min(self.maxWorkers, len(jobs))
        logger.debug(f"Running {len(jobs)} jobs with {numworkers} workers, tempdir: {tempdir}")
        results: list[JobResult | None] = [None] * len(jobs)
        with ThreadPoolExecutor(max_workers=numworkers,
                                thread_name_prefix='partitions') as executor:
            futures = {executor.submit(self._runJob, idx, job, tempdir): idx
                       for idx, job in enumerate(jobs)}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except KeyboardInterrupt:
                logger.warning("Interrupted")
                self.cancel()
                for future, idx in futures.items():
                    results[idx] = future.result()
        assert all(result is not None for result in results)
        return results

    def _finish(self, result: JobResult) -> JobResult:
        if result.status is JobStatus.SUCCEEDED:
            logger.info(f"{result.target}: ok ({_util.readableTime(result.elapsed)})")
        elif result.status is JobStatus.CANCELLED:
            logger.info(f"{result.target}: cancelled")
        else:
            logger.error(f"{result.target}: {result.status} - {result.error}")
            if result.stdout.strip():
                logger.error("stdout: \n" + textwrap.indent(result.stdout, "!! "))
            if result.stderr.strip():
                logger.error("stderr: \n" + textwrap.indent(result.stderr, "!! "))
        if self.onResult is not None:
            self.onResult(result)
        return result

    def _runJob(self, idx: int, job: RenderJob, tempdir: str) -> JobResult:
        target = job.target
        if self._cancelled.is_set():
            return self._finish(JobResult(target, JobStatus.CANCELLED, error=JobCancelled(target)))

        workdir = tempfile.mkdtemp(prefix='job-', dir=tempdir)
        with open(os.path.join(workdir, _inputName), 'w', encoding='utf-8') as f:
            f.write(job.document.serialize())
        args = self.engraver.args(lilyfile=_inputName, basename=_outputBasename,
                                  includeDirs=job.document.includeDirs)
        env = os.environ.copy()
        env.update(job.fonts.environ())

        t0 = time.monotonic()
        # onResult might call cancel, so _finish is never called with the lock held
        proc = None
        with self._lock:
            if self._cancelled.is_set():
                early = JobResult(target, JobStatus.CANCELLED, workdir=workdir,
                                  error=JobCancelled(target))
            else:
                logger.debug(f"Calling engraver for '{target}' in {workdir}: {args}")
                try:
                    proc = subprocess.Popen(args, cwd=workdir, env=env,
                                            stdin=subprocess.DEVNULL,
                                            stdout=subprocess.PIPE,
                                            stderr=subprocess.PIPE)
                    self._active[idx] = proc
                except OSError as e:
                    error = EngraverFailed(f"Could not execute the engraver '{args[0]}': {e}",
                                           target=target)
                    early = JobResult(target, JobStatus.FAILED, workdir=workdir, error=error)
        if proc is None:
            return self._finish(early)

        timedout = False
        try:
            try:
                stdoutb, stderrb = proc.communicate(timeout=job.timeout)
            except subprocess.TimeoutExpired:
                timedout = True
                _killProcessTree(proc)
                stdoutb, stderrb = proc.communicate()
        finally:
            with self._lock:
                self._active.pop(idx, None)

        result = JobResult(target, JobStatus.SUCCEEDED,
                           workdir=workdir,
                           returncode=proc.returncode,
                           stdout=stdoutb.decode('utf-8', errors='replace'),
                           stderr=stderrb.decode('utf-8', errors='replace'),
                           pid=proc.pid,
                           elapsed=time.monotonic() - t0)
        outputs = lilytools.findOutputs(os.path.join(workdir, _outputBasename),
                                        fmt=self.engraver.fmt,
                                        suffix=job.document.outputSuffix)
        if self._cancelled.is_set() and (proc.returncode != 0 or not outputs):
            result.status = JobStatus.CANCELLED
            result.error = JobCancelled(target)
        elif timedout:
            result.status = JobStatus.TIMEOUT
            result.error = RenderTimeout(f"The engraver did not finish within {job.timeout} seconds",
                                         target=target, stderr=result.stderr)
        elif proc.returncode != 0:
            result.status = JobStatus.FAILED
            result.error = EngraverFailed(f"The engraver exited with code {proc.returncode}",
                                          target=target, returncode=proc.returncode,
                                          stderr=result.stderr)
        elif not outputs:
            expected = lilytools.outputBasename(_outputBasename, job.document.outputSuffix)
            result.status = JobStatus.FAILED
            result.error = MissingOutput(f"The engraver exited successfully but did not "
                                         f"generate '{expected}.{self.engraver.fmt}'",
                                         target=target, returncode=0, stderr=result.stderr)
        else:
            result.artifacts = outputs
        return self._finish(result)


def makeJobs(documents: Sequence[DerivedDocument], fonts: FontConfig, timeout=300.
             ) -> list[RenderJob]:
    """
    One RenderJob per document, all sharing the same font configuration
    """
    return [RenderJob(document=doc, fonts=fonts, timeout=timeout) for doc in documents]
