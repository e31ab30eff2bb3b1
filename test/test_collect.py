import json
import os
import tempfile

import pytest

from partitions.collect import collect, artifactName, existingArtifacts, RunSummary
from partitions.errors import EngraverFailed, RenderTimeout, JobCancelled
from partitions.render import JobResult, JobStatus


def makeResult(tmp_path, target, status=JobStatus.SUCCEEDED, pages=1, fmt='pdf', **kws):
    workdir = tempfile.mkdtemp(prefix=f'job-{target}-', dir=str(tmp_path))
    artifacts = []
    if status is JobStatus.SUCCEEDED:
        names = [f'output.{fmt}'] if pages == 1 else [f'output-page{i}.{fmt}' for i in range(1, pages+1)]
        for name in names:
            path = os.path.join(workdir, name)
            with open(path, 'w') as f:
                f.write(f'{target}:{name}')
            artifacts.append(path)
    return JobResult(target, status, artifacts=artifacts, workdir=workdir, **kws)


def test_artifact_name():
    assert artifactName('violin', 'pdf') == 'violin.pdf'
    assert artifactName('score', 'ps') == 'score.ps'
    assert artifactName('cello', 'png', page=2) == 'cello-page2.png'


def test_collect(tmp_path):
    results = [
        makeResult(tmp_path, 'violin', returncode=0),
        makeResult(tmp_path, 'cello', JobStatus.FAILED, returncode=1, stderr='error: bad note\n',
                   error=EngraverFailed("The engraver exited with code 1", target='cello',
                                        returncode=1)),
        makeResult(tmp_path, 'score', returncode=0),
    ]
    outdir = tmp_path / 'out'
    summary = collect(results, outdir=str(outdir), source='menuet.ly')
    assert sorted(os.listdir(outdir)) == ['score.pdf', 'violin.pdf']
    assert (outdir / 'violin.pdf').read_text() == 'violin:output.pdf'
    assert summary.targets() == ['violin', 'cello', 'score']
    assert not summary.ok
    assert [e.target for e in summary.succeeded()] == ['violin', 'score']
    cello = summary.get('cello')
    assert [e.target for e in summary.failed()] == ['cello']
    assert cello.outputs == []
    assert cello.error == 'EngraverFailed'
    assert 'bad note' in cello.diagnostic
    assert summary.get('violin').outputs == [str(outdir / 'violin.pdf')]
    assert summary.get('nothere') is None
    # working directories are removed
    for result in results:
        assert not os.path.exists(result.workdir)


def test_keep_workdirs(tmp_path):
    results = [makeResult(tmp_path, 'violin')]
    collect(results, outdir=str(tmp_path / 'out'), keepWorkdirs=True)
    assert os.path.isdir(results[0].workdir)


def test_collect_pages(tmp_path):
    results = [makeResult(tmp_path, 'violin', pages=2, fmt='png'),
               makeResult(tmp_path, 'score', fmt='png')]
    outdir = tmp_path / 'out'
    summary = collect(results, outdir=str(outdir), fmt='png')
    assert sorted(os.listdir(outdir)) == ['score.png', 'violin-page1.png', 'violin-page2.png']
    assert (outdir / 'violin-page2.png').read_text() == 'violin:output-page2.png'
    assert len(summary.get('violin').outputs) == 2


def test_failed_and_cancelled(tmp_path):
    results = [
        makeResult(tmp_path, 'slow', JobStatus.TIMEOUT,
                   error=RenderTimeout("timeout", target='slow')),
        makeResult(tmp_path, 'queued', JobStatus.CANCELLED, error=JobCancelled('queued')),
    ]
    summary = collect(results, outdir=str(tmp_path / 'out'))
    assert os.listdir(tmp_path / 'out') == []
    assert [e.target for e in summary.failed()] == ['slow']
    assert [e.target for e in summary.cancelled()] == ['queued']
    assert summary.get('slow').error == 'RenderTimeout'
    assert summary.get('queued').error == 'JobCancelled'


def test_duplicate_targets(tmp_path):
    results = [makeResult(tmp_path, 'violin'),
               JobResult('violin', JobStatus.FAILED)]
    with pytest.raises(ValueError):
        collect(results, outdir=str(tmp_path / 'out'))
    assert not (tmp_path / 'out').exists()


def test_existing_artifacts_are_replaced(tmp_path):
    outdir = tmp_path / 'out'
    outdir.mkdir()
    (outdir / 'violin.pdf').write_text('old')
    collect([makeResult(tmp_path, 'violin')], outdir=str(outdir))
    assert (outdir / 'violin.pdf').read_text() == 'violin:output.pdf'


def test_summary_dump(tmp_path):
    results = [makeResult(tmp_path, 'violin', returncode=0, elapsed=1.23456),
               makeResult(tmp_path, 'score', JobStatus.FAILED, returncode=2,
                          error=EngraverFailed("failed", target='score', returncode=2))]
    summary = collect(results, outdir=str(tmp_path / 'out'), source='menuet.ly')
    path = tmp_path / 'out' / 'summary.json'
    summary.dump(str(path))
    data = json.loads(path.read_text())
    assert data['source'] == 'menuet.ly'
    assert data['ok'] is False
    assert [e['target'] for e in data['entries']] == ['violin', 'score']
    assert data['entries'][0]['status'] == 'succeeded'
    assert data['entries'][0]['elapsed'] == 1.235
    assert data['entries'][1]['status'] == 'failed'
    assert data['entries'][1]['returncode'] == 2


def test_summary_table():
    summary = RunSummary(entries=[])
    assert summary.ok
    assert 'target' in summary.table()


def test_show_summary(tmp_path, capsys):
    from partitions import tui
    results = [makeResult(tmp_path, 'violin'),
               makeResult(tmp_path, 'cello', JobStatus.FAILED, stderr='error: [bad] note',
                          error=EngraverFailed("failed", target='cello', returncode=1))]
    summary = collect(results, outdir=str(tmp_path / 'out'), source='menuet.ly')
    tui.showSummary(summary, verbose=True)
    out = capsys.readouterr().out
    assert 'violin' in out
    assert '[bad] note' in out


def test_rerun_removes_artifacts_of_failed_targets(tmp_path):
    outdir = tmp_path / 'out'
    collect([makeResult(tmp_path, 'violin'), makeResult(tmp_path, 'cello')], outdir=str(outdir))
    assert sorted(os.listdir(outdir)) == ['cello.pdf', 'violin.pdf']
    summary = collect([makeResult(tmp_path, 'violin'),
                       makeResult(tmp_path, 'cello', JobStatus.FAILED,
                                  error=EngraverFailed("failed", target='cello', returncode=1))],
                      outdir=str(outdir))
    assert [e.status for e in summary.entries] == [JobStatus.SUCCEEDED, JobStatus.FAILED]
    assert os.listdir(outdir) == ['violin.pdf']


def test_rerun_with_fewer_pages(tmp_path):
    outdir = tmp_path / 'out'
    collect([makeResult(tmp_path, 'violin', pages=3, fmt='png')], outdir=str(outdir), fmt='png')
    assert len(os.listdir(outdir)) == 3
    collect([makeResult(tmp_path, 'violin', fmt='png')], outdir=str(outdir), fmt='png')
    assert os.listdir(outdir) == ['violin.png']


def test_artifacts_of_other_targets_are_kept(tmp_path):
    outdir = tmp_path / 'out'
    outdir.mkdir()
    for name in ['cello.pdf', 'violin-page3.pdf', 'violin-pages.pdf', 'violino.pdf',
                 'violin.png', 'violin.pdf']:
        (outdir / name).write_text('old')
    assert existingArtifacts(str(outdir), 'violin', 'pdf') == [
        str(outdir / 'violin-page3.pdf'), str(outdir / 'violin.pdf')]
    collect([makeResult(tmp_path, 'violin')], outdir=str(outdir))
    assert sorted(os.listdir(outdir)) == ['cello.pdf', 'violin-pages.pdf', 'violin.pdf',
                                          'violin.png', 'violino.pdf']


def test_colliding_destinations(tmp_path):
    results = [makeResult(tmp_path, 'score-page1', fmt='png'),
               makeResult(tmp_path, 'score', pages=2, fmt='png')]
    outdir = tmp_path / 'out'
    summary = collect(results, outdir=str(outdir), fmt='png')
    assert summary.get('score-page1').ok
    assert summary.get('score-page1').outputs == [str(outdir / 'score-page1.png')]
    score = summary.get('score')
    assert score.status is JobStatus.FAILED
    assert score.error == 'ArtifactError'
    assert score.outputs == []
    assert os.listdir(outdir) == ['score-page1.png']
    assert (outdir / 'score-page1.png').read_text() == 'score-page1:output.png'
