"""
Command line interface

::

    partitions render menuet.ly -o parts -j 4 --fontdir /usr/share/fonts/truetype/dejavu
    partitions render menuet.ly -p violin -p score
    partitions lilypond --music-path music --title sambre-et-meuse --layout a4 -i trompette
    partitions check
    partitions config --set jobs=4 --set "fontDirs=[/usr/share/fonts/truetype/dejavu]"

Exit status: 0 if every job succeeded, 1 if any job failed or was cancelled,
2 for errors which prevent rendering (parse errors, missing fonts or lilypond, ...)
"""
from __future__ import annotations
import argparse
import sys

from partitions.common import getLogger, setLogLevel, FORMATS
from partitions.config import RunOptions, loadConfig
from partitions.errors import PartitionsError
from partitions import sources

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Any


logger = getLogger('partitions')


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def _addRunOptions(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('-f', '--format', choices=FORMATS, default=None,
                        help='Output format')
    parser.add_argument('-j', '--jobs', type=int, default=None,
                        help='Max. number of lilypond processes running in parallel '
                             '(default: number of cpus)')
    parser.add_argument('--fontdir', action='append', default=None, dest='fontdirs',
                        help='A font directory. Can be given multiple times, '
                             'replaces the configured font directories')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Max. time in seconds for a single lilypond process')
    parser.add_argument('--lilypond', default=None,
                        help='The lilypond binary to use')
    parser.add_argument('--resolution', type=int, default=None,
                        help='Resolution in dpi for png output')
    parser.add_argument('--keep-workdirs', action='store_true', default=None,
                        help='Keep the working directory of each job, for debugging')
    parser.add_argument('-p', '--part', action='append', default=[], dest='parts',
                        help="Only render this part. Can be given multiple times. "
                             "Use 'score' for the full score")


def makeParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='partitions',
                                     description='Tool to build and manage music sheets')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase verbosity (-v: info, -vv: debug)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    p = subparsers.add_parser('render', help='Render the parts and the full score of a .ly file')
    p.add_argument('source', help='The .ly file')
    p.add_argument('-o', '--output', default=None,
                   help='Output folder (default: a folder named after the source)')
    _addRunOptions(p)

    p = subparsers.add_parser('lilypond', help='Render all scores within a music tree')
    p.add_argument('-m', '--music-path', default=None, help='Path to the music sources')
    p.add_argument('-o', '--output', default=None, help='Root of the output tree')
    p.add_argument('-t', '--title', default=None, help='Only compile the selected title')
    p.add_argument('-c', '--category', choices=sources.CATEGORIES, default=None,
                   help='Only compile the selected category')
    p.add_argument('-i', '--instrument', choices=sources.INSTRUMENTS, default=None,
                   help='Only compile the sheets for the selected instrument')
    p.add_argument('--voice', choices=sources.VOICES, default=None,
                   help='Only compile the sheets for the selected voice')
    p.add_argument('--tone', choices=sources.TONES, default=None,
                   help='Only compile the sheets in the selected tone')
    p.add_argument('--clef', choices=sources.CLEFS, default=None,
                   help='Only compile the sheets with the selected clef')
    p.add_argument('--layout', choices=sources.LAYOUTS, default=None,
                   help='Only compile the selected layout')
    p.add_argument('-l', '--limit', type=int, default=None,
                   help='Max. number of scores to compile')
    _addRunOptions(p)

    subparsers.add_parser('check', help='Check that lilypond and the fonts are available')

    p = subparsers.add_parser('config', help='Show or modify the user configuration')
    p.add_argument('--set', action='append', default=[], dest='assignments', metavar='KEY=VALUE',
                   help='Set a key of the user configuration. The value is parsed as yaml, '
                        'as in "--set fontDirs=[/fonts/a, /fonts/b]". Can be given multiple times')
    p.add_argument('--reset', action='store_true',
                   help='Reset the user configuration to its defaults')
    return parser


def _runOptions(args: argparse.Namespace, cfg: dict) -> RunOptions:
    return RunOptions.fromConfig(cfg,
                                 fmt=args.format,
                                 jobs=args.jobs,
                                 fontDirs=args.fontdirs,
                                 timeout=args.timeout,
                                 lilypondBinary=args.lilypond,
                                 resolution=args.resolution,
                                 keepWorkdirs=args.keep_workdirs)


def _cmdRender(args: argparse.Namespace, cfg: dict) -> int:
    import os
    from partitions import pipeline, tui
    options = _runOptions(args, cfg)
    outdir = args.output or os.path.splitext(os.path.basename(args.source))[0]
    summary = pipeline.renderScore(args.source, outdir=outdir, options=options, parts=args.parts)
    tui.showSummary(summary, verbose=args.verbose > 0)
    return EXIT_OK if summary.ok else EXIT_FAILED


def _cmdLilypond(args: argparse.Namespace, cfg: dict) -> int:
    from partitions import pipeline, tui
    options = _runOptions(args, cfg)
    summaries = pipeline.renderMusicTree(args.music_path or cfg['musicPath'],
                                         outdir=args.output or cfg['outputPath'],
                                         options=options,
                                         title=args.title,
                                         layout=args.layout,
                                         category=args.category,
                                         instrument=args.instrument,
                                         voice=args.voice,
                                         tone=args.tone,
                                         clef=args.clef,
                                         limit=args.limit,
                                         parts=args.parts)
    for summary in summaries.values():
        tui.showSummary(summary, verbose=args.verbose > 0)
    return EXIT_OK if all(summary.ok for summary in summaries.values()) else EXIT_FAILED


def _cmdCheck(args: argparse.Namespace, cfg: dict) -> int:
    from partitions import dependencies
    options = RunOptions.fromConfig(cfg)
    dependencies.printReport(options)
    errors = dependencies.checkDependencies(options, verbose=args.verbose > 0)
    for err in errors:
        print(f"*** ERROR *** : {err}")
    return EXIT_FATAL if errors else EXIT_OK


def _parseAssignment(cfg: dict, assignment: str) -> tuple[str, Any]:
    from partitions._util import checkChoice
    key, sep, text = assignment.partition('=')
    key = key.strip()
    if not sep:
        raise ValueError(f"Expected KEY=VALUE, got '{assignment}'")
    checkChoice('key', key, sorted(cfg.keys()))
    if isinstance(cfg.default[key], str):
        return key, text
    import yaml
    return key, yaml.safe_load(text)


def _cmdConfig(args: argparse.Namespace, cfg: dict) -> int:
    import tabulate
    import textwrap
    from partitions import config
    usercfg = config.activeConfig()
    if args.reset:
        usercfg.reset()
    for assignment in args.assignments:
        key, value = _parseAssignment(usercfg, assignment)
        usercfg[key] = value
        logger.info(f"{key} = {value!r}")
    rows = [(key, repr(value), textwrap.fill(usercfg.getDoc(key), 50))
            for key, value in usercfg.items()]
    print(tabulate.tabulate(rows, headers=('key', 'value', 'doc')))
    if path := usercfg.getPath():
        print(f"\nSaved at '{path}'")
    return EXIT_OK


_commands = {
    'render': _cmdRender,
    'lilypond': _cmdLilypond,
    'check': _cmdCheck,
    'config': _cmdConfig,
}


def main(argv: list[str] | None = None) -> int:
    args = makeParser().parse_args(argv)
    setLogLevel({0: 'WARNING', 1: 'INFO'}.get(args.verbose, 'DEBUG'))
    try:
        cfg = loadConfig()
        return _commands[args.command](args, cfg)
    except (PartitionsError, ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        print(f"partitions: error: {e}", file=sys.stderr)
        return EXIT_FATAL
