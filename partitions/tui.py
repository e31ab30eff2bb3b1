"""
Text User Interface

Presents the results of a run in the terminal
"""
from __future__ import annotations
import sys

import rich.console
import rich.panel
import rich.text

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from partitions.collect import RunSummary


def insideInteractiveTerminal() -> bool:
    """
    Is stdout an interactive terminal?
    """
    return sys.stdout.isatty()


def panel(text: str, title='', subtitle='', bordercolor='', titlealign='left') -> None:
    """
    Print text within a box

    The text is printed verbatim, brackets are not interpreted as rich markup
    (the output of lilypond is full of them)

    Args:
        text: the content of the panel
        title: shown on the top border
        subtitle: shown on the bottom border
        bordercolor: any color rich understands ('red', 'green', '#a0a0a0', ...)
        titlealign: one of 'left', 'center', 'right'

    Example
    ~~~~~~~

    .. code-block:: python

        >>> from partitions import tui
        >>> tui.panel("violin  succeeded  violin.pdf", title="menuet.ly", bordercolor="green")
        ╭─ menuet.ly ──────────────────╮
        │ violin  succeeded  violin.pdf │
        ╰──────────────────────────────╯
    """
    box = rich.panel.Panel.fit(rich.text.Text(text), title=title, subtitle=subtitle,
                               border_style=bordercolor or 'none', title_align=titlealign,
                               padding=(0, 1))
    rich.console.Console().print(box)


def showSummary(summary: RunSummary, verbose=False) -> None:
    """
    Print a RunSummary

    Within a terminal the summary table is shown within a panel, green if every
    job succeeded, red otherwise. When the output is redirected only the table
    is printed

    Args:
        summary: the summary to show
        verbose: if True, also print the full diagnostic of each failed target
    """
    numok = len(summary.succeeded())
    subtitle = f"{numok}/{len(summary.entries)} ok"
    if summary.cancelled():
        subtitle += f", {len(summary.cancelled())} cancelled"
    interactive = insideInteractiveTerminal()
    if interactive:
        panel(summary.table(), title=summary.source or 'partitions', subtitle=subtitle,
              bordercolor='green' if summary.ok else 'red')
    else:
        print(f"{summary.source}: {subtitle}")
        print(summary.table())
    if not verbose:
        return
    for entry in summary.failed():
        if interactive:
            panel(entry.diagnostic, title=f"{entry.target}: {entry.status.value}", bordercolor='red')
        else:
            print(f"\n{entry.target}: {entry.status.value}\n{entry.diagnostic}")
