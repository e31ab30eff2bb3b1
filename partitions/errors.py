"""
Exceptions raised by partitions

Fatal errors (:class:`ParseError`, :class:`ResolveError`, :class:`EngraverNotFound`,
:class:`UnknownPart`) abort a run before any engraver process is started. A
:class:`RenderError` belongs to one job only and is recorded in the run summary
together with the results of its siblings.
"""
from __future__ import annotations


class PartitionsError(Exception):
    pass


class ParseError(PartitionsError):
    """The score source could not be split into blocks"""
    def __init__(self, msg: str, line: int = 0):
        if line:
            msg = f"line {line}: {msg}"
        super().__init__(msg)
        self.line = line


class MalformedBlock(ParseError):
    """A block is opened but never closed, or delimiters do not match"""


class DuplicatePart(ParseError):
    def __init__(self, name: str, line: int = 0):
        super().__init__(f"Part '{name}' is defined more than once", line=line)
        self.name = name


class InvalidPartName(ParseError):
    def __init__(self, name: str, reason: str, line: int = 0):
        super().__init__(f"Invalid part name '{name}': {reason}", line=line)
        self.name = name


class NoScoreDefinition(ParseError):
    def __init__(self):
        super().__init__("No score definition found (a top level \\score block or "
                         "a \\book without \\bookOutputSuffix)")


class DuplicateScoreDefinition(ParseError):
    def __init__(self, line: int = 0):
        super().__init__("Only one score definition is allowed per source", line=line)


class ResolveError(PartitionsError):
    """The font bundle is not usable"""


class MissingFontDirectory(ResolveError):
    def __init__(self, path: str):
        super().__init__(f"Font directory not found: '{path}'")
        self.path = path


class EngraverNotFound(PartitionsError):
    pass


class UnknownPart(PartitionsError):
    def __init__(self, name: str, msg: str = ''):
        super().__init__(msg or f"Unknown part '{name}'")
        self.name = name


class RenderError(PartitionsError):
    """
    A single render job failed

    Attributes:
        target: the part (or 'score') this job was rendering
        returncode: the exit code of the engraver, None if it did not exit by itself
        stderr: the captured error output of the engraver
    """
    def __init__(self, msg: str, target: str, returncode: int | None = None, stderr=''):
        super().__init__(msg)
        self.target = target
        self.returncode = returncode
        self.stderr = stderr

    @property
    def kind(self) -> str:
        return type(self).__name__


class EngraverFailed(RenderError):
    pass


class MissingOutput(RenderError):
    pass


class RenderTimeout(RenderError):
    pass


class ArtifactError(RenderError):
    """The artifact was produced but could not be moved to the output folder"""


class JobCancelled(PartitionsError):
    """The run was interrupted before this job reached a terminal state"""
    def __init__(self, target: str):
        super().__init__(f"Job '{target}' was cancelled")
        self.target = target
