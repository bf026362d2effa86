"""
Error taxonomy for the saju engine.

InvalidDate is the caller's problem (bad calendar input). TermNotFound and
PillarLookupMiss mean the engine itself is broken and should surface as a
generic failure, never be recovered from.
"""


class SajuError(Exception):
    """Root of every error raised by the engine."""


class InvalidDate(SajuError, ValueError):
    """Calendar components out of range."""


class TermNotFound(SajuError, RuntimeError):
    """No sign crossing of the solar longitude inside the scan window."""

    def __init__(self, year: int, term_name: str):
        self.year = year
        self.term_name = term_name
        super().__init__(f"Solar term {term_name} not found for {year}")


class PillarLookupMiss(SajuError, LookupError):
    """A stem/branch pair that is not one of the sixty pillars."""

    def __init__(self, stem: int, branch: int):
        self.stem = stem
        self.branch = branch
        super().__init__(f"No sexagenary pillar for stem {stem}, branch {branch}")
