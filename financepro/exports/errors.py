"""Export exceptions."""


class ExportError(Exception):
    """A file could not be generated."""
    pass
