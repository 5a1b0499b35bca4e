"""Error types for mdck."""


class MdckError(Exception):
    """A failure reported to the user as ``Error: <message>``."""


class SourceError(MdckError):
    """A command-line source that cannot be used."""


class DocumentEncodingError(MdckError):
    """A document that is not valid UTF-8."""

    def __init__(self, label: str, error: UnicodeDecodeError):
        super().__init__(
            f"{label}: invalid utf-8 sequence of {error.end - error.start} bytes "
            f"from index {error.start}"
        )
        self.label = label
        self.position = error.start
