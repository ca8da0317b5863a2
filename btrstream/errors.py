"""Exceptions raised while reading or writing send streams."""


class SendStreamError(Exception):
    """Base class for send stream errors."""


class InvalidMagicError(SendStreamError):
    """The stream does not start with the send stream magic."""

    def __init__(self, message: str = "invalid magic") -> None:
        super().__init__(message)


class InvalidVersionError(SendStreamError):
    """The stream header carries an unsupported version."""

    def __init__(self, message: str = "invalid version") -> None:
        super().__init__(message)


class HeaderAlreadyParsedError(SendStreamError):
    """The stream header was read more than once."""

    def __init__(self, message: str = "header already parsed") -> None:
        super().__init__(message)


class InvalidChecksumError(SendStreamError):
    """A command's crc32c checksum does not match its contents."""

    def __init__(self, message: str = "invalid crc32 checksum for command") -> None:
        super().__init__(message)


class HeaderAlreadySentError(SendStreamError):
    """The stream header was written more than once."""

    def __init__(self, message: str = "header already sent") -> None:
        super().__init__(message)