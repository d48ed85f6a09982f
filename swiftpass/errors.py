class MalformedTime(ValueError):
    """Raised for clock strings that are not strict 24-hour HH:MM."""


class CredentialDecodeError(ValueError):
    code = "decode_error"


class UnrecognizedFormat(CredentialDecodeError):
    code = "unrecognized_format"


class MissingSubjectIdentity(CredentialDecodeError):
    code = "missing_subject_identity"


class DispatchFailed(RuntimeError):
    """The door controller did not acknowledge a signal."""

    def __init__(self, message: str, http_status: int | None = None):
        super().__init__(message)
        self.http_status = http_status


class SessionRuleError(ValueError):
    """Invalid lab session definition (day, window or section)."""
