"""Error taxonomy shared by the core and translated to HTTP by the presentation layer."""


class AwesomeSearchError(Exception):
    """Base class for all service errors."""


class InputError(AwesomeSearchError):
    """Malformed or out-of-range caller input."""


class NotFoundError(AwesomeSearchError):
    """Referenced list, repository or readme is absent from the current generation."""

    def __init__(self, kind: str, identifier: int):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class IndexUnavailable(AwesomeSearchError):
    """No generation has been published yet."""


class BuildFailure(AwesomeSearchError):
    """Snapshot could not be turned into an index generation."""


class InvalidGeneration(BuildFailure):
    """Generation rejected by the snapshot manager on publish."""


class SignatureInvalid(AwesomeSearchError):
    """Ingestion notification failed signature verification."""


class StoreUnavailable(AwesomeSearchError):
    """Backing database file does not exist."""


class StoreError(AwesomeSearchError):
    """Storage read failed; carries the operation and the target involved."""

    def __init__(self, operation: str, target: str, cause: Exception):
        self.operation = operation
        self.target = target
        self.cause = cause
        super().__init__(f"{operation} failed for {target}: {cause}")
