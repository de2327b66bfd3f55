"""Error taxonomy for the pictogram pipeline.

Stage-level failures (validation, collaborator) are caught at the stage
processor boundary and turned into a row status plus a logged message.
Import and persistence problems are reported to the caller or the log.
ContractViolation is different: it means the pipeline itself broke a
promise, and it is never caught.
"""


class PictonetError(Exception):
    """Base class for expected, recoverable pipeline errors."""


class StageValidationError(PictonetError, ValueError):
    """Malformed input to a stage, e.g. analysis text that is not JSON.

    The stage is marked ``error``; no automatic retry.
    """


class CollaboratorError(PictonetError):
    """An external generation, vectorization or structuring call failed.

    The message is passed through verbatim to the log and the caller.
    """


class CancellationSignal(PictonetError):
    """A stop was requested for a row while its work was in flight.

    Not a failure: the stage reverts its status instead of going to
    ``error``. Collaborators may raise it to abort cooperatively.
    """


class PersistenceWarning(PictonetError):
    """Durable storage rejected a write (quota exceeded or I/O failure).

    Logged only; the in-memory store stays authoritative.
    """


class ImportFormatError(PictonetError, ValueError):
    """Malformed import file. The whole import is rejected."""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input or a
    collaborator failure. It means a stage did not leave the row in the
    state it promised.

    Key distinction:
    - ValueError / ValidationError: user or config error (handled by Pydantic)
    - PictonetError: recoverable pipeline condition (status + log)
    - ContractViolation: pipeline bug (programmer error)
    """
    pass
