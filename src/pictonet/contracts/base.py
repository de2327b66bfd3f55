"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
It enforces semantic invariants of the pipeline at stage boundaries.
"""

from typing import Type

from pictonet.contracts.failure import ContractViolation


def require(condition: bool, message: str, error: Type[Exception] = ContractViolation) -> None:
    """Enforce a pipeline contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.
    message : str
        Error message explaining the violation.
    error : type, optional
        Exception raised when the condition fails. Defaults to
        ContractViolation; stage preconditions pass StageValidationError.

    Raises
    ------
    ContractViolation
        If condition is False (or ``error`` when given).

    Examples
    --------
    >>> require(row.analysis_status == "completed", "Cascade contract: analysis not completed")
    """
    if not condition:
        raise error(message)
