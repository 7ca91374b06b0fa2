from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, TypeVar


T = TypeVar("T")


@dataclass
class ServiceError(Exception):
    message: str
    status_code: int = 500
    data: Any = None
    meta: Any = None

    def __str__(self) -> str:
        return self.message


class InvalidInputError(ServiceError):
    """Out-of-range runs/ME/TE or malformed ids. Caller bug, never retried."""

    def __init__(self, message: str, *, data: Any = None) -> None:
        super().__init__(message=message, status_code=400, data=data)


class NotFoundError(ServiceError):
    def __init__(self, message: str, *, data: Any = None) -> None:
        super().__init__(message=message, status_code=404, data=data)


class CyclicDependencyError(ServiceError):
    """A blueprint chain references itself transitively."""

    def __init__(self, chain: list[int]) -> None:
        self.chain = list(chain)
        super().__init__(
            message="Cyclic blueprint dependency: " + " -> ".join(str(x) for x in self.chain),
            status_code=422,
            data={"chain": self.chain},
        )


class NoDecryptorDataError(ServiceError):
    def __init__(self, type_id: int) -> None:
        super().__init__(
            message=f"Item {int(type_id)} is not inventable (no invention data)",
            status_code=400,
            data={"type_id": int(type_id)},
        )


class CollaboratorError(ServiceError):
    """Wraps a failure raised by a catalog, price, skill or cost-index lookup."""

    def __init__(self, collaborator: str, cause: BaseException) -> None:
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(
            message=f"{collaborator} lookup failed: {cause}",
            status_code=502,
            meta={"collaborator": collaborator},
        )


def call_collaborator(collaborator: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Invoke a collaborator, re-raising anything but a ServiceError as CollaboratorError."""

    try:
        return fn(*args, **kwargs)
    except ServiceError:
        raise
    except Exception as e:
        raise CollaboratorError(collaborator, e) from e
