"""
Classified outcomes of posting one batch downstream.

Outcomes are values rather than exceptions: the orchestrator branches on
them to decide the status each batch is reconciled to.
"""

from typing import Literal, Union

from pydantic import BaseModel, Field


class Delivered(BaseModel):
    """Any 2xx response."""

    kind: Literal["delivered"] = "delivered"
    status_code: int = Field(..., ge=200, le=299)
    body: str = ""

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_transient(self) -> bool:
        return False

    def describe(self) -> str:
        return f"HTTP {self.status_code}"


class Rejected(BaseModel):
    """The endpoint answered with a non-2xx status."""

    kind: Literal["rejected"] = "rejected"
    status_code: int
    body: str = ""

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_transient(self) -> bool:
        """Server-side errors may succeed on a later attempt; client errors will not."""
        return self.status_code >= 500

    def describe(self) -> str:
        body = self.body.strip()
        if len(body) > 200:
            body = body[:200] + "..."
        return f"HTTP {self.status_code} - {body}" if body else f"HTTP {self.status_code}"


class TransportFailure(BaseModel):
    """
    The exchange did not produce a usable response.

    Network-level errors (timeout, refused connection, DNS) are transient.
    Protocol errors such as redirect loops or undecodable bodies are not.
    """

    kind: Literal["transport_failure"] = "transport_failure"
    cause: str
    error_type: str = "TransportError"
    transient: bool = True

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_transient(self) -> bool:
        return self.transient

    def describe(self) -> str:
        return f"{self.error_type}: {self.cause}"


SendOutcome = Union[Delivered, Rejected, TransportFailure]
