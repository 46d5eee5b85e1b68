"""Errors raised by the wire and storage protocols."""

from __future__ import annotations


class ProtocolError(Exception):
    """A protocol-level failure, such as a malformed statement or a server error."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"protocol error: {self.message}"