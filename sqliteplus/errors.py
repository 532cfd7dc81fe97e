"""Operation outcomes.

Every public Connection operation returns a Result instead of setting a shared
error code, so a failure can never be misread after an unrelated success.
The numeric values of Status are the historical error codes.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum


class Status(IntEnum):
    SUCCESS = 0
    OPEN_FAILURE = 1
    ALREADY_OPEN = 2
    BIND_FAILURE = 3
    NOT_CONNECTED = 4
    ENGINE_FAILURE = 127


_DESCRIPTIONS = {
    Status.SUCCESS: "",
    Status.OPEN_FAILURE: "SQLITE DATABASE OPEN FAILURE",
    Status.ALREADY_OPEN: "SQLITE DATABASE ALREADY OPENED, CREATE NEW OBJECT FOR NEW DATABASE",
    Status.BIND_FAILURE: "Query Binding Failed",
    Status.NOT_CONNECTED: "No database connected",
}


@dataclass(frozen=True)
class Result:
    status: Status = Status.SUCCESS
    message: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", Status(self.status))

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    def __bool__(self) -> bool:
        return self.ok

    def describe(self) -> str:
        """Human-readable diagnostic; engine failures carry the engine's text verbatim."""
        if self.status is Status.ENGINE_FAILURE:
            return self.message
        base = _DESCRIPTIONS[self.status]
        if self.message and base:
            return f"{base}: {self.message}"
        return base or self.message


SUCCESS = Result()


def failure(status: Status, message: str = "") -> Result:
    if status is Status.SUCCESS:
        raise ValueError("failure() requires a failing status")
    return Result(status, message)
