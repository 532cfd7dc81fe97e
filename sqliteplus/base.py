"""Statement source abstraction.

Connection.execute accepts raw SQL text or anything that can resolve itself to
SQL text. QueryBinder is the bundled implementation; callers may plug in their
own builders as long as they honour the same contract.
"""
from __future__ import annotations
from typing import Protocol, runtime_checkable


@runtime_checkable
class Bindable(Protocol):
    def bind(self) -> str:
        """Return the final SQL text.

        MUST be side-effect free and repeatable. MUST raise BindError (never
        return a partially substituted string) when a placeholder is unresolved.
        """
        ...
