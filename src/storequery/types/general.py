from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator

LogLevel = Annotated[
    Literal[
        "TRACE",
        "DEBUG",
        "INFO",
        "SUCCESS",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ],
    BeforeValidator(lambda a: str(a).upper()),
]

# A decoded JSON object; also the shape every node compiles to.
JsonObject = dict[str, Any]

# A JSON sub-tree kept undecoded until a caller asks for it by name.
RawPayload = Any


class Refresh(str, Enum):
    """When changes made by a bulk request become visible to search."""

    TRUE = "true"
    FALSE = "false"
    WAIT_FOR = "wait_for"
