"""Bulk document operations: NDJSON framing of actions and decoding of item results.

A bulk body is a sequence of newline-terminated JSON lines. Create, index and
update actions each take a metadata line followed by a document line; delete
takes only the metadata line.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Self
from urllib.parse import quote, urlencode

import orjson
from loguru import logger as log
from pydantic import BaseModel, TypeAdapter

from storequery.config.general import CONFIG
from storequery.errors import DecodeError, FramingError
from storequery.results.decode import (
    is_object,
    parse_object,
    read_bool,
    read_int,
    read_list,
    read_object,
    read_str,
)
from storequery.results.response import ShardMeta, StoreError
from storequery.types.general import JsonObject, Refresh
from storequery.validation import ValidationError, ValidationResults

__all__ = [
    "ActionError",
    "ActionResponse",
    "BulkAction",
    "BulkActionType",
    "BulkRequest",
    "BulkResponse",
    "DocumentRef",
    "Refresh",
    "RoutableDoc",
    "frame_actions",
]


class BulkActionType(str, Enum):
    """The kinds of per-document bulk operation."""

    CREATE = "create"
    INDEX = "index"
    UPDATE = "update"
    DELETE = "delete"


class RoutableDoc(Protocol):
    """A document that knows where it lives.

    id must be non-empty; index may be empty when the request sets a default.
    """

    @property
    def id(self) -> str:
        """Document identifier."""
        ...

    @property
    def index(self) -> str:
        """Index holding the document."""
        ...


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """A bare index/id pair, used by delete actions."""

    index: str
    id: str


def document_source(doc: Any) -> Any:
    """Convert a document to its JSON-compatible body."""
    if isinstance(doc, BaseModel):
        return doc.model_dump(mode="json")
    if isinstance(doc, Mapping):
        return dict(doc)  # pyright:ignore[reportUnknownArgumentType]
    return TypeAdapter(type(doc)).dump_python(doc, mode="json")


@dataclass(slots=True)
class BulkAction:
    """One document-level operation in a bulk request."""

    type: BulkActionType
    doc: RoutableDoc | None

    @classmethod
    def create(cls, doc: RoutableDoc) -> Self:
        """Create a document, failing if the id already exists."""
        return cls(BulkActionType.CREATE, doc)

    @classmethod
    def index(cls, doc: RoutableDoc) -> Self:
        """Create or replace a document."""
        return cls(BulkActionType.INDEX, doc)

    @classmethod
    def update(cls, doc: RoutableDoc) -> Self:
        """Partially update an existing document with doc's fields."""
        return cls(BulkActionType.UPDATE, doc)

    @classmethod
    def delete(cls, index: str, id: str) -> Self:
        """Delete a document by id."""
        return cls(BulkActionType.DELETE, DocumentRef(index, id))

    def validate(self, default_index: str = "", location: str = "") -> ValidationResults:
        """Collect every problem with this action.

        location, when given, prefixes every message (e.g. `actions[3]`).
        """
        results = ValidationResults()
        prefix = f"{location}: " if location else ""
        action = self.type.value
        if self.doc is None:
            results.fatal(f"{prefix}a bulk {action} action requires a document")
            return results
        if not self.doc.id:
            results.fatal(
                f"{prefix}a bulk {action} action requires a non-empty document id"
            )
        if not self.doc.index and not default_index:
            results.fatal(
                f"{prefix}a bulk {action} action for document '{self.doc.id}' has no "
                "index and the request sets no default index"
            )
        return results

    def marshal_lines(self) -> list[bytes]:
        """Frame this action as its metadata line and, except for delete, its document line."""
        action = self.type.value
        if self.doc is None:
            raise FramingError(f"a bulk {action} action requires a document")
        if not self.doc.id:
            raise FramingError(
                f"a bulk {action} action requires a non-empty document id"
            )

        meta: JsonObject = {"_id": self.doc.id}
        if self.doc.index:
            meta["_index"] = self.doc.index
        lines = [orjson.dumps({action: meta})]

        match self.type:
            case BulkActionType.DELETE:
                pass
            case BulkActionType.UPDATE:
                lines.append(orjson.dumps({"doc": document_source(self.doc)}))
            case BulkActionType.CREATE | BulkActionType.INDEX:
                lines.append(orjson.dumps(document_source(self.doc)))
        return lines


def frame_actions(actions: list[BulkAction]) -> bytes:
    """Frame actions into an NDJSON bulk body, preserving their order."""
    if not actions:
        raise FramingError("a bulk request requires at least one action")
    return b"".join(
        line + b"\n" for action in actions for line in action.marshal_lines()
    )


@dataclass(slots=True)
class BulkRequest:
    """An ordered batch of bulk actions.

    refresh defaults to CONFIG.bulk.refresh when left unset.
    """

    actions: list[BulkAction] = field(default_factory=list[BulkAction])
    index: str = ""
    refresh: Refresh | None = None

    def add(self, *actions: BulkAction) -> Self:
        """Append actions; they are sent in the order added."""
        self.actions.extend(actions)
        return self

    def with_index(self, index: str) -> Self:
        """Set the index used by actions whose document names none."""
        self.index = index
        return self

    def with_refresh(self, refresh: Refresh) -> Self:
        """Set when the changes become visible to search."""
        self.refresh = refresh
        return self

    def validate(self) -> ValidationResults:
        """Collect every problem across the whole batch."""
        results = ValidationResults()
        if not self.actions:
            results.fatal("a bulk request requires at least one action")
        for i, action in enumerate(self.actions):
            results.extend(action.validate(self.index, f"actions[{i}]"))
        return results

    def to_ndjson(self) -> bytes:
        """Validate the batch, then frame it as an NDJSON body."""
        results = self.validate()
        if results.is_fatal():
            log.warning(
                f"Refusing to frame bulk request: {len(results)} validation result(s)"
            )
            raise ValidationError(results)
        return frame_actions(self.actions)

    def params(self) -> dict[str, str]:
        """Query-string parameters for this request."""
        refresh = self.refresh if self.refresh is not None else CONFIG.bulk.refresh
        if refresh is Refresh.FALSE:
            return {}
        return {"refresh": refresh.value}

    def path(self) -> str:
        """The request path, e.g. `/logs/_bulk?refresh=wait_for`."""
        path = f"/{quote(self.index)}/_bulk" if self.index else "/_bulk"
        if params := self.params():
            path = f"{path}?{urlencode(params)}"
        return path


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionError:
    """The error attached to a failed bulk item."""

    type: str = ""
    reason: str = ""
    index: str = ""
    shard: str = ""
    index_uuid: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a bulk item `error` object."""
        shard = data.get("shard")
        return cls(
            type=read_str(data, "type"),
            reason=read_str(data, "reason"),
            index=read_str(data, "index"),
            shard="" if shard is None else str(shard),
            index_uuid=read_str(data, "index_uuid"),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionResponse:
    """The result of one bulk item.

    type is the action that produced it. When the item itself could not be
    decoded, decode_error is set and the other fields keep their defaults.
    """

    type: str = ""
    index: str = ""
    id: str = ""
    version: int = 0
    result: str = ""
    shards: ShardMeta | None = None
    seq_no: int = 0
    primary_term: int = 0
    status: int = 0
    error: ActionError | None = None
    decode_error: DecodeError | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a bulk item, which must be a single-key object keyed by action type."""
        if len(data) != 1:
            raise DecodeError(
                f"a bulk item must have exactly one action key, got {len(data)}: {list(data)}"
            )
        ((action, body),) = data.items()
        if not is_object(body):
            raise DecodeError(
                f"bulk item '{action}' must be an object, got {type(body).__name__}",
                field=action,
            )
        shards = read_object(body, "_shards")
        error = read_object(body, "error")
        return cls(
            type=action,
            index=read_str(body, "_index"),
            id=read_str(body, "_id"),
            version=read_int(body, "_version"),
            result=read_str(body, "result"),
            shards=None if shards is None else ShardMeta.from_dict(shards),
            seq_no=read_int(body, "_seq_no"),
            primary_term=read_int(body, "_primary_term"),
            status=read_int(body, "status"),
            error=None if error is None else ActionError.from_dict(error),
        )

    @property
    def failed(self) -> bool:
        """Return True if the store reported an error or the item could not be decoded."""
        return self.error is not None or self.decode_error is not None


@dataclass(frozen=True, slots=True, kw_only=True)
class BulkResponse:
    """A decoded bulk response.

    A malformed item does not fail the whole response; it is kept in place
    with its decode_error set.
    """

    took: int = 0
    errors: bool = False
    items: list[ActionResponse] = field(default_factory=list[ActionResponse])
    error: StoreError | None = None

    @classmethod
    def parse(cls, body: bytes | str | Mapping[str, Any]) -> Self:
        """Decode a raw response body."""
        return cls.from_dict(parse_object(body, "bulk response"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Decode an already-parsed response body."""
        items = list[ActionResponse]()
        for position, item in enumerate(read_list(data, "items")):
            try:
                if not is_object(item):
                    raise DecodeError(
                        f"a bulk item must be an object, got {type(item).__name__}"
                    )
                items.append(ActionResponse.from_dict(item))
            except DecodeError as e:
                log.warning(f"Could not decode bulk item {position}: {e}")
                items.append(ActionResponse(decode_error=e))
        error = data.get("error")
        return cls(
            took=read_int(data, "took"),
            errors=read_bool(data, "errors"),
            items=items,
            error=None if error is None else StoreError.from_value(error),
        )

    def failures(self) -> list[ActionResponse]:
        """Every item that failed or could not be decoded."""
        return [item for item in self.items if item.failed]
