from dataclasses import dataclass

import orjson
import pytest
from pydantic import BaseModel, Field

import storequery.bulk as bulk_mod
from storequery.bulk import (
    ActionResponse,
    BulkAction,
    BulkActionType,
    BulkRequest,
    BulkResponse,
    DocumentRef,
    frame_actions,
)
from storequery.errors import DecodeError, FramingError
from storequery.types.general import Refresh
from storequery.validation import ValidationError


@dataclass
class Product:
    id: str
    index: str
    name: str


class Order(BaseModel):
    id: str
    index: str = Field(default="", exclude=True)
    total: float


def test_five_line_framing_order():
    request = BulkRequest().add(
        BulkAction.create(Product("a", "products", "lamp")),
        BulkAction.delete("products", "old"),
        BulkAction.update(Product("b", "products", "desk")),
    )

    lines = request.to_ndjson().split(b"\n")

    assert lines[-1] == b""
    assert lines[:-1] == [
        b'{"create":{"_id":"a","_index":"products"}}',
        b'{"id":"a","index":"products","name":"lamp"}',
        b'{"delete":{"_id":"old","_index":"products"}}',
        b'{"update":{"_id":"b","_index":"products"}}',
        b'{"doc":{"id":"b","index":"products","name":"desk"}}',
    ]


def test_index_without_document_index_uses_request_default():
    request = (
        BulkRequest()
        .with_index("orders")
        .add(BulkAction.index(Order(id="o1", total=9.5)))
    )

    assert request.to_ndjson() == b'{"index":{"_id":"o1"}}\n{"id":"o1","total":9.5}\n'
    assert request.path() == "/orders/_bulk"


def test_empty_batch_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        BulkRequest().to_ndjson()
    assert exc_info.value.results.messages == [
        "a bulk request requires at least one action"
    ]

    with pytest.raises(FramingError):
        frame_actions([])


def test_framing_rejects_absent_document_and_empty_id():
    with pytest.raises(FramingError, match="requires a document"):
        BulkAction(BulkActionType.INDEX, None).marshal_lines()
    with pytest.raises(FramingError, match="non-empty document id"):
        BulkAction.create(Product("", "products", "lamp")).marshal_lines()


def test_framing_error_produces_no_bytes():
    actions = [
        BulkAction.delete("products", "ok"),
        BulkAction.delete("products", ""),
    ]
    with pytest.raises(FramingError):
        frame_actions(actions)


def test_validation_covers_every_action():
    request = BulkRequest().add(
        BulkAction.create(Product("", "", "lamp")),
        BulkAction(BulkActionType.UPDATE, None),
        BulkAction.delete("products", "x"),
    )
    results = request.validate()

    assert results.messages == [
        "actions[0]: a bulk create action requires a non-empty document id",
        "actions[0]: a bulk create action for document '' has no index and the request sets no default index",
        "actions[1]: a bulk update action requires a document",
    ]
    with pytest.raises(ValidationError):
        request.to_ndjson()


def test_refresh_param(monkeypatch: pytest.MonkeyPatch):
    request = BulkRequest().add(BulkAction.delete("products", "x"))
    monkeypatch.setattr(bulk_mod.CONFIG.bulk, "refresh", Refresh.FALSE)
    assert request.path() == "/_bulk"

    monkeypatch.setattr(bulk_mod.CONFIG.bulk, "refresh", Refresh.TRUE)
    assert request.path() == "/_bulk?refresh=true"

    request.with_refresh(Refresh.WAIT_FOR)
    assert request.path() == "/_bulk?refresh=wait_for"


def test_delete_action_wraps_document_ref():
    action = BulkAction.delete("products", "x")
    assert action.doc == DocumentRef("products", "x")
    assert action.marshal_lines() == [b'{"delete":{"_id":"x","_index":"products"}}']


def test_action_response_decodes_item():
    item = ActionResponse.from_dict(
        {
            "index": {
                "_index": "products",
                "_id": "a",
                "_version": 2,
                "result": "updated",
                "_shards": {"total": 2, "successful": 1, "failed": 0},
                "_seq_no": 7,
                "_primary_term": 1,
                "status": 200,
                "error": None,
            }
        }
    )

    assert item.type == "index"
    assert item.index == "products"
    assert item.id == "a"
    assert item.version == 2
    assert item.result == "updated"
    assert item.shards is not None
    assert item.shards.successful == 1
    assert item.seq_no == 7
    assert item.primary_term == 1
    assert item.status == 200
    assert item.error is None
    assert not item.failed


def test_action_response_with_error():
    item = ActionResponse.from_dict(
        {
            "create": {
                "_index": "products",
                "_id": "a",
                "status": 409,
                "error": {
                    "type": "version_conflict_engine_exception",
                    "reason": "[a]: version conflict, document already exists",
                    "index": "products",
                    "shard": "0",
                    "index_uuid": "abc",
                },
            }
        }
    )

    assert item.failed
    assert item.error is not None
    assert item.error.type == "version_conflict_engine_exception"
    assert item.error.shard == "0"
    assert item.error.index_uuid == "abc"


def test_action_response_accepts_any_single_key():
    assert ActionResponse.from_dict({"action": {}}).type == "action"


@pytest.mark.parametrize(
    "item",
    [{}, {"index": {}, "create": {}}],
    ids=["no key", "two keys"],
)
def test_action_response_requires_exactly_one_key(item: dict[str, dict[str, object]]):
    with pytest.raises(DecodeError):
        ActionResponse.from_dict(item)


def test_bulk_response_localizes_item_decode_failures():
    body = orjson.dumps(
        {
            "took": 30,
            "errors": True,
            "items": [
                {"delete": {"_index": "products", "_id": "x", "status": 404, "result": "not_found"}},
                {"index": {}, "update": {}},
                {"update": {"_index": "products", "_id": "b", "status": 200}},
            ],
        }
    )

    response = BulkResponse.parse(body)

    assert response.took == 30
    assert response.errors
    assert len(response.items) == 3
    assert response.items[0].result == "not_found"
    assert response.items[1].decode_error is not None
    assert response.items[2].id == "b"
    assert response.failures() == [response.items[1]]


def test_bulk_response_top_level_shape_errors_raise():
    with pytest.raises(DecodeError):
        BulkResponse.parse(b"[1, 2]")
    with pytest.raises(DecodeError):
        BulkResponse.parse(b'{"took": "slow"}')
