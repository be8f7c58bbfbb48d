from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from config import Settings
from database import parse_object_id
from exceptions import PersistenceError
from main import create_app


class FakeProductStore:
    """In-memory stand-in for ProductStore with the same contract."""

    def __init__(self):
        self.docs: Dict[ObjectId, Dict[str, Any]] = {}
        self.connected = False
        self.closed = False
        self.fail = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.closed = True

    def _check(self, operation: str, product_id=None) -> None:
        if self.fail:
            raise PersistenceError(operation, product_id)

    def list(self) -> List[Dict[str, Any]]:
        self._check("querying")
        return [dict(d) for d in self.docs.values()]

    def get_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        _id = parse_object_id(product_id)
        self._check("querying", product_id)
        doc = self.docs.get(_id)
        return dict(doc) if doc else None

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        self._check("inserting")
        product = {k: v for k, v in document.items() if k not in ("id", "_id")}
        product["_id"] = ObjectId()
        self.docs[product["_id"]] = product
        return dict(product)

    def replace(self, product_id: str, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        _id = parse_object_id(product_id)
        self._check("updating", product_id)
        if _id not in self.docs:
            return None
        product = dict(document, _id=_id)
        self.docs[_id] = product
        return dict(product)

    def delete(self, product_id: str) -> Optional[Dict[str, Any]]:
        _id = parse_object_id(product_id)
        self._check("deleting", product_id)
        return self.docs.pop(_id, None)


@pytest.fixture
def mr_krabs() -> Dict[str, Any]:
    return {
        "name": "Mr. Krabs",
        "description": "Geiziger Restaurantbesitzer",
        "price": 16.50,
        "stock": 5,
        "image_url": "https://example.com",
    }


@pytest.fixture
def store() -> FakeProductStore:
    return FakeProductStore()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def client(settings, store):
    app = create_app(settings, store=store)
    with TestClient(app) as c:
        yield c
