"""MongoDB access for the product collection."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidDocument, InvalidId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from exceptions import DatabaseConnectionError, InvalidIdError, PersistenceError

logger = logging.getLogger(__name__)

# BSON encoding errors (e.g. ints wider than 8 bytes) are not PyMongoErrors.
STORE_ERRORS = (PyMongoError, InvalidDocument, OverflowError)


def parse_object_id(value: Any) -> ObjectId:
    """Convert a path or payload id into an ObjectId.

    Raises InvalidIdError for anything that is not a 24 character hex
    string or an ObjectId already.
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise InvalidIdError(value)
    try:
        return ObjectId(value)
    except InvalidId:
        raise InvalidIdError(value) from None


class ProductStore:
    """Owns the MongoDB client and the products collection.

    Call ``connect`` once before any other method.  The underlying
    ``MongoClient`` is thread safe, so one store instance is shared by all
    request handlers.
    """

    def __init__(
        self,
        uri: str,
        database_name: str,
        collection_name: str = "products",
        server_selection_timeout_ms: int = 5000,
    ):
        self._uri = uri
        self._database_name = database_name
        self._collection_name = collection_name
        self._timeout_ms = server_selection_timeout_ms

        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = None

    def connect(self) -> None:
        """Open the client and check the server answers a ping."""
        try:
            client = MongoClient(self._uri, serverSelectionTimeoutMS=self._timeout_ms)
            client.admin.command("ping")
        except PyMongoError as e:
            logger.error("Could not connect to MongoDB at %s: %s", self._uri, e)
            raise DatabaseConnectionError(str(e)) from e
        self._client = client
        self._collection = client[self._database_name][self._collection_name]
        logger.info("Connected to MongoDB")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._collection = None

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            raise PersistenceError("accessing")
        return self._collection

    def list(self) -> List[Dict[str, Any]]:
        try:
            return list(self.collection.find())
        except STORE_ERRORS:
            logger.exception("Error querying products")
            raise PersistenceError("querying") from None

    def get_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Return the product with ``product_id`` or None."""
        _id = parse_object_id(product_id)
        try:
            return self.collection.find_one({"_id": _id})
        except STORE_ERRORS:
            logger.exception("Error querying product %s", product_id)
            raise PersistenceError("querying", product_id) from None

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert ``document`` and return it with the generated ``_id``."""
        product = dict(document)
        # ids are always generated by the store
        product.pop("id", None)
        product.pop("_id", None)
        try:
            # the driver writes _id into the dict it is given
            result = self.collection.insert_one(dict(product))
        except STORE_ERRORS:
            logger.exception("Error inserting product")
            raise PersistenceError("inserting") from None
        if not result.acknowledged:
            logger.error("Error inserting product: write not acknowledged")
            raise PersistenceError("inserting")
        product["_id"] = result.inserted_id
        return product

    def replace(self, product_id: str, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Overwrite the whole product stored under ``product_id``.

        Returns the new document, or None when no product has that id.
        A match without modification (identical content) still counts as
        success.
        """
        _id = parse_object_id(product_id)
        product = dict(document)
        supplied = product.pop("id", None)
        if "_id" in product:
            supplied = product.pop("_id")
        product["_id"] = parse_object_id(supplied) if supplied is not None else _id
        try:
            result = self.collection.replace_one({"_id": _id}, product)
        except STORE_ERRORS:
            logger.exception("Error updating product %s", product_id)
            raise PersistenceError("updating", product_id) from None
        if not result.acknowledged:
            logger.error("Error updating product %s: write not acknowledged", product_id)
            raise PersistenceError("updating", product_id)
        if result.matched_count == 1 or result.modified_count == 1:
            return product
        logger.info("Product %s not found for update", product_id)
        return None

    def delete(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Remove the product and return it, or None if it did not exist."""
        _id = parse_object_id(product_id)
        try:
            return self.collection.find_one_and_delete({"_id": _id})
        except STORE_ERRORS:
            logger.exception("Error deleting product %s", product_id)
            raise PersistenceError("deleting", product_id) from None
