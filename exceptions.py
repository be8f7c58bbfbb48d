"""Error types shared by the product store and the HTTP routes."""


class ProductAPIError(Exception):
    """Base class for errors raised by the product service."""


class NotFoundError(ProductAPIError):
    """No product matches the given identifier."""


class InvalidIdError(NotFoundError):
    """The given identifier is not a valid ObjectId, so it cannot match a product."""

    def __init__(self, value):
        super().__init__(f"Invalid product id: {value!r}")
        self.value = value


class PersistenceError(ProductAPIError):
    """The document store failed or did not acknowledge a write."""

    def __init__(self, operation: str, product_id=None):
        message = f"Error {operation} product"
        if product_id is not None:
            message = f"{message} {product_id}"
        super().__init__(message)
        self.operation = operation
        self.product_id = product_id


class DatabaseConnectionError(ProductAPIError):
    """The document store could not be reached at startup."""
