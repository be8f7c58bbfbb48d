import re
from typing import Any, Dict, List

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Loose URL shape: optional scheme, optional credentials, host-like labels,
# optional port, optional path/query/fragment. TLD and scheme not required.
URL_PATTERN = re.compile(
    r"^(?:[a-zA-Z][a-zA-Z0-9+.\-]*://)?"
    r"(?:[^\s:@/]+(?::[^\s@/]*)?@)?"
    r"(?:\[[0-9a-fA-F:.]+\]|[a-zA-Z0-9_][a-zA-Z0-9_\-]*(?:\.[a-zA-Z0-9_][a-zA-Z0-9_\-]*)*\.?)"
    r"(?::\d{1,5})?"
    r"(?:[/?#]\S*)?$"
)

FIELD_MESSAGES = {
    "name": "Name must be a string",
    "description": "Description must be a string",
    "price": "Price must be a positive float",
    "stock": "Stock must be a positive integer",
    "image_url": "URL must be a valid URL",
}

EXTRA_FIELD_MESSAGE = "No additional fields allowed"

# BSON stores integers as signed 64 bit.
MAX_STOCK = 2**63 - 1


def is_url(value: str) -> bool:
    if not value or len(value) > 2083:
        return False
    return URL_PATTERN.match(value) is not None


# ---------- Schemas ----------

class ProductIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Product name", examples=["Mr. Krabs"])
    description: str = Field(..., description="Product description", examples=["Geiziger Restaurantbesitzer"])
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Price", examples=[16.50])
    stock: int = Field(..., ge=0, le=MAX_STOCK, description="Units in stock", examples=[5])
    image_url: str = Field(..., description="Image URL", examples=["https://example.com"])

    @field_validator("price", "stock", mode="before")
    @classmethod
    def reject_bool(cls, value: Any) -> Any:
        # JSON true/false would otherwise coerce to 1/0
        if isinstance(value, bool):
            raise ValueError("must be a number, not a boolean")
        return value


class CheckedProductIn(ProductIn):
    """ProductIn with the image_url URL-shape check enabled."""

    @field_validator("image_url")
    @classmethod
    def check_image_url(cls, value: str) -> str:
        if not is_url(value):
            raise ValueError(FIELD_MESSAGES["image_url"])
        return value


class ProductOut(ProductIn):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Product id", examples=["6439519dadb77c080671a573"])


class FieldError(BaseModel):
    field: str
    message: str


# ---------- Helpers ----------

def doc_to_dict(doc: dict) -> dict:
    out = {}
    for k, v in doc.items():
        if isinstance(v, ObjectId):
            out[k] = str(v)
        else:
            out[k] = v
    if "_id" in out:
        out["id"] = out.pop("_id")
    return out


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Turn pydantic request errors into one ``{field, message}`` per field.

    Body errors are located as ``("body", <field>, ...)``; errors on the body
    as a whole (not a JSON object, missing) keep pydantic's own message.
    """
    out: List[Dict[str, str]] = []
    seen = set()
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in ("body", "path", "query"):
            loc = loc[1:]
        if not loc:
            field, message = "body", error.get("msg", "Invalid request body")
        else:
            field = loc[0]
            if error.get("type") == "extra_forbidden":
                message = EXTRA_FIELD_MESSAGE
            else:
                message = FIELD_MESSAGES.get(field, error.get("msg", "Invalid value"))
        if field in seen:
            continue
        seen.add(field)
        out.append(FieldError(field=field, message=message).model_dump())
    return out
