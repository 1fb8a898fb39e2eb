"""
Catalog store and moderation workflow for gems and tools/instruments.

Both kinds share one status lifecycle (Pending -> Approved | Rejected) and one
visibility rule: admins see everything, everyone else only Approved items.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import AuthContext
from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import InvalidInput, NotFound
from schemas import Gem, ModerationStatus, Tool

logger = logging.getLogger(__name__)

MODERATION_STATUSES = [s.value for s in ModerationStatus]


@dataclass(frozen=True)
class CatalogKind:
    collection: str
    label: str
    folder: str
    admin_auto_approve: bool = False


GEMS = CatalogKind("gem", "Gem", "gemora-gems", admin_auto_approve=True)
INSTRUMENTS = CatalogKind("tool", "Instrument", "gemora-instruments")

PRODUCT_TYPES = {
    "Gem": GEMS,
    "Tool": INSTRUMENTS,
    "Instrument": INSTRUMENTS,
}


def kind_for_product_type(product_type: str) -> CatalogKind:
    try:
        return PRODUCT_TYPES[product_type]
    except KeyError:
        raise InvalidInput("Invalid product type", error=str(product_type))


def visibility_filter(auth: Optional[AuthContext]) -> dict:
    if auth is not None and auth.is_admin:
        return {}
    return {"status": ModerationStatus.APPROVED.value}


def present(kind: CatalogKind, doc: dict) -> dict:
    item = serialize(doc)
    if not isinstance(item.get("images"), list):
        item["images"] = [item["imageUrl"]] if item.get("imageUrl") else []
    if kind is GEMS:
        item["isApproved"] = item.get("status") == ModerationStatus.APPROVED.value
        item.pop("imageUrl", None)
    return item


def _oid_or_404(kind: CatalogKind, item_id: str):
    oid = to_object_id(item_id)
    if oid is None:
        raise NotFound(f"{kind.label} not found")
    return oid


def list_items(db: Database, kind: CatalogKind, auth: Optional[AuthContext]) -> List[dict]:
    docs = get_documents(db, kind.collection, visibility_filter(auth), newest_first=True)
    return [present(kind, d) for d in docs]


def get_item(db: Database, kind: CatalogKind, item_id: str) -> dict:
    doc = db[kind.collection].find_one({"_id": _oid_or_404(kind, item_id)})
    if not doc:
        raise NotFound(f"{kind.label} not found")
    return present(kind, doc)


def create_item(db: Database, kind: CatalogKind, auth: AuthContext, fields: dict, images: List[str]) -> dict:
    if not images:
        raise InvalidInput("At least one image is required")
    status = ModerationStatus.PENDING
    if kind.admin_auto_approve and auth.is_admin:
        status = ModerationStatus.APPROVED

    data = {k: v for k, v in fields.items() if v is not None}
    data.update(images=images, status=status)
    try:
        if kind is GEMS:
            model = Gem(seller_id=auth.user_id, **data)
        else:
            model = Tool(**data)
    except ValidationError as e:
        raise InvalidInput("Invalid data", error=str(e.errors()[0]["msg"]))
    doc = create_document(db, kind.collection, model)
    logger.info("%s %s created by %s with status %s", kind.label, doc["_id"], auth.user_id, doc["status"])
    return present(kind, doc)


def update_status(db: Database, kind: CatalogKind, item_id: str, status: Optional[str]) -> dict:
    if status not in MODERATION_STATUSES:
        raise InvalidInput("Invalid status value", error=f"Allowed: {', '.join(MODERATION_STATUSES)}")
    doc = db[kind.collection].find_one_and_update(
        {"_id": _oid_or_404(kind, item_id)},
        {"$set": {"status": status, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFound(f"{kind.label} not found")
    logger.info("%s %s moderated to %s", kind.label, doc["_id"], status)
    return present(kind, doc)


def bulk_approve(db: Database, kind: CatalogKind) -> dict:
    # legacy documents may predate the status field
    result = db[kind.collection].update_many(
        {"$or": [{"status": ModerationStatus.PENDING.value}, {"status": {"$exists": False}}]},
        {"$set": {"status": ModerationStatus.APPROVED.value, "updatedAt": utcnow()}},
    )
    logger.info("Bulk approved %d %s item(s)", result.modified_count, kind.collection)
    return {
        "message": f"Successfully approved {result.modified_count} {kind.label.lower()}s",
        "modifiedCount": result.modified_count,
    }


def delete_item(db: Database, kind: CatalogKind, item_id: str) -> dict:
    doc = db[kind.collection].find_one_and_delete({"_id": _oid_or_404(kind, item_id)})
    if not doc:
        raise NotFound(f"{kind.label} not found")
    logger.info("%s %s deleted", kind.label, doc["_id"])
    return {
        "message": f"{kind.label} deleted successfully",
        f"deleted{kind.label}": present(kind, doc),
    }
