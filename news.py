import logging
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import InvalidInput, NotFound
from schemas import NewsPost, NewsStatus

logger = logging.getLogger(__name__)

NEWS_STATUSES = [s.value for s in NewsStatus]


def _check_status(status: Optional[str]):
    if status not in NEWS_STATUSES:
        raise InvalidInput("Invalid status value", error=f"Allowed: {', '.join(NEWS_STATUSES)}")


def list_news(db: Database, status: Optional[str] = None) -> List[dict]:
    query = {}
    if status:
        _check_status(status)
        query["status"] = status
    return [serialize(d) for d in get_documents(db, "newspost", query, newest_first=True)]


def create_news(db: Database, post: NewsPost) -> dict:
    doc = create_document(db, "newspost", post)
    logger.info("News post %s created (%s)", doc["_id"], doc["status"])
    return serialize(doc)


def update_news_status(db: Database, post_id: str, status: Optional[str]) -> dict:
    _check_status(status)
    oid = to_object_id(post_id)
    doc = db["newspost"].find_one_and_update(
        {"_id": oid}, {"$set": {"status": status, "updatedAt": utcnow()}}, return_document=ReturnDocument.AFTER
    ) if oid else None
    if not doc:
        raise NotFound("News post not found")
    return serialize(doc)


def delete_news(db: Database, post_id: str) -> dict:
    oid = to_object_id(post_id)
    deleted = db["newspost"].find_one_and_delete({"_id": oid}) if oid else None
    if not deleted:
        raise NotFound("News post not found")
    logger.info("News post %s deleted", oid)
    return {"message": "News post deleted"}
