import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.api_core import exceptions as gexc
from google.cloud import firestore

from . import config
from .errors import PersistenceError

logger = logging.getLogger(__name__)

HEMOCYTOMETER_PRESETS = "hemocytometerPresets"
AUTO_COUNTER_PRESETS = "autoCounterPresets"
MIXTURE_PRESETS = "mixturePresets"
DAILY_LOGS = "dailyLogs"
REAGENT_LOGS = "reagentLogs"

COLLECTIONS = (
    HEMOCYTOMETER_PRESETS,
    AUTO_COUNTER_PRESETS,
    MIXTURE_PRESETS,
    DAILY_LOGS,
    REAGENT_LOGS,
)

# Placeholder the store replaces with its own commit time.
SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP

Document = Tuple[str, Dict[str, Any]]

_firestore_client = None


def get_client():
    global _firestore_client
    if _firestore_client is None:
        _firestore_client = firestore.Client()
    return _firestore_client


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def user_ref(user_id: str):
    root = get_client()
    app_id = config.app_id()
    if app_id:
        return root.collection("artifacts").document(app_id).collection("users").document(user_id)
    return root.collection("users").document(user_id)


def collection_ref(user_id: str, name: str):
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {name}")
    return user_ref(user_id).collection(name)


def create_document(user_id: str, name: str, data: Dict[str, Any], prefix: str = "") -> str:
    doc_id = new_id(prefix)
    put_document(user_id, name, doc_id, data)
    return doc_id


def put_document(user_id: str, name: str, doc_id: str, data: Dict[str, Any]) -> None:
    try:
        collection_ref(user_id, name).document(doc_id).set(data)
    except gexc.GoogleAPICallError as e:
        logger.warning("write %s/%s failed: %s", name, doc_id, e)
        raise PersistenceError(f"save to {name}", e) from e
    logger.info("wrote %s/%s", name, doc_id)


def update_fields(user_id: str, name: str, doc_id: str, fields: Dict[str, Any]) -> None:
    try:
        collection_ref(user_id, name).document(doc_id).update(fields)
    except gexc.NotFound:
        raise KeyError(f"{name} document not found: {doc_id}") from None
    except gexc.GoogleAPICallError as e:
        logger.warning("update %s/%s failed: %s", name, doc_id, e)
        raise PersistenceError(f"update {name}", e) from e
    logger.info("updated %s/%s fields=%s", name, doc_id, sorted(fields))


def delete_document(user_id: str, name: str, doc_id: str) -> None:
    try:
        collection_ref(user_id, name).document(doc_id).delete()
    except gexc.GoogleAPICallError as e:
        logger.warning("delete %s/%s failed: %s", name, doc_id, e)
        raise PersistenceError(f"delete from {name}", e) from e
    logger.info("deleted %s/%s", name, doc_id)


def get_document(user_id: str, name: str, doc_id: str) -> Dict[str, Any]:
    try:
        doc = collection_ref(user_id, name).document(doc_id).get()
    except gexc.GoogleAPICallError as e:
        raise PersistenceError(f"read {name}", e) from e
    if not doc.exists:
        raise KeyError(f"{name} document not found: {doc_id}")
    return doc.to_dict()


def list_documents(user_id: str, name: str) -> List[Document]:
    try:
        return [(doc.id, doc.to_dict()) for doc in collection_ref(user_id, name).stream()]
    except gexc.GoogleAPICallError as e:
        raise PersistenceError(f"read {name}", e) from e


def watch_collection(user_id: str, name: str, callback: Callable[[List[Document]], None]):
    """
    Subscribe to live updates of one collection.

    callback receives the full collection on every change. Returns the
    Firestore watch; call .unsubscribe() on it to stop.
    """
    def on_snapshot(docs, changes, read_time):
        callback([(doc.id, doc.to_dict()) for doc in docs])

    logger.info("watching %s for user %s", name, user_id)
    return collection_ref(user_id, name).on_snapshot(on_snapshot)
