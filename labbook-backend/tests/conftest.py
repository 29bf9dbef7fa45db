import copy
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from google.api_core import exceptions as gexc
from google.cloud import firestore

from labbook import db



class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeWatch:
    def __init__(self, store, key):
        self._store = store
        self._key = key

    def unsubscribe(self):
        self._store.watches.pop(self._key, None)


class FakeDocument:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    def collection(self, name):
        return FakeCollection(self._store, self._path + (name,))

    def set(self, data):
        self._store.write(self._path, data)

    def update(self, fields):
        if self._path not in self._store.docs:
            raise gexc.NotFound("No document to update")
        self._store.write(self._path, {**self._store.docs[self._path], **fields})

    def delete(self):
        self._store.delete(self._path)

    def get(self):
        return FakeSnapshot(self.id, self._store.docs.get(self._path))


class FakeCollection:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    def document(self, doc_id=None):
        return FakeDocument(self._store, self._path + (doc_id or uuid.uuid4().hex,))

    def stream(self):
        self._store.check_reads()
        return self._store.snapshots(self._path)

    def on_snapshot(self, callback):
        key = uuid.uuid4().hex
        self._store.watches[key] = (self._path, callback)
        callback(self._store.snapshots(self._path), [], self._store.now())
        return FakeWatch(self._store, key)


class FakeFirestore:
    """Enough of google.cloud.firestore.Client for the labbook.db adapter."""

    def __init__(self):
        self.docs = {}
        self.watches = {}
        self.fail = False
        self.clock = None

    def now(self):
        return self.clock or datetime.now(timezone.utc)

    def collection(self, name):
        return FakeCollection(self, (name,))

    def check_reads(self):
        if self.fail:
            raise gexc.ServiceUnavailable("offline")

    def write(self, path, data):
        if self.fail:
            raise gexc.ServiceUnavailable("offline")
        resolved = {
            k: (self.now() if v is firestore.SERVER_TIMESTAMP else v) for k, v in data.items()
        }
        self.docs[path] = copy.deepcopy(resolved)
        self._notify(path[:-1])

    def delete(self, path):
        if self.fail:
            raise gexc.ServiceUnavailable("offline")
        self.docs.pop(path, None)
        self._notify(path[:-1])

    def snapshots(self, collection_path):
        return [
            FakeSnapshot(path[-1], data)
            for path, data in self.docs.items()
            if path[:-1] == collection_path
        ]

    def _notify(self, collection_path):
        for path, callback in list(self.watches.values()):
            if path == collection_path:
                callback(self.snapshots(path), [], self.now())

    def seed(self, user_id, collection, doc_id, data):
        self.docs[("users", user_id, collection, doc_id)] = copy.deepcopy(data)

    def user_docs(self, user_id, collection):
        return {
            path[-1]: data for path, data in self.docs.items()
            if path[:-1] == ("users", user_id, collection)
        }


@pytest.fixture
def store(monkeypatch):
    fake = FakeFirestore()
    monkeypatch.setattr(db, "_firestore_client", fake)
    monkeypatch.delenv("LABBOOK_APP_ID", raising=False)
    monkeypatch.delenv("LABBOOK_TIMEZONE", raising=False)
    return fake


@pytest.fixture
def client(store):
    from labbook.main import app
    return TestClient(app)


@pytest.fixture
def hemocytometer_form():
    return {
        "presetName": "293T-Hemo",
        "cellName": "293T",
        "type": "GFP",
        "countedCells": "235",
        "squares": "4",
        "dilutionFactor": "20",
        "totalVolume": "1",
        "memo": "Prepare to transduction",
    }


@pytest.fixture
def auto_counter_form():
    return {
        "presetName": "293T-Auto",
        "cellName": "293T",
        "autoCountValue": "5.05",
        "autoCountExponent": "6",
        "viability": "84",
        "totalVolume": "1",
    }
