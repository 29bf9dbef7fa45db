import pytest

from labbook import db
from labbook.errors import PersistenceError


def test_documents_live_under_the_user(store):
    doc_id = db.create_document("user-1", db.DAILY_LOGS, {"memo": ""}, prefix="log_")
    assert doc_id.startswith("log_")
    assert ("users", "user-1", "dailyLogs", doc_id) in store.docs
    assert db.list_documents("user-2", db.DAILY_LOGS) == []


def test_app_id_roots_paths_under_artifacts(store, monkeypatch):
    monkeypatch.setenv("LABBOOK_APP_ID", "default-app-id")
    db.put_document("user-1", db.HEMOCYTOMETER_PRESETS, "p1", {"presetName": "p"})
    assert ("artifacts", "default-app-id", "users", "user-1", "hemocytometerPresets", "p1") in store.docs


def test_put_replaces(store):
    db.put_document("user-1", db.AUTO_COUNTER_PRESETS, "p1", {"a": 1, "b": 2})
    db.put_document("user-1", db.AUTO_COUNTER_PRESETS, "p1", {"a": 3})
    assert db.get_document("user-1", db.AUTO_COUNTER_PRESETS, "p1") == {"a": 3}


def test_update_missing_document(store):
    with pytest.raises(KeyError):
        db.update_fields("user-1", db.DAILY_LOGS, "nope", {"memo": "x"})


def test_unknown_collection_rejected(store):
    with pytest.raises(ValueError):
        db.collection_ref("user-1", "secrets")


def test_store_failures_become_persistence_errors(store):
    store.fail = True
    with pytest.raises(PersistenceError) as exc:
        db.create_document("user-1", db.REAGENT_LOGS, {"mass": 1.0})
    assert exc.value.status_code == 502
    with pytest.raises(PersistenceError):
        db.list_documents("user-1", db.REAGENT_LOGS)
    with pytest.raises(PersistenceError):
        db.delete_document("user-1", db.MIXTURE_PRESETS, "m1")
