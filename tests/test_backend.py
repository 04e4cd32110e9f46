import asyncio

import firebase_admin
import pytest
from firebase_admin import credentials, firestore
from firebase_admin.exceptions import UnavailableError
from google.api_core.exceptions import ServiceUnavailable

from hazard_map import backend
from hazard_map.backend import AnonymousAuth, FirestoreEventStore, init_firebase
from hazard_map.config import Settings
from hazard_map.errors import AuthenticationFailure, ConfigError, RemoteWriteFailure


class Ref:
    def __init__(self, doc_id, collection):
        self.id = doc_id
        self._collection = collection

    def delete(self):
        if self._collection.fail:
            raise self._collection.fail
        self._collection.deleted.append(self.id)


class Snapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    def to_dict(self):
        return self._data


class Collection:
    """Just enough of a Firestore CollectionReference."""

    def __init__(self):
        self.added = []
        self.deleted = []
        self.fail = None
        self.callback = None
        self.watch = object()

    def add(self, fields):
        if self.fail:
            raise self.fail
        self.added.append(fields)
        return "2024-01-01T00:00:00Z", Ref(f"id{len(self.added)}", self)

    def document(self, doc_id):
        return Ref(doc_id, self)

    def on_snapshot(self, callback):
        self.callback = callback
        return self.watch


class Client:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return self.collections.setdefault(name, Collection())


def make_store(name="events"):
    db = Client()
    return FirestoreEventStore(db, name), db.collection(name)


def test_add_returns_new_document_id():
    store, col = make_store()
    fields = {"value": "Buraco", "markerColor": "red", "latitude": 1.0, "longitude": 2.0}
    assert asyncio.run(store.add(fields)) == "id1"
    assert col.added == [fields]


def test_delete_targets_the_document():
    store, col = make_store("reports")
    asyncio.run(store.delete("abc"))
    assert col.deleted == ["abc"]
    assert store.name == "reports"


@pytest.mark.parametrize("operation", ["add", "delete"])
def test_api_errors_become_remote_write_failures(operation):
    store, col = make_store()
    col.fail = ServiceUnavailable("backend down")
    call = store.add({"value": "Buraco"}) if operation == "add" else store.delete("abc")
    with pytest.raises(RemoteWriteFailure) as exc:
        asyncio.run(call)
    assert isinstance(exc.value.__cause__, ServiceUnavailable)
    assert col.added == [] and col.deleted == []


def test_listen_maps_snapshot_documents():
    store, col = make_store()
    received = []
    handle = store.listen(received.append)
    col.callback([Snapshot("a", {"value": "Buraco"}), Snapshot("b", None)], [], None)
    assert handle is col.watch
    assert received == [[("a", {"value": "Buraco"}), ("b", None)]]


def test_listen_logs_handler_errors_instead_of_raising(caplog):
    store, col = make_store()

    def broken(documents):
        raise RuntimeError("handler exploded")

    store.listen(broken)
    col.callback([Snapshot("a", {})], [], None)
    assert "snapshot handler failed for events" in caplog.text
    assert "handler exploded" in caplog.text


def test_anonymous_sign_in_keeps_uid(monkeypatch):
    class User:
        uid = "anon-123"

    monkeypatch.setattr(backend.auth, "create_user", lambda app=None: User())
    anon = AnonymousAuth()
    assert asyncio.run(anon.sign_in_anonymously()) == "anon-123"
    assert anon.uid == "anon-123"


@pytest.mark.parametrize("error", [UnavailableError("auth down"), ValueError("no default app")])
def test_sign_in_errors_become_authentication_failures(monkeypatch, error):
    def create_user(app=None):
        raise error

    monkeypatch.setattr(backend.auth, "create_user", create_user)
    anon = AnonymousAuth()
    with pytest.raises(AuthenticationFailure):
        asyncio.run(anon.sign_in_anonymously())
    assert anon.uid is None


def test_init_firebase_requires_a_service_account(monkeypatch):
    monkeypatch.setattr(firebase_admin, "_apps", {})
    with pytest.raises(ConfigError, match="Missing \\[serviceAccount\\]"):
        init_firebase(Settings())


def test_init_firebase_rejects_bad_certificate(monkeypatch):
    monkeypatch.setattr(firebase_admin, "_apps", {})
    with pytest.raises(ConfigError):
        init_firebase(Settings(service_account={"type": "authorized_user"}))


def test_init_firebase_initialises_once(monkeypatch):
    initialised = []
    monkeypatch.setattr(firebase_admin, "_apps", {})
    monkeypatch.setattr(credentials, "Certificate", lambda info: ("cert", info))
    monkeypatch.setattr(firebase_admin, "initialize_app", lambda cred: initialised.append(cred))
    monkeypatch.setattr(firestore, "client", lambda: "db")

    assert init_firebase(Settings(service_account={"type": "service_account"})) == "db"
    assert initialised == [("cert", {"type": "service_account"})]

    monkeypatch.setattr(firebase_admin, "_apps", {"[DEFAULT]": object()})
    assert init_firebase(Settings()) == "db"
    assert len(initialised) == 1
