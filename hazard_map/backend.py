# backend.py — Firestore collection + anonymous Firebase identity
import asyncio
import logging
from typing import Callable, List, Optional, Tuple

import firebase_admin
from firebase_admin import auth, credentials, firestore
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import GoogleAPIError

from .config import Settings
from .errors import AuthenticationFailure, ConfigError, RemoteWriteFailure

logger = logging.getLogger(__name__)

Documents = List[Tuple[str, Optional[dict]]]


# ---------- Firebase init ----------
def init_firebase(settings: Settings):
    """Initialise the default Firebase app once and return a Firestore client."""
    try:
        if not firebase_admin._apps:
            if settings.service_account:
                cred = credentials.Certificate(dict(settings.service_account))
            elif settings.service_account_path:
                cred = credentials.Certificate(settings.service_account_path)
            else:
                raise ConfigError("Missing [serviceAccount] in secrets.toml")
            firebase_admin.initialize_app(cred)
        return firestore.client()
    except (ValueError, OSError) as e:
        raise ConfigError(f"Firebase initialization failed: {e}") from e


class FirestoreEventStore:
    """The remote `events` collection. Blocking SDK calls run in the loop's executor."""

    def __init__(self, db, collection: str = "events"):
        self._col = db.collection(collection)
        self.name = collection

    def _add(self, fields: dict) -> str:
        _, ref = self._col.add(fields)
        return ref.id

    def _delete(self, event_id: str) -> None:
        self._col.document(event_id).delete()

    async def add(self, fields: dict) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._add, dict(fields))
        except GoogleAPIError as e:
            raise RemoteWriteFailure(f"add to {self.name} failed: {e}") from e

    async def delete(self, event_id: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._delete, event_id)
        except GoogleAPIError as e:
            raise RemoteWriteFailure(f"delete {self.name}/{event_id} failed: {e}") from e

    def listen(self, on_documents: Callable[[Documents], None]):
        """Start a realtime listener; returns a handle with `unsubscribe()`.

        `on_documents` runs on the SDK's listener thread with the full
        collection every time anything in it changes.
        """
        def on_snapshot(col_snapshot, changes, read_time):
            try:
                on_documents([(doc.id, doc.to_dict()) for doc in col_snapshot])
            except Exception:
                # an exception here would stop the SDK's watch thread
                logger.exception("snapshot handler failed for %s", self.name)

        return self._col.on_snapshot(on_snapshot)


class AnonymousAuth:
    """Creates a provider-less Firebase user for this run; only the uid is kept."""

    def __init__(self, app=None):
        self._app = app
        self.uid: Optional[str] = None

    def _create(self) -> str:
        return auth.create_user(app=self._app).uid

    async def sign_in_anonymously(self) -> str:
        loop = asyncio.get_running_loop()
        try:
            self.uid = await loop.run_in_executor(None, self._create)
        except (FirebaseError, ValueError) as e:
            raise AuthenticationFailure(f"anonymous sign-in failed: {e}") from e
        logger.info("signed in anonymously as %s", self.uid)
        return self.uid
