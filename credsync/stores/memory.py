import logging
import threading

from .store import CredentialStore
from ..errors import StoreError

logger = logging.getLogger("credsync.memory")


class Memory(CredentialStore):
    """In-process credential store keyed by credential ID."""

    def __init__(self):
        self.credentials = {}
        self._lock = threading.Lock()
        logger.info("Initialized in-memory credential store.")

    def test_connection(self):
        logger.info("[Memory] Connection test always succeeds.")

    def find_by_id(self, credential_id):
        with self._lock:
            return self.credentials.get(credential_id)

    def insert(self, credential):
        with self._lock:
            if credential.id in self.credentials:
                raise StoreError(f"Credential '{credential.id}' already exists")
            self.credentials[credential.id] = credential
        logger.info(f"[Memory] Added credential '{credential.id}'.")

    def update(self, existing, credential):
        with self._lock:
            if existing.id not in self.credentials:
                raise StoreError(f"Credential '{existing.id}' does not exist")
            self.credentials[existing.id] = credential
        logger.info(f"[Memory] Updated credential '{existing.id}'.")
