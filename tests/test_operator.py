"""Tests for the Operator upsert logic."""

import base64
import threading
import pytest
from unittest.mock import MagicMock
from credsync.errors import ClusterError, StoreError
from credsync.metrics import (
    CREDENTIALS_CREATED,
    CREDENTIALS_UPDATED,
    ERRORS_TOTAL,
    SECRETS_SKIPPED,
)
from credsync.models import (
    BuildConfigRef,
    ClusterSecret,
    SSHPrivateKeyCredential,
    UsernamePasswordCredential,
    WatchScope,
)
from credsync.operator import Operator
from credsync.stores.jenkins import Jenkins
from credsync.security import ANONYMOUS, SYSTEM


def create_secret(name, namespace, secret_type, data):
    """Helper function to create a ClusterSecret with base64-encoded data."""
    return ClusterSecret(
        namespace=namespace,
        name=name,
        type=secret_type,
        data={k: base64.b64encode(v.encode('utf-8')).decode('utf-8')
              for k, v in data.items()},
    )


def basic_auth_secret(name="git", namespace="ci", username="user", password="pass"):
    return create_secret(name, namespace, "kubernetes.io/basic-auth",
                         {"username": username, "password": password})


def test_upsert_creates_credential(cluster, memory_store, security):
    op = Operator(cluster, memory_store, security, WatchScope.single("ci"))

    initial_created = CREDENTIALS_CREATED._value.get()

    credential_id = op.upsert_credential(basic_auth_secret())

    assert credential_id == "git"
    assert memory_store.credentials["git"] == UsernamePasswordCredential(
        id="git", description="git", username="user", password="pass")
    assert CREDENTIALS_CREATED._value.get() == initial_created + 1


def test_upsert_twice_updates_instead_of_duplicating(cluster, security):
    store = MagicMock()
    store.find_by_id.return_value = None
    op = Operator(cluster, store, security)

    op.upsert_credential(basic_auth_secret())
    store.insert.assert_called_once()
    inserted = store.insert.call_args[0][0]

    store.find_by_id.return_value = inserted
    initial_updated = CREDENTIALS_UPDATED._value.get()

    credential_id = op.upsert_credential(basic_auth_secret(password="rotated"))

    assert credential_id == "ci-git"
    store.insert.assert_called_once()
    store.update.assert_called_once()
    existing, replacement = store.update.call_args[0]
    assert existing is inserted
    assert replacement.password == "rotated"
    assert CREDENTIALS_UPDATED._value.get() == initial_updated + 1


def test_upsert_same_secret_keeps_one_credential(cluster, memory_store, security):
    op = Operator(cluster, memory_store, security)

    op.upsert_credential(basic_auth_secret())
    op.upsert_credential(basic_auth_secret(password="rotated"))

    assert list(memory_store.credentials) == ["ci-git"]
    assert memory_store.credentials["ci-git"].password == "rotated"


def test_upsert_can_switch_credential_shape(cluster, memory_store, security):
    """A secret that changes from basic-auth to SSH replaces the entry in place."""
    op = Operator(cluster, memory_store, security)

    op.upsert_credential(basic_auth_secret(name="repo"))
    op.upsert_credential(create_secret("repo", "ci", "kubernetes.io/ssh-auth",
                                       {"ssh-privatekey": "key"}))

    assert len(memory_store.credentials) == 1
    assert isinstance(memory_store.credentials["ci-repo"], SSHPrivateKeyCredential)


def test_untranslatable_secret_does_not_touch_store(cluster, security):
    store = MagicMock()
    op = Operator(cluster, store, security)
    secret = create_secret("empty", "ci", "Opaque", {"token": "abc"})

    initial_skipped = SECRETS_SKIPPED._value.get()

    assert op.upsert_credential(secret) is None

    store.find_by_id.assert_not_called()
    store.insert.assert_not_called()
    store.update.assert_not_called()
    assert SECRETS_SKIPPED._value.get() == initial_skipped + 1


def test_unknown_secret_type_returns_none(cluster, security):
    store = MagicMock()
    op = Operator(cluster, store, security)
    secret = create_secret("tls", "ci", "kubernetes.io/tls", {"tls.crt": "cert"})

    assert op.upsert_credential(secret) is None
    store.insert.assert_not_called()


def test_upsert_none_secret(cluster, security):
    store = MagicMock()
    op = Operator(cluster, store, security)

    assert op.upsert_credential(None) is None
    store.find_by_id.assert_not_called()


def test_store_mutation_runs_as_system(cluster, security):
    store = MagicMock()
    store.find_by_id.return_value = None
    principals = []
    store.insert.side_effect = lambda credential: principals.append(security.current())
    op = Operator(cluster, store, security)

    op.upsert_credential(basic_auth_secret())

    assert principals == [SYSTEM]
    assert security.current() == ANONYMOUS


def test_previous_principal_restored_on_store_failure(cluster, security):
    store = MagicMock()
    store.find_by_id.return_value = None
    store.insert.side_effect = StoreError("boom")
    op = Operator(cluster, store, security)

    with pytest.raises(StoreError):
        op.upsert_credential(basic_auth_secret())

    assert security.current() == ANONYMOUS


def test_upsert_uses_security_collaborator(cluster):
    """impersonate_system is paired with restore of the returned context."""
    store = MagicMock()
    store.find_by_id.return_value = None
    security = MagicMock()
    security.impersonate_system.return_value = "previous"
    op = Operator(cluster, store, security)

    op.upsert_credential(basic_auth_secret())

    security.impersonate_system.assert_called_once()
    security.restore.assert_called_once_with("previous")


def test_upsert_reads_current_watch_scope(cluster, memory_store, security):
    op = Operator(cluster, memory_store, security)
    assert op.upsert_credential(basic_auth_secret()) == "ci-git"

    op.watch_scope = WatchScope.single("ci")
    assert op.upsert_credential(basic_auth_secret()) == "git"


def test_concurrent_upserts_of_same_secret_insert_once(cluster, memory_store, security):
    op = Operator(cluster, memory_store, security)
    errors = []

    def upsert():
        try:
            op.upsert_credential(basic_auth_secret())
        except StoreError as e:
            errors.append(e)

    threads = [threading.Thread(target=upsert) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert list(memory_store.credentials) == ["ci-git"]


def test_update_source_credentials(cluster, memory_store, security):
    cluster.get_secret.return_value = basic_auth_secret()
    op = Operator(cluster, memory_store, security)
    build_config = BuildConfigRef(namespace="ci", name="app", source_secret_name="git")

    assert op.update_source_credentials(build_config) == "ci-git"
    cluster.get_secret.assert_called_once_with("ci", "git")
    assert "ci-git" in memory_store.credentials


@pytest.mark.parametrize("source_secret_name", [None, ""])
def test_update_source_credentials_without_source_secret(cluster, security, source_secret_name):
    store = MagicMock()
    op = Operator(cluster, store, security)
    build_config = BuildConfigRef(
        namespace="ci", name="app", source_secret_name=source_secret_name)

    assert op.update_source_credentials(build_config) is None
    cluster.get_secret.assert_not_called()
    store.find_by_id.assert_not_called()


def test_update_source_credentials_secret_not_found(cluster, security):
    cluster.get_secret.return_value = None
    store = MagicMock()
    op = Operator(cluster, store, security)
    build_config = BuildConfigRef(namespace="ci", name="app", source_secret_name="gone")

    assert op.update_source_credentials(build_config) is None
    store.find_by_id.assert_not_called()


def test_update_source_credentials_propagates_cluster_errors(cluster, security):
    cluster.get_secret.side_effect = ClusterError("forbidden")
    op = Operator(cluster, MagicMock(), security)
    build_config = BuildConfigRef(namespace="ci", name="app", source_secret_name="git")

    with pytest.raises(ClusterError):
        op.update_source_credentials(build_config)


def test_sync_continues_after_errors(cluster, security):
    store = MagicMock()
    store.find_by_id.return_value = None
    store.insert.side_effect = [StoreError("conflict"), None]
    cluster.list_secrets.return_value = [
        basic_auth_secret(name="first"),
        basic_auth_secret(name="second"),
    ]
    cluster.list_build_configs.return_value = []
    op = Operator(cluster, store, security, label_selector="sync=true")

    initial_errors = ERRORS_TOTAL._value.get()

    assert op.sync() == 1
    assert store.insert.call_count == 2
    cluster.list_secrets.assert_called_once_with(WatchScope.all_namespaces(), "sync=true")
    assert ERRORS_TOTAL._value.get() == initial_errors + 1


def test_sync_handles_build_configs(cluster, memory_store, security):
    cluster.list_secrets.return_value = []
    cluster.list_build_configs.return_value = [
        BuildConfigRef(namespace="ci", name="app", source_secret_name="git"),
        BuildConfigRef(namespace="ci", name="no-source"),
    ]
    cluster.get_secret.return_value = basic_auth_secret()
    op = Operator(cluster, memory_store, security, WatchScope.single("ci"))

    assert op.sync() == 0
    assert list(memory_store.credentials) == ["git"]


def test_sync_skips_build_configs_when_disabled(cluster, memory_store, security):
    cluster.list_secrets.return_value = []
    op = Operator(cluster, memory_store, security, sync_build_configs=False)

    op.sync()

    cluster.list_build_configs.assert_not_called()


def test_run_skipped_in_test_mode(cluster, security, monkeypatch):
    monkeypatch.setenv("TEST_MODE", "true")
    op = Operator(cluster, MagicMock(), security)

    assert op.run() == 0
    cluster.list_secrets.assert_not_called()


def test_upsert_replaces_credential_of_another_class(cluster, security):
    """A Jenkins credential with the same ID but another class is updated in place."""
    store = Jenkins("http://jenkins:8080", "admin", "token")
    store.session = MagicMock()
    lookup = MagicMock(status_code=200, content=(
        b"<org.jenkinsci.plugins.plaincredentials.impl.StringCredentialsImpl>"
        b"<scope>GLOBAL</scope><id>ci-git</id><secret>abc</secret>"
        b"</org.jenkinsci.plugins.plaincredentials.impl.StringCredentialsImpl>"))
    store.session.request.side_effect = [lookup, MagicMock(status_code=200)]
    op = Operator(cluster, store, security)

    assert op.upsert_credential(basic_auth_secret()) == "ci-git"

    method, url = store.session.request.call_args[0]
    assert method == "POST"
    assert url == "http://jenkins:8080/credentials/store/system/domain/_/credential/ci-git/config.xml"
    assert "createCredentials" not in url


def test_locks_released_after_upsert(cluster, memory_store, security):
    op = Operator(cluster, memory_store, security)

    op.upsert_credential(basic_auth_secret(name="first"))
    op.upsert_credential(basic_auth_secret(name="first"))
    op.upsert_credential(create_secret("empty", "ci", "Opaque", {}))

    assert op._locks == {}


def test_locks_released_after_store_failure(cluster, security):
    store = MagicMock()
    store.find_by_id.side_effect = StoreError("down")
    op = Operator(cluster, store, security)

    with pytest.raises(StoreError):
        op.upsert_credential(basic_auth_secret())

    assert op._locks == {}


def test_update_source_credentials_without_namespace(cluster, security):
    store = MagicMock()
    op = Operator(cluster, store, security)
    build_config = BuildConfigRef.from_resource({
        "metadata": {"name": "app"},
        "spec": {"source": {"sourceSecret": {"name": "git"}}},
    })

    assert op.update_source_credentials(build_config) is None
    cluster.get_secret.assert_not_called()
    store.find_by_id.assert_not_called()


def test_update_source_credentials_for_named_build_config(cluster, memory_store, security):
    cluster.get_build_config.return_value = BuildConfigRef(
        namespace="ci", name="app", source_secret_name="git")
    cluster.get_secret.return_value = basic_auth_secret()
    op = Operator(cluster, memory_store, security)

    assert op.update_source_credentials_for("ci", "app") == "ci-git"
    cluster.get_build_config.assert_called_once_with("ci", "app")
    cluster.get_secret.assert_called_once_with("ci", "git")


def test_update_source_credentials_for_missing_build_config(cluster, security):
    cluster.get_build_config.return_value = None
    op = Operator(cluster, MagicMock(), security)

    assert op.update_source_credentials_for("ci", "gone") is None
    cluster.get_secret.assert_not_called()
