"""Credential ID derivation and secret-to-credential translation."""

import base64
import binascii
import logging

from .models import (
    DATA_PASSWORD,
    DATA_SSH_PRIVATE_KEY,
    DATA_USERNAME,
    NotTranslatable,
    SecretType,
    SSHPrivateKeyCredential,
    UsernamePasswordCredential,
)

logger = logging.getLogger("credsync")


def derive_id(namespace, name, scope):
    """
    Compute the credential ID for a secret.

    When only a single namespace is watched and the secret lives in it, the
    namespace prefix is left off.
    """
    if scope.is_single_namespace and scope.namespace == namespace:
        return name
    return f"{namespace}-{name}"


def decode_field(data, key):
    """Base64-decode a field of secret data; absent or malformed values become ''."""
    value = data.get(key)
    if not value:
        return ""
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.debug(f"Could not decode secret field '{key}': {e}")
        return ""


def _is_not_blank(value):
    return bool(value and value.strip())


def _username_password(credential_id, data):
    return UsernamePasswordCredential(
        id=credential_id,
        description=credential_id,
        username=decode_field(data, DATA_USERNAME),
        password=decode_field(data, DATA_PASSWORD),
    )


def _ssh_private_key(credential_id, data):
    return SSHPrivateKeyCredential(
        id=credential_id,
        description=credential_id,
        username=decode_field(data, DATA_USERNAME),
        private_key=decode_field(data, DATA_SSH_PRIVATE_KEY),
    )


def translate(secret, scope):
    """
    Map a ClusterSecret to a credential, or to NotTranslatable.

    Opaque secrets are checked for basic-auth fields first, then for an SSH
    key. Basic-auth and SSH typed secrets are translated as-is, blank fields
    included.
    """
    credential_id = derive_id(secret.namespace, secret.name, scope)
    data = secret.data or {}
    secret_type = secret.secret_type

    if secret_type is SecretType.OPAQUE:
        if _is_not_blank(data.get(DATA_USERNAME)) and _is_not_blank(data.get(DATA_PASSWORD)):
            return _username_password(credential_id, data)
        if _is_not_blank(data.get(DATA_SSH_PRIVATE_KEY)):
            return _ssh_private_key(credential_id, data)
        logger.warning(
            f"Opaque secret '{secret.name}' in ns '{secret.namespace}' either requires "
            f"'{DATA_USERNAME}' and '{DATA_PASSWORD}' fields for basic auth "
            f"or '{DATA_SSH_PRIVATE_KEY}' field for SSH key")
        return NotTranslatable("missing required fields for basic-auth or ssh")
    if secret_type is SecretType.BASIC_AUTH:
        return _username_password(credential_id, data)
    if secret_type is SecretType.SSH:
        return _ssh_private_key(credential_id, data)

    logger.warning(
        f"Unknown secret type '{secret.type}' for secret '{secret.name}' in ns '{secret.namespace}'")
    return NotTranslatable(f"unknown secret type: {secret.type}")
