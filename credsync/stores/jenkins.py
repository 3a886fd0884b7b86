import logging
import xml.etree.ElementTree as ET
from urllib.parse import quote

import requests

from .store import CredentialStore
from ..errors import StoreError
from ..models import (
    GLOBAL_SCOPE,
    ForeignCredential,
    SSHPrivateKeyCredential,
    UsernamePasswordCredential,
)

logger = logging.getLogger("credsync.jenkins")

USERNAME_PASSWORD_CLASS = "com.cloudbees.plugins.credentials.impl.UsernamePasswordCredentialsImpl"
SSH_PRIVATE_KEY_CLASS = "com.cloudbees.jenkins.plugins.sshcredentials.impl.BasicSSHUserPrivateKey"
DIRECT_ENTRY_SOURCE_CLASS = SSH_PRIVATE_KEY_CLASS + "$DirectEntryPrivateKeySource"

XML_HEADERS = {"Content-Type": "application/xml"}


def credential_to_xml(credential):
    """Serialize a credential to the XML accepted by the Jenkins credentials plugin."""
    if isinstance(credential, UsernamePasswordCredential):
        root = ET.Element(USERNAME_PASSWORD_CLASS)
    elif isinstance(credential, SSHPrivateKeyCredential):
        root = ET.Element(SSH_PRIVATE_KEY_CLASS)
    else:
        raise TypeError(f"Unsupported credential type: {type(credential).__name__}")

    ET.SubElement(root, "scope").text = credential.scope
    ET.SubElement(root, "id").text = credential.id
    ET.SubElement(root, "description").text = credential.description
    ET.SubElement(root, "username").text = credential.username
    if isinstance(credential, UsernamePasswordCredential):
        ET.SubElement(root, "password").text = credential.password
    else:
        source = ET.SubElement(root, "privateKeySource", {"class": DIRECT_ENTRY_SOURCE_CLASS})
        ET.SubElement(source, "privateKey").text = credential.private_key
    return ET.tostring(root, encoding="utf-8")


def credential_from_xml(content):
    """Parse a credential config.xml; other credential kinds come back as ForeignCredential."""
    root = ET.fromstring(content)
    fields = {
        "id": root.findtext("id") or "",
        "description": root.findtext("description") or "",
        "username": root.findtext("username") or "",
        "scope": root.findtext("scope") or GLOBAL_SCOPE,
    }
    if root.tag == USERNAME_PASSWORD_CLASS:
        return UsernamePasswordCredential(password=root.findtext("password") or "", **fields)
    if root.tag == SSH_PRIVATE_KEY_CLASS:
        return SSHPrivateKeyCredential(
            private_key=root.findtext("privateKeySource/privateKey") or "", **fields)
    logger.info(f"Credential '{fields['id']}' has class '{root.tag}'; it will be replaced.")
    return ForeignCredential(id=fields["id"], kind=root.tag)


class Jenkins(CredentialStore):
    """Credential store backed by the Jenkins credentials plugin REST API."""

    def __init__(self, url, username, api_token, store="system", domain="_", timeout=30):
        self.url = url.rstrip("/")
        self.username = username
        self.api_token = api_token
        self.timeout = timeout
        self.domain_url = f"{self.url}/credentials/store/{store}/domain/{domain}"
        self.session = requests.Session()
        self.session.auth = (username, api_token)
        logger.info(f"Initialized Jenkins credential store at {self.domain_url}.")

    def _request(self, method, url, **kwargs):
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Request to {url} failed: {e}") from e

    def _credential_url(self, credential_id):
        return f"{self.domain_url}/credential/{quote(credential_id, safe='')}/config.xml"

    def test_connection(self):
        logger.info(f"Testing connection to Jenkins: {self.url}")
        logger.info(f"Using user: {self.username}")
        response = self._request("GET", f"{self.domain_url}/api/json")
        if response.status_code >= 400:
            raise StoreError(
                f"Credential store connection test failed: {response.status_code} {response.reason}")
        logger.info("Jenkins credential store connection successful.")

    def find_by_id(self, credential_id):
        response = self._request("GET", self._credential_url(credential_id))
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise StoreError(
                f"Failed to look up credential '{credential_id}': {response.status_code} {response.text}")
        try:
            return credential_from_xml(response.content)
        except ET.ParseError as e:
            raise StoreError(f"Failed to parse credential '{credential_id}': {e}") from e

    def insert(self, credential):
        response = self._request(
            "POST", f"{self.domain_url}/createCredentials",
            data=credential_to_xml(credential), headers=XML_HEADERS)
        if response.status_code >= 400:
            raise StoreError(
                f"Failed to create credential '{credential.id}': {response.status_code} {response.text}")
        logger.info(f"Created Jenkins credential '{credential.id}'.")

    def update(self, existing, credential):
        response = self._request(
            "POST", self._credential_url(existing.id),
            data=credential_to_xml(credential), headers=XML_HEADERS)
        if response.status_code >= 400:
            raise StoreError(
                f"Failed to update credential '{existing.id}': {response.status_code} {response.text}")
        logger.info(f"Updated Jenkins credential '{existing.id}'.")
