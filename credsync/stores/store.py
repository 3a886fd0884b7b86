import abc

class CredentialStore(abc.ABC):
    """Abstract base class for a credential store."""

    @abc.abstractmethod
    def test_connection(self):
        """Check that the store is reachable."""
        pass

    @abc.abstractmethod
    def find_by_id(self, credential_id):
        """Return the credential with this ID in the global domain, or None."""
        pass

    @abc.abstractmethod
    def insert(self, credential):
        """Add a new credential."""
        pass

    @abc.abstractmethod
    def update(self, existing, credential):
        """Replace an existing credential, keeping its store entry."""
        pass
