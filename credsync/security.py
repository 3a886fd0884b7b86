"""Security principal switching around credential store mutations."""

import abc
import contextlib
import logging
import threading

logger = logging.getLogger("credsync")

SYSTEM = "SYSTEM"
ANONYMOUS = "anonymous"


class SecurityContext(abc.ABC):
    """Swaps the active principal and puts it back."""

    @abc.abstractmethod
    def impersonate_system(self):
        """Make the system principal active and return the previous context."""
        pass

    @abc.abstractmethod
    def restore(self, previous):
        """Reinstate a context returned by impersonate_system."""
        pass


class ThreadLocalSecurityContext(SecurityContext):
    """Keeps the active principal per thread."""

    def __init__(self, default=ANONYMOUS):
        self.default = default
        self._local = threading.local()

    def current(self):
        return getattr(self._local, "principal", self.default)

    def impersonate_system(self):
        previous = self.current()
        self._local.principal = SYSTEM
        return previous

    def restore(self, previous):
        self._local.principal = previous


@contextlib.contextmanager
def system_context(security):
    """Run the enclosed block as the system principal."""
    previous = security.impersonate_system()
    logger.debug(f"Impersonating {SYSTEM} (previous principal: {previous})")
    try:
        yield
    finally:
        security.restore(previous)
