"""
Capability interfaces the test-execution system consumes.

A Provider hands out Servers; a Server can be discarded, serialized for
reuse after a restart, and asked for its address and image. Backends
implement both.
"""

from __future__ import annotations

from typing import Optional


class Server:
    """A machine allocated by a Provider.

    Attributes:
        provider: The Provider that allocated this server.
        address: Network address the test system connects to.
        image: Portable identifier of the installed image.
    """

    provider: "Provider"
    address: str
    image: str

    def snapshot(self) -> Optional[str]:
        """Capture the machine as a reusable image.

        Returns:
            The new image identifier, or None if the backend cannot snapshot.
        """
        raise NotImplementedError

    def reuse_data(self) -> bytes:
        """Serialized state sufficient to rebuild this handle via Provider.reuse()."""
        raise NotImplementedError

    def discard(self) -> None:
        """Tear down the machine's installed state.

        Raises:
            LinodeError: The first error met while tearing down.
        """
        raise NotImplementedError


class Provider:
    """Allocates and reclaims Servers for one backend."""

    @property
    def backend(self) -> str:
        """Backend name, used when describing servers."""
        raise NotImplementedError

    def allocate(self, image: str, password: str) -> Server:
        """Provision a machine with *image* and root *password*.

        Raises:
            FatalError: The allocation can never succeed; do not retry.
            LinodeError: Any other failure; retrying may help.
        """
        raise NotImplementedError

    def reuse(self, data: bytes, password: str) -> Server:
        """Rebuild a Server handle from Server.reuse_data() output."""
        raise NotImplementedError

    def discard_snapshot(self, image: str) -> None:
        raise NotImplementedError
