"""
Catalog cache of installable distributions and kernels.

The catalog is fetched lazily on the first resolve() and kept for the
life of the cache. One lock covers population and lookup, so concurrent
callers block until the first population finishes and then read the
cached lists. A failed population leaves nothing behind; the next caller
tries again.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Tuple, Type

from .errors import (
    CatalogError,
    KernelNotFoundError,
    LinodeError,
    SystemNotFoundError,
)
from .image import ImageID
from .models import Distribution, Envelope, Kernel
from .protocol import LinodeClient

logger = logging.getLogger(__name__)

LATEST_64_PREFIX = "Latest 64 bit"
LATEST_32_PREFIX = "Latest 32 bit"


def canonical_name(label: str) -> str:
    """Derive the portable system name from a distribution label.

    ``Ubuntu 16.04 LTS`` becomes ``ubuntu-16.04``. When the second word is
    ``linux`` the third word is used instead, so ``Arch Linux 2016.01``
    becomes ``arch-2016.01``.
    """
    words = label.lower().split()
    if len(words) > 2 and words[1] == "linux":
        return f"{words[0]}-{words[2]}"
    return "-".join(words[:2])


def latest_kernels(kernels: List[Kernel]) -> Tuple[int, int]:
    """Return the (32-bit, 64-bit) ids of the 'Latest' kernels.

    Raises:
        KernelNotFoundError: If either label prefix is missing.
    """
    latest32 = latest64 = None
    for kernel in kernels:
        if kernel.label.startswith(LATEST_64_PREFIX):
            latest64 = kernel.id
        if kernel.label.startswith(LATEST_32_PREFIX):
            latest32 = kernel.id
    if latest32 is None or latest64 is None:
        raise KernelNotFoundError("cannot find latest Linode kernel")
    return latest32, latest64


class CatalogCache:
    """Lazily populated distribution catalog.

    Args:
        client: Protocol adapter used for the catalog calls.
        attempts: Attempts per list before population fails.
    """

    def __init__(self, client: LinodeClient, attempts: int = 3) -> None:
        self._client = client
        self._attempts = attempts
        self._lock = threading.Lock()
        self._done = False
        self._distros: List[Distribution] = []
        self._kernels: List[Kernel] = []

    def resolve(self, image: str) -> Distribution:
        """Find the distribution to install for *image*.

        A 64-bit distribution is preferred; otherwise the last matching
        one is returned.

        Raises:
            CatalogError: If the catalog cannot be populated.
            SystemNotFoundError: If no distribution matches.
        """
        system = ImageID(image).system_id
        with self._lock:
            self._ensure_populated()
            best: Optional[Distribution] = None
            for distro in self._distros:
                if distro.name != system:
                    continue
                if distro.is_64bit == 1:
                    return distro
                best = distro
        if best is None:
            raise SystemNotFoundError(f"cannot find system {system} in Linode")
        return best

    def distributions(self) -> List[Distribution]:
        with self._lock:
            self._ensure_populated()
            return list(self._distros)

    def kernels(self) -> List[Kernel]:
        with self._lock:
            self._ensure_populated()
            return list(self._kernels)

    def reset(self) -> None:
        """Forget the cached catalog; the next lookup fetches it again."""
        with self._lock:
            self._done = False
            self._distros = []
            self._kernels = []

    # ------------------------------------------------------------------
    # Population (caller holds the lock)
    # ------------------------------------------------------------------

    def _ensure_populated(self) -> None:
        if self._done:
            return

        distros = self._fetch(
            "avail.distributions", Envelope[List[Distribution]], "distributions",
        )
        kernels = self._fetch("avail.kernels", Envelope[List[Kernel]], "kernels")

        latest32, latest64 = latest_kernels(kernels)
        for distro in distros:
            distro.kernel_id = latest64 if distro.is_64bit == 1 else latest32
            distro.name = canonical_name(distro.label)

        self._distros = distros
        self._kernels = kernels
        self._done = True
        logger.debug("Linode distributions available: %s", self._distros)

    def _fetch(self, action: str, result_type: Type[Envelope], what: str) -> list:
        """Fetch one catalog list, retrying up to the configured attempts."""
        err: Optional[LinodeError] = None
        for attempt in range(1, self._attempts + 1):
            try:
                result = self._client.execute({"api_action": action}, result_type)
                result.raise_for_error()
                return list(result.data or [])
            except LinodeError as exc:
                logger.debug("Listing Linode %s failed (attempt %d): %s", what, attempt, exc)
                err = exc
        raise CatalogError(f"cannot list Linode {what}: {err}") from err
