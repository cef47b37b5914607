"""Portable image identifiers such as ``ubuntu-16.04`` or ``ubuntu-16.04-64``."""

from __future__ import annotations


class ImageID(str):
    """A portable operating-system image name.

    The *system id* is the distribution part of the name: the first two
    dash-separated words, so ``ubuntu-16.04-64`` and ``ubuntu-16.04``
    both name the ``ubuntu-16.04`` system.
    """

    @property
    def system_id(self) -> str:
        return "-".join(self.split("-")[:2])

    def label(self, suffix: str = "", prefix: str = "spread") -> str:
        """Build a provider label for a disk or config created for this image.

        Args:
            suffix: Optional role suffix (e.g. 'root', 'swap').
            prefix: Leading marker identifying resources we own.

        Returns:
            Label like ``spread-ubuntu-16.04-root``.
        """
        parts = [p for p in (prefix, str(self), suffix) if p]
        return "-".join(parts)
