"""
Configuration for the Linode provisioning backend.

Credentials are injected by the caller, either by building a
LinodeConfig directly or by loading one from YAML:

.. code-block:: yaml

    name: linode
    api_key: "..."
    job_timeout: 120
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

DEFAULT_ENDPOINT = "https://api.linode.com/"


class LinodeConfig(BaseModel):
    """Settings for one Linode backend.

    Args:
        name: Backend name, used when describing servers.
        api_key: Account API key sent with every request.
        endpoint: API endpoint URL.
        request_timeout: Seconds before a single HTTP call is abandoned.
        job_poll_interval: Seconds between job status polls.
        job_timeout: Seconds to wait for a boot job before giving up.
        catalog_attempts: Attempts per catalog list before failing.
        root_disk_size: Root disk size in MB.
        swap_disk_size: Swap disk size in MB.
        label_prefix: Prefix of the labels given to created disks and configs.
    """

    name: str = Field(default="linode", min_length=1)
    api_key: str = Field(default="", description="Linode API key")
    endpoint: str = Field(default=DEFAULT_ENDPOINT)
    request_timeout: float = Field(default=30.0, gt=0)
    job_poll_interval: float = Field(default=5.0, gt=0)
    job_timeout: float = Field(default=60.0, gt=0)
    catalog_attempts: int = Field(default=3, ge=1)
    root_disk_size: int = Field(default=4096, gt=0)
    swap_disk_size: int = Field(default=256, gt=0)
    label_prefix: str = Field(default="spread")

    @classmethod
    def from_yaml(cls, path: Path) -> "LinodeConfig":
        """Load a configuration from a YAML file.

        Args:
            path: Filesystem path to the YAML file.

        Returns:
            LinodeConfig: The validated configuration.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the content is not a valid configuration.
        """
        try:
            raw: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"cannot parse Linode config {path}: {exc}") from exc
        try:
            return cls.model_validate(raw or {})
        except ValidationError as exc:
            raise ValueError(f"invalid Linode config {path}: {exc}") from exc
