"""
Pydantic models for Linode API records and provisioned state.

Wire models use the provider's upper-case field names as aliases so a
decoded response validates directly; the Python attribute names are the
ones the rest of the package uses.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ProviderError

DataT = TypeVar("DataT")


class WireModel(BaseModel):
    """Base for records decoded from the provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ServerStatus(IntEnum):
    """Known power state codes reported by ``linode.list``."""

    BEING_CREATED = -1
    BRAND_NEW = 0
    RUNNING = 1
    POWERED_OFF = 2


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


class ErrorRecord(WireModel):
    """One entry of a response ERRORARRAY."""

    code: int = Field(alias="ERRORCODE")
    message: str = Field(default="", alias="ERRORMESSAGE")


class Envelope(WireModel, Generic[DataT]):
    """The ``{ERRORARRAY, DATA}`` envelope every response is wrapped in."""

    errors: List[ErrorRecord] = Field(default_factory=list, alias="ERRORARRAY")
    data: Optional[DataT] = Field(default=None, alias="DATA")

    @model_validator(mode="before")
    @classmethod
    def _drop_data_on_error(cls, value: Any) -> Any:
        # Failed calls answer with an empty DATA object that does not fit DataT.
        if isinstance(value, dict) and value.get("ERRORARRAY"):
            return {k: v for k, v in value.items() if k != "DATA"}
        return value

    def error(self) -> Optional[ProviderError]:
        """Return the first reported error as a ProviderError, if any."""
        for record in self.errors:
            return ProviderError(record.code, record.message)
        return None

    def raise_for_error(self) -> None:
        err = self.error()
        if err is not None:
            raise err


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class LinodeRecord(WireModel):
    """A leased machine as listed by ``linode.list``."""

    id: int = Field(alias="LINODEID")
    label: str = Field(default="", alias="LABEL")
    status: Optional[int] = Field(default=None, alias="STATUS")


class IPAddress(WireModel):
    id: int = Field(alias="IPADDRESSID")
    linode_id: int = Field(default=0, alias="LINODEID")
    is_public: int = Field(default=0, alias="ISPUBLIC")
    address: str = Field(default="", alias="IPADDRESS")
    rdns_name: str = Field(default="", alias="RDNS_NAME")


class Job(WireModel):
    """A job handle returned by boot, reboot and shutdown calls."""

    job_id: int = Field(alias="JOBID")


class DiskJob(WireModel):
    """Result of a disk creation call: the new disk and the job filling it."""

    disk_id: int = Field(alias="DISKID")
    job_id: int = Field(default=0, alias="JOBID")


class ConfigResult(WireModel):
    config_id: int = Field(alias="CONFIGID")


class JobInfo(WireModel):
    """Job state as reported by ``linode.job.list``.

    A job is finished once ``host_finish`` is non-empty; it succeeded if
    ``host_success`` is 1.
    """

    job_id: int = Field(alias="JOBID")
    linode_id: int = Field(default=0, alias="LINODEID")
    action: str = Field(default="", alias="ACTION")
    label: str = Field(default="", alias="LABEL")
    host_start: str = Field(default="", alias="HOST_START_DT")
    host_finish: str = Field(default="", alias="HOST_FINISH_DT")
    host_success: int = Field(default=0, alias="HOST_SUCCESS")
    host_message: str = Field(default="", alias="HOST_MESSAGE")

    @property
    def finished(self) -> bool:
        return self.host_finish != ""

    @property
    def succeeded(self) -> bool:
        return self.host_success == 1


class Distribution(WireModel):
    """A catalog entry: an installable distribution.

    ``name`` and ``kernel_id`` are not sent by the provider; the catalog
    cache fills them in once both lists are known.
    """

    id: int = Field(alias="DISTRIBUTIONID")
    label: str = Field(default="", alias="LABEL")
    min_image_size: int = Field(default=0, alias="MINIMAGESIZE")
    requires_pvops_kernel: int = Field(default=0, alias="REQUIRESVOPSKERNEL")
    is_64bit: int = Field(default=0, alias="IS64BIT")
    created: str = Field(default="", alias="CREATE_DT")

    name: str = ""
    kernel_id: int = 0


class Kernel(WireModel):
    id: int = Field(alias="KERNELID")
    label: str = Field(default="", alias="LABEL")
    is_pvops: int = Field(default=0, alias="ISPVOPS")
    is_xen: int = Field(default=0, alias="ISXEN")
    is_kvm: int = Field(default=0, alias="ISKVM")


# ---------------------------------------------------------------------------
# Provisioned state
# ---------------------------------------------------------------------------


class ProvisionedState(BaseModel):
    """What must survive a process restart to tear down or reuse a machine.

    Power state is deliberately absent; it is re-queried, never trusted
    from a stale snapshot.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    label: str = ""
    address: str = ""
    image: str = ""
    config: int = 0
    root: int = 0
    swap: int = 0
