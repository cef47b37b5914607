"""
Linode provider: installs images onto leased machines and tears them down.

Machines are never created or destroyed here. The account holds a pool
of pre-existing Linodes; allocate() picks a powered-off one, creates root
and swap disks from the requested distribution, creates a boot config
over them and boots it. discard() shuts the machine down and removes the
config and disks so it returns to the pool.

Each provisioning step registers its compensating action on a Rollback
chain. When a later step fails the chain is unwound in reverse order and
the original error is raised; failures while unwinding are only logged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .base import Provider, Server
from .catalog import CatalogCache
from .config import LinodeConfig
from .errors import (
    LinodeError,
    NoServerAvailableError,
    NoServersError,
    ProvisioningError,
    ReuseError,
    first_error,
)
from .image import ImageID
from .jobs import JobPoller
from .models import (
    ConfigResult,
    DiskJob,
    Distribution,
    Envelope,
    IPAddress,
    Job,
    LinodeRecord,
    ProvisionedState,
    ServerStatus,
)
from .protocol import LinodeClient, Params

logger = logging.getLogger(__name__)


class Rollback:
    """Compensating actions for a partially provisioned server.

    Actions run at most once, newest first. Their errors are logged and
    dropped so the error that triggered the rollback is the one reported.
    """

    def __init__(self, server: "LinodeServer") -> None:
        self._server = server
        self._steps: List[Tuple[str, Callable[[], Any]]] = []

    def push(self, description: str, action: Callable[[], Any]) -> None:
        self._steps.append((description, action))

    def run(self) -> None:
        steps, self._steps = self._steps, []
        for description, action in reversed(steps):
            try:
                action()
            except LinodeError as exc:
                logger.warning(
                    "Cannot roll back %s on %s: %s", description, self._server, exc,
                )


class LinodeServer(Server):
    """A leased Linode and whatever we installed on it.

    ``status`` comes from the latest listing and is None on servers
    rebuilt from reuse data.
    """

    def __init__(
        self,
        provider: "LinodeProvider",
        id: int,
        label: str = "",
        status: Optional[int] = None,
        address: str = "",
        image: str = "",
        config: int = 0,
        root: int = 0,
        swap: int = 0,
    ) -> None:
        self.provider = provider
        self.id = id
        self.label = label
        self.status = status
        self.address = address
        self.image = ImageID(image)
        self.config = config
        self.root = root
        self.swap = swap

    @classmethod
    def from_record(cls, provider: "LinodeProvider", record: LinodeRecord) -> "LinodeServer":
        return cls(provider, record.id, label=record.label, status=record.status)

    @classmethod
    def from_state(cls, provider: "LinodeProvider", state: ProvisionedState) -> "LinodeServer":
        return cls(provider, **state.model_dump())

    def __str__(self) -> str:
        return f"{self.provider.backend}:{self.image.system_id} ({self.label})"

    def __repr__(self) -> str:
        return f"LinodeServer(id={self.id}, label={self.label!r}, image={str(self.image)!r})"

    def state(self) -> ProvisionedState:
        return ProvisionedState(
            id=self.id,
            label=self.label,
            address=self.address,
            image=str(self.image),
            config=self.config,
            root=self.root,
            swap=self.swap,
        )

    def snapshot(self) -> Optional[str]:
        """Linode images cannot be captured; always None."""
        return None

    def reuse_data(self) -> bytes:
        return yaml.safe_dump(self.state().model_dump(), sort_keys=False).encode("utf-8")

    def discard(self) -> None:
        self.provider.discard(self)


class LinodeProvider(Provider):
    """Provisioning backend for a Linode account.

    Args:
        config: Backend settings, including the API key.
        client: Protocol adapter; built from *config* when omitted.
        catalog: Catalog cache; shared across allocations.
        poller: Job poller used to wait for boots.
    """

    def __init__(
        self,
        config: LinodeConfig,
        client: Optional[LinodeClient] = None,
        catalog: Optional[CatalogCache] = None,
        poller: Optional[JobPoller] = None,
    ) -> None:
        self._config = config
        self._client = client or LinodeClient(
            config.api_key, endpoint=config.endpoint, timeout=config.request_timeout,
        )
        self._catalog = catalog or CatalogCache(
            self._client, attempts=config.catalog_attempts,
        )
        self._poller = poller or JobPoller(
            self._client,
            interval=config.job_poll_interval,
            timeout=config.job_timeout,
        )

    @property
    def backend(self) -> str:
        return self._config.name

    @property
    def catalog(self) -> CatalogCache:
        return self._catalog

    # ------------------------------------------------------------------
    # Provider interface
    # ------------------------------------------------------------------

    def allocate(self, image: str, password: str) -> LinodeServer:
        """Provision the first powered-off machine in the account.

        Raises:
            NoServersError: The account has no machines at all (fatal).
            NoServerAvailableError: No machine is powered off right now.
            LinodeError: A provisioning step failed; resources created
                before the failure were removed.
        """
        servers = self.list_servers()
        if not servers:
            raise NoServersError("no servers in Linode account")

        for server in servers:
            if server.status != ServerStatus.POWERED_OFF:
                continue
            self._setup(server, ImageID(image), password)
            logger.info("Allocated %s.", server)
            return server

        raise NoServerAvailableError("no powered off servers in Linode account")

    def reuse(self, data: bytes, password: str) -> LinodeServer:
        try:
            state = ProvisionedState.model_validate(yaml.safe_load(data))
        except (yaml.YAMLError, ValidationError) as exc:
            raise ReuseError(f"cannot unmarshal Linode reuse data: {exc}") from exc
        return LinodeServer.from_state(self, state)

    def discard_snapshot(self, image: str) -> None:
        """Nothing to do: snapshots are never taken."""

    def discard(self, server: LinodeServer) -> None:
        """Shut down *server* and remove its config and disks.

        All three steps are attempted even when an earlier one fails.

        Raises:
            LinodeError: The first error encountered.
        """
        logger.info("Discarding %s...", server)
        err = first_error(
            _attempt(self.shutdown, server),
            _attempt(self.remove_config, server, server.config),
            _attempt(self.remove_disks, server, server.root, server.swap),
        )
        if err is not None:
            raise err

    # ------------------------------------------------------------------
    # Provisioning workflow
    # ------------------------------------------------------------------

    def _setup(self, server: LinodeServer, image: ImageID, password: str) -> None:
        server.image = image
        server.address = self.ip(server).address

        distro = self._catalog.resolve(image)

        root, swap = self.create_disks(server, image, distro, password)
        server.root = root.disk_id
        server.swap = swap.disk_id

        rollback = Rollback(server)
        rollback.push("disks", lambda: self.remove_disks(server, server.root, server.swap))
        try:
            server.config = self.create_config(server, image, distro, server.root, server.swap)
            rollback.push("config", lambda: self.remove_config(server, server.config))

            job = self.boot(server, server.config)
            self._poller.wait(server, "boot", job.job_id, rollback=rollback.run)
        except LinodeError:
            rollback.run()
            raise

    def list_servers(self) -> List[LinodeServer]:
        logger.info("Listing available Linode servers...")
        try:
            result = self._client.execute(
                {"api_action": "linode.list"}, Envelope[List[LinodeRecord]],
            )
            result.raise_for_error()
        except LinodeError as exc:
            raise ProvisioningError(f"cannot list Linode servers: {exc}") from exc
        return [LinodeServer.from_record(self, record) for record in result.data or []]

    def ip(self, server: LinodeServer) -> IPAddress:
        """Return the public address record of *server*."""
        logger.info("Obtaining address of %s...", server)
        try:
            result = self._client.execute(
                {"api_action": "linode.ip.list", "LinodeID": server.id},
                Envelope[List[IPAddress]],
            )
            result.raise_for_error()
        except LinodeError as exc:
            raise ProvisioningError(f"cannot list IPs for {server}: {exc}") from exc

        for ip in result.data or []:
            if ip.is_public == 1:
                logger.info("Got address of %s: %s", server, ip.address)
                return ip
        raise ProvisioningError(f"cannot find public IP for {server}")

    def create_disks(
        self,
        server: LinodeServer,
        image: ImageID,
        distro: Distribution,
        password: str,
    ) -> Tuple[DiskJob, DiskJob]:
        """Create root and swap disks in one batch.

        If the batch does not yield two successful results, a root disk
        that did get created is removed before the error is raised.
        """
        logger.info("Creating disk on %s with %s...", server, image)
        prefix = self._config.label_prefix
        batch: List[Params] = [
            {
                "api_action": "linode.disk.createFromDistribution",
                "LinodeID": server.id,
                "DistributionID": distro.id,
                "Label": image.label("root", prefix=prefix),
                "Size": self._config.root_disk_size,
                "rootPass": password,
            },
            {
                "api_action": "linode.disk.create",
                "LinodeID": server.id,
                "Label": image.label("swap", prefix=prefix),
                "Size": self._config.swap_disk_size,
                "Type": "swap",
            },
        ]

        err: Optional[Exception] = None
        results: List[Envelope[DiskJob]] = []
        try:
            results = self._client.execute_batch(batch, Envelope[DiskJob])
        except LinodeError as exc:
            err = exc

        disks: List[DiskJob] = []
        for result in results:
            err = result.error()
            if err is not None:
                break
            if result.data is None:
                err = ProvisioningError("missing disk details in batch result")
                break
            disks.append(result.data)

        if err is None and len(disks) == len(batch):
            return disks[0], disks[1]

        if disks:
            rollback = Rollback(server)
            rollback.push("root disk", lambda: self.remove_disks(server, disks[0].disk_id))
            rollback.run()
        if err is None:
            if results:
                err = ProvisioningError(
                    f"expected {len(batch)} batch results, got {len(results)}"
                )
            else:
                err = ProvisioningError("empty batch result")
        raise ProvisioningError(f"cannot create Linode disk with {image}: {err}") from err

    def remove_disks(self, server: LinodeServer, *disk_ids: int) -> None:
        logger.info("Removing disks from %s...", server)
        batch: List[Params] = [
            {"api_action": "linode.disk.delete", "LinodeID": server.id, "DiskID": disk_id}
            for disk_id in disk_ids
        ]
        try:
            results = self._client.execute_batch(batch, Envelope[Any])
            for result in results:
                result.raise_for_error()
        except LinodeError as exc:
            raise ProvisioningError(f"cannot remove disk on {server}: {exc}") from exc

    def create_config(
        self,
        server: LinodeServer,
        image: ImageID,
        distro: Distribution,
        root_id: int,
        swap_id: int,
    ) -> int:
        """Create a boot config over the root and swap disks; return its id."""
        logger.info("Creating configuration on %s with %s...", server, image)
        params: Params = {
            "api_action": "linode.config.create",
            "LinodeID": server.id,
            "KernelID": distro.kernel_id,
            "Label": image.label(prefix=self._config.label_prefix),
            "DiskList": f"{root_id},{swap_id}",
            "RootDeviceNum": 1,
            "RootDeviceR0": True,
            "helper_disableUpdateDB": True,
            "helper_distro": True,
            "helper_depmod": True,
            "helper_network": False,
            "devtmpfs_automount": True,
        }
        try:
            result = self._client.execute(params, Envelope[ConfigResult])
            result.raise_for_error()
            if result.data is None:
                raise ProvisioningError("missing config details")
        except LinodeError as exc:
            raise ProvisioningError(
                f"cannot create config on {server} with {image}: {exc}"
            ) from exc
        return result.data.config_id

    def remove_config(self, server: LinodeServer, config_id: int) -> None:
        logger.info("Removing configuration from %s...", server)
        try:
            result = self._client.execute(
                {"api_action": "linode.config.delete", "LinodeID": server.id, "ConfigID": config_id},
                Envelope[Any],
            )
            result.raise_for_error()
        except LinodeError as exc:
            raise ProvisioningError(f"cannot remove config from {server}: {exc}") from exc

    # ------------------------------------------------------------------
    # Power jobs
    # ------------------------------------------------------------------

    def boot(self, server: LinodeServer, config_id: int) -> Job:
        """Boot *server* with *config_id* through ``linode.reboot``."""
        return self._server_job(server, "boot", {
            "api_action": "linode.reboot",
            "LinodeID": server.id,
            "ConfigID": config_id,
        })

    def reboot(self, server: LinodeServer) -> Job:
        return self._server_job(server, "reboot", {
            "api_action": "linode.reboot",
            "LinodeID": server.id,
            "ConfigID": server.config,
        })

    def shutdown(self, server: LinodeServer) -> Job:
        return self._server_job(server, "shutdown", {
            "api_action": "linode.shutdown",
            "LinodeID": server.id,
        })

    def _server_job(self, server: LinodeServer, verb: str, params: Params) -> Job:
        try:
            result = self._client.execute(params, Envelope[Job])
            result.raise_for_error()
            if result.data is None:
                raise ProvisioningError("missing job details")
        except LinodeError as exc:
            raise ProvisioningError(f"cannot {verb} {server}: {exc}") from exc
        return result.data


def _attempt(action: Callable[..., Any], *args: Any) -> Optional[LinodeError]:
    """Run *action* and return its LinodeError instead of raising it."""
    try:
        action(*args)
    except LinodeError as exc:
        return exc
    return None
