from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from typing import Any, Protocol

from collector.app.config import settings
from collector.app.schemas import DockerOverview, ErrorMarker, NetworkSummary, VolumeDetail, VolumeSummary


logger = logging.getLogger(__name__)

UNKNOWN_SIZE = "Unknown"
MISSING_MOUNT = "N/A"


class DockerCommandError(RuntimeError):
    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class ContainerRuntime(Protocol):
    async def list_volumes(self) -> list[str]: ...

    async def inspect_volume(self, name: str) -> VolumeDetail: ...

    async def list_networks(self) -> list[str]: ...


class ContainerInventory(Protocol):
    async def docker_containers(self) -> list[dict[str, Any]]: ...

    async def docker_images(self) -> list[dict[str, Any]]: ...


def _split_names(stdout: str) -> list[str]:
    return [line.strip() for line in stdout.splitlines() if line.strip()]


def parse_volume_inspect(name: str, stdout: str) -> VolumeDetail:
    """Extract mount path and usage size from ``docker volume inspect`` output."""
    details = json.loads(stdout)
    first: dict[str, Any] = {}
    if isinstance(details, list) and details and isinstance(details[0], dict):
        first = details[0]
    mount_path = first.get("Mountpoint") or MISSING_MOUNT
    usage = first.get("UsageData") or {}
    size = usage.get("Size") if isinstance(usage, dict) else None
    # The engine reports -1 when usage has not been computed
    if not isinstance(size, int) or size < 0:
        size = UNKNOWN_SIZE
    return VolumeDetail(name=name, mount_path=mount_path, size=size)


class DockerCli:
    """Runs the docker CLI for the pieces the Engine listing does not cover."""

    def __init__(self, binary: str | None = None, timeout: float | None = None) -> None:
        self.binary = binary or settings.docker_binary
        self.timeout = timeout if timeout is not None else settings.command_timeout_seconds

    async def _run(self, *args: str) -> str:
        command = [self.binary, *args]

        def _execute() -> subprocess.CompletedProcess:
            return subprocess.run(command, check=False, capture_output=True, text=True, timeout=self.timeout)

        try:
            result = await asyncio.to_thread(_execute)
        except FileNotFoundError as exc:
            raise DockerCommandError(f"{self.binary} executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise DockerCommandError(f"{' '.join(command)} timed out after {self.timeout}s") from exc
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            output = stderr or (result.stdout or "").strip() or f"exit status {result.returncode}"
            raise DockerCommandError(f"Command failed: {' '.join(command)}: {output}", result.returncode)
        return result.stdout or ""

    async def list_volumes(self) -> list[str]:
        return _split_names(await self._run("volume", "ls", "--format", "{{.Name}}"))

    async def inspect_volume(self, name: str) -> VolumeDetail:
        return parse_volume_inspect(name, await self._run("volume", "inspect", name))

    async def list_networks(self) -> list[str]:
        return _split_names(await self._run("network", "ls", "--format", "{{.Name}}"))


async def _collect_overview(inventory: ContainerInventory, runtime: ContainerRuntime) -> DockerOverview:
    containers = await inventory.docker_containers()
    images = await inventory.docker_images()

    volumes = await runtime.list_volumes()
    volume_details = await asyncio.gather(*(runtime.inspect_volume(name) for name in volumes))

    networks = await runtime.list_networks()

    return DockerOverview(
        total_containers=len(containers),
        running_containers=sum(1 for c in containers if c.get("state") == "running"),
        stopped_containers=sum(1 for c in containers if c.get("state") == "exited"),
        total_images=len(images),
        volumes=VolumeSummary(count=len(volumes), details=list(volume_details)),
        networks=NetworkSummary(count=len(networks), names=networks),
    )


async def get_docker_overview(
    inventory: ContainerInventory,
    runtime: ContainerRuntime,
    timeout: float | None = None,
) -> DockerOverview | ErrorMarker:
    """Summarize containers, images, volumes and networks as one unit.

    Any failure along the way, including running past ``timeout``, discards
    everything gathered so far.
    """
    limit = settings.docker_probe_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(_collect_overview(inventory, runtime), timeout=limit)
    except asyncio.TimeoutError:
        message = f"timed out after {limit}s"
        logger.error("Error fetching Docker details: %s", message)
        return ErrorMarker(error=f"Docker error: {message}")
    except Exception as exc:
        logger.error("Error fetching Docker details: %s", exc)
        return ErrorMarker(error=f"Docker error: {exc}")
