from __future__ import annotations

from typing import Any

import pytest

from collector.app.schemas import VolumeDetail


class FakeProvider:
    """In-memory stand-in for the system-information provider."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {
            "os_info": {"platform": "linux", "distro": "Debian GNU/Linux 12", "hostname": "node-1"},
            "time": {"current": 0, "uptime": 3600, "timezone": "UTC"},
            "bios": {"vendor": "ACME", "version": "1.2", "releaseDate": "2024-01-01"},
            "cpu": {"manufacturer": "Intel", "brand": "Core i7", "cores": 8, "speed": 3.4},
            "mem": {"total": 1_073_741_824, "used": 536_870_912, "available": 536_870_912},
            "fs_size": [{"fs": "/dev/sda1", "size": 100, "used": 50, "mount": "/"}],
            "network_stats": [{"iface": "eth0", "rx_bytes": 1_000_000, "tx_bytes": 500_000}],
            "network_interfaces": {
                "lo": [{"address": "127.0.0.1", "family": "IPv4", "internal": True}],
                "eth0": [{"address": "10.0.0.5", "family": "IPv4", "internal": False}],
            },
            "current_load": {"currentLoad": 12.5, "avgLoad": 0.4},
            "cpu_temperature": {"main": 45.0, "cores": [45.0], "max": 45.0},
            "processes": [
                {"pid": 1, "name": "init", "cpu": 0.1, "mem": 0.5},
                {"pid": 2, "name": "db", "cpu": 30.0, "mem": 20.0},
            ],
            "docker_containers": [
                {"id": "a", "state": "running"},
                {"id": "b", "state": "exited"},
                {"id": "c", "state": "paused"},
            ],
            "docker_images": [{"id": "img-1"}, {"id": "img-2"}],
        }
        self.failures: set[str] = set()
        self.calls: list[str] = []

    async def _get(self, name: str) -> Any:
        self.calls.append(name)
        if name in self.failures:
            raise RuntimeError(f"{name} unavailable")
        return self.data[name]

    async def os_info(self):
        return await self._get("os_info")

    async def time(self):
        return await self._get("time")

    async def bios(self):
        return await self._get("bios")

    async def cpu(self):
        return await self._get("cpu")

    async def mem(self):
        return await self._get("mem")

    async def fs_size(self):
        return await self._get("fs_size")

    async def network_stats(self):
        return await self._get("network_stats")

    async def network_interfaces(self):
        return await self._get("network_interfaces")

    async def current_load(self):
        return await self._get("current_load")

    async def cpu_temperature(self):
        return await self._get("cpu_temperature")

    async def processes(self):
        return await self._get("processes")

    async def docker_containers(self):
        return await self._get("docker_containers")

    async def docker_images(self):
        return await self._get("docker_images")


class FakeRuntime:
    """Docker CLI stand-in keyed by volume name."""

    def __init__(self) -> None:
        self.volumes: dict[str, VolumeDetail] = {
            "data": VolumeDetail(name="data", mount_path="/var/lib/docker/volumes/data/_data", size=2048),
            "cache": VolumeDetail(name="cache", mount_path="/var/lib/docker/volumes/cache/_data"),
        }
        self.networks = ["bridge", "host", "none"]
        self.failing_volumes: set[str] = set()
        self.fail_networks = False

    async def list_volumes(self) -> list[str]:
        return list(self.volumes)

    async def inspect_volume(self, name: str) -> VolumeDetail:
        if name in self.failing_volumes:
            raise RuntimeError(f"no such volume: {name}")
        return self.volumes[name]

    async def list_networks(self) -> list[str]:
        if self.fail_networks:
            raise RuntimeError("cannot connect to the Docker daemon")
        return list(self.networks)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()
