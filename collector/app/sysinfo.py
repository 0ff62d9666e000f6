"""System-information provider.

Thin async facade over psutil, ``/proc``, ``/sys`` and the Docker Engine API.
Each method returns plain dictionaries shaped for direct JSON serialization;
any method may raise, callers are expected to guard every call individually.
"""

from __future__ import annotations

import asyncio
import os
import platform
import re
import socket
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import psutil

from collector.app.config import settings


DMI_ROOT = Path("/sys/class/dmi/id")
CPUINFO_PATH = Path("/proc/cpuinfo")

_LOOPBACK_ADDRESS_PREFIXES = ("127.", "::1")


class DockerApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip()
    except (FileNotFoundError, PermissionError, OSError):
        return ""


def _parse_cpuinfo(text: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip():
            # Only the first processor block is needed
            if fields:
                break
            continue
        key, _, value = line.partition(":")
        fields.setdefault(key.strip(), value.strip())
    return fields


_VENDOR_NAMES = {
    "GenuineIntel": "Intel",
    "AuthenticAMD": "AMD",
    "ARM": "ARM",
}


def _clean_brand(brand: str, manufacturer: str) -> str:
    """Strip trademark noise, the clock suffix and the repeated vendor name."""
    cleaned = re.sub(r"\((R|TM|tm)\)", "", brand)
    cleaned = re.sub(r"\s+CPU\b", "", cleaned)
    cleaned = cleaned.split("@")[0]
    cleaned = " ".join(cleaned.split())
    if manufacturer and cleaned.lower().startswith(manufacturer.lower() + " "):
        cleaned = cleaned[len(manufacturer):].strip()
    return cleaned


class SystemInformation:
    """Default provider backed by the local host."""

    def __init__(
        self,
        docker_socket: str | None = None,
        docker_transport: httpx.AsyncBaseTransport | None = None,
        cpu_sample_interval: float | None = None,
    ) -> None:
        self._docker_socket = docker_socket or settings.docker_socket
        self._docker_transport = docker_transport
        self._cpu_sample_interval = (
            settings.cpu_sample_interval_seconds if cpu_sample_interval is None else cpu_sample_interval
        )

    # -- host ---------------------------------------------------------------

    async def os_info(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._os_info)

    def _os_info(self) -> dict[str, Any]:
        uname = platform.uname()
        distro = ""
        release = uname.release
        os_release = _read_text(Path("/etc/os-release"))
        for line in os_release.splitlines():
            key, _, value = line.partition("=")
            value = value.strip().strip('"')
            if key == "PRETTY_NAME":
                distro = value
            elif key == "VERSION_ID":
                release = value
        return {
            "platform": uname.system.lower(),
            "distro": distro or uname.system,
            "release": release,
            "kernel": uname.release,
            "arch": uname.machine,
            "hostname": socket.gethostname(),
        }

    async def time(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._time)

    def _time(self) -> dict[str, Any]:
        now = time.time()
        return {
            "current": int(now * 1000),
            "uptime": round(now - psutil.boot_time(), 2),
            "timezone": datetime.now(tz=timezone.utc).astimezone().tzname(),
        }

    async def bios(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._bios)

    def _bios(self) -> dict[str, Any]:
        if not DMI_ROOT.is_dir():
            raise FileNotFoundError(f"DMI information not available at {DMI_ROOT}")
        return {
            "vendor": _read_text(DMI_ROOT / "bios_vendor"),
            "version": _read_text(DMI_ROOT / "bios_version"),
            "releaseDate": _read_text(DMI_ROOT / "bios_date"),
            "revision": _read_text(DMI_ROOT / "bios_release"),
        }

    async def cpu(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._cpu)

    def _cpu(self) -> dict[str, Any]:
        info = _parse_cpuinfo(_read_text(CPUINFO_PATH))
        vendor = info.get("vendor_id") or info.get("CPU implementer") or ""
        brand = info.get("model name") or info.get("Model") or platform.processor() or ""
        manufacturer = _VENDOR_NAMES.get(vendor, vendor)
        brand = _clean_brand(brand, manufacturer)
        freq = None
        try:
            freq = psutil.cpu_freq()
        except (AttributeError, NotImplementedError, OSError):
            freq = None
        speed = round(freq.current / 1000, 2) if freq and freq.current else None
        return {
            "manufacturer": manufacturer,
            "brand": brand,
            "cores": psutil.cpu_count(logical=True),
            "physicalCores": psutil.cpu_count(logical=False),
            "speed": speed,
        }

    async def mem(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._mem)

    def _mem(self) -> dict[str, Any]:
        memory = psutil.virtual_memory()
        return {
            "total": memory.total,
            "used": memory.used,
            "free": memory.free,
            "available": memory.available,
        }

    async def fs_size(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fs_size)

    def _fs_size(self) -> list[dict[str, Any]]:
        filesystems: list[dict[str, Any]] = []
        seen: set[str] = set()
        for partition in psutil.disk_partitions(all=False):
            mount = partition.mountpoint
            if mount in seen:
                continue
            seen.add(mount)
            try:
                usage = psutil.disk_usage(mount)
            except (FileNotFoundError, PermissionError, OSError):
                continue
            filesystems.append(
                {
                    "fs": partition.device,
                    "type": partition.fstype,
                    "size": usage.total,
                    "used": usage.used,
                    "available": usage.free,
                    "use": round(usage.percent, 2),
                    "mount": mount,
                }
            )
        return filesystems

    async def network_stats(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._network_stats)

    def _network_stats(self) -> list[dict[str, Any]]:
        counters = psutil.net_io_counters(pernic=True)
        return [
            {"iface": name, "rx_bytes": stats.bytes_recv, "tx_bytes": stats.bytes_sent}
            for name, stats in counters.items()
        ]

    async def network_interfaces(self) -> dict[str, list[dict[str, Any]]]:
        return await asyncio.to_thread(self._network_interfaces)

    def _network_interfaces(self) -> dict[str, list[dict[str, Any]]]:
        interfaces: dict[str, list[dict[str, Any]]] = {}
        try:
            stats = psutil.net_if_stats()
        except OSError:
            stats = {}
        for name, addresses in psutil.net_if_addrs().items():
            flags = getattr(stats.get(name), "flags", "") or ""
            loopback = "loopback" in flags.split(",")
            entries = []
            for address in addresses:
                if address.family == socket.AF_INET:
                    family = "IPv4"
                elif address.family == socket.AF_INET6:
                    family = "IPv6"
                else:
                    continue
                internal = loopback or address.address.startswith(_LOOPBACK_ADDRESS_PREFIXES)
                entries.append({"address": address.address, "family": family, "internal": internal})
            interfaces[name] = entries
        return interfaces

    async def current_load(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._current_load)

    def _current_load(self) -> dict[str, Any]:
        per_cpu = psutil.cpu_percent(interval=self._cpu_sample_interval, percpu=True)
        current = round(sum(per_cpu) / len(per_cpu), 2) if per_cpu else 0.0
        try:
            one, five, fifteen = os.getloadavg()
        except (AttributeError, OSError):
            one, five, fifteen = (None, None, None)
        return {
            "avgLoad": one,
            "currentLoad": current,
            "loadAverage": {"one": one, "five": five, "fifteen": fifteen},
            "cpus": [{"load": round(value, 2)} for value in per_cpu],
        }

    async def cpu_temperature(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._cpu_temperature)

    def _cpu_temperature(self) -> dict[str, Any]:
        try:
            temps = psutil.sensors_temperatures()
        except (AttributeError, NotImplementedError):
            temps = {}
        readings: list[float] = []
        # Try common sensor labels first
        for key in ("coretemp", "k10temp", "cpu_thermal", "soc_thermal"):
            entries = temps.get(key) if temps else None
            if entries:
                readings = [float(entry.current) for entry in entries if entry.current is not None]
                break
        if not readings and temps:
            for entries in temps.values():
                readings = [float(entry.current) for entry in entries if entry.current is not None]
                if readings:
                    break
        if not readings:
            return {"main": None, "cores": [], "max": None}
        return {
            "main": round(sum(readings) / len(readings), 1),
            "cores": readings,
            "max": max(readings),
        }

    async def processes(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._processes)

    def _processes(self) -> list[dict[str, Any]]:
        procs = list(psutil.process_iter(["pid", "name", "username", "memory_percent", "memory_info"]))
        # The first cpu_percent call per process only sets a baseline
        for proc in procs:
            try:
                proc.cpu_percent(None)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        if self._cpu_sample_interval:
            time.sleep(self._cpu_sample_interval)

        processes: list[dict[str, Any]] = []
        for proc in procs:
            try:
                cpu = proc.cpu_percent(None)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                cpu = 0.0
            info = proc.info
            memory_info = info.get("memory_info")
            processes.append(
                {
                    "pid": info.get("pid"),
                    "name": info.get("name") or "",
                    "user": info.get("username") or "",
                    "cpu": round(cpu or 0.0, 2),
                    "mem": round(info.get("memory_percent") or 0.0, 2),
                    "memRss": memory_info.rss if memory_info else None,
                }
            )
        return processes

    # -- docker engine --------------------------------------------------------

    def _docker_client(self) -> httpx.AsyncClient:
        transport = self._docker_transport or httpx.AsyncHTTPTransport(uds=self._docker_socket)
        return httpx.AsyncClient(
            transport=transport,
            base_url="http://docker",
            timeout=settings.docker_api_timeout_seconds,
        )

    async def _docker_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        async with self._docker_client() as client:
            try:
                response = await client.get(path, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                body = exc.response.text[:200]
                raise DockerApiError(
                    f"Docker API responded with {exc.response.status_code}: {body}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.RequestError as exc:
                raise DockerApiError(f"Could not reach Docker daemon: {exc}") from exc
            return response.json()

    async def docker_containers(self) -> list[dict[str, Any]]:
        raw = await self._docker_get("/containers/json", params={"all": "true"})
        containers = []
        for item in raw or []:
            names = item.get("Names") or []
            containers.append(
                {
                    "id": item.get("Id", ""),
                    "name": names[0].lstrip("/") if names else "",
                    "image": item.get("Image", ""),
                    "state": item.get("State", ""),
                    "status": item.get("Status", ""),
                    "created": item.get("Created"),
                }
            )
        return containers

    async def docker_images(self) -> list[dict[str, Any]]:
        raw = await self._docker_get("/images/json")
        return [
            {
                "id": item.get("Id", ""),
                "repoTags": item.get("RepoTags") or [],
                "size": item.get("Size"),
                "created": item.get("Created"),
            }
            for item in raw or []
        ]
