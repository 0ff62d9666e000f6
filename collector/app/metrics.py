from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generic, TypeVar

from collector.app.config import settings
from collector.app.containers import DockerCli, get_docker_overview
from collector.app.schemas import (
    ErrorMarker,
    Hardware,
    MetricsSnapshot,
    NetworkSpeed,
    Performance,
    ProcessorInfo,
    RamUsage,
    ServerDetails,
    TopProcesses,
    UptimeInfo,
)
from collector.app.sysinfo import SystemInformation


UNKNOWN = "Unknown"
BYTES_PER_MB = 1024 * 1024

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProbeOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class ProbeFailed:
    message: str


ProbeResult = ProbeOk[T] | ProbeFailed


def select_ipv4_address(interfaces: Mapping[str, Iterable[Mapping[str, Any]]]) -> str:
    """Return the first external IPv4 address, or ``"Unknown"``."""
    for addresses in interfaces.values():
        for entry in addresses:
            if entry.get("family") == "IPv4" and not entry.get("internal"):
                return str(entry.get("address"))
    return UNKNOWN


def _to_mb(value: float) -> str:
    return f"{value / BYTES_PER_MB:.2f}"


def ram_in_mb(memory: Mapping[str, Any]) -> RamUsage:
    return RamUsage(
        total=_to_mb(memory["total"]),
        used=_to_mb(memory["used"]),
        available=_to_mb(memory["available"]),
    )


def network_speed(stats: Iterable[Mapping[str, Any]]) -> list[NetworkSpeed]:
    # Cumulative byte counters scaled to megabits, not a rate over an interval
    return [
        NetworkSpeed(
            iface=entry["iface"],
            download_speed_in_mbit=f"{entry['rx_bytes'] * 8 / 1_000_000:.2f}",
            upload_speed_in_mbit=f"{entry['tx_bytes'] * 8 / 1_000_000:.2f}",
        )
        for entry in stats
    ]


def top_processes(processes: Iterable[Mapping[str, Any]], limit: int = 5) -> TopProcesses:
    """Pick the busiest processes by CPU and by memory.

    Both orderings start from the provider order, so equal values keep it.
    """
    entries = [dict(entry) for entry in processes]
    by_cpu = sorted(entries, key=lambda entry: entry.get("cpu") or 0, reverse=True)
    by_memory = sorted(entries, key=lambda entry: entry.get("mem") or 0, reverse=True)
    return TopProcesses(top_cpu=by_cpu[:limit], top_memory=by_memory[:limit])


def processor_summary(cpu: Mapping[str, Any]) -> ProcessorInfo:
    label = f"{cpu.get('manufacturer') or ''} {cpu.get('brand') or ''}".strip()
    return ProcessorInfo(model=label, cores=cpu.get("cores"), speed=cpu.get("speed"))


def uptime_summary(time_info: Mapping[str, Any]) -> UptimeInfo:
    seconds = time_info["uptime"]
    return UptimeInfo(uptime_seconds=seconds, uptime_minutes=f"{seconds / 60:.2f}")


def last_restart_time(time_info: Mapping[str, Any], now: datetime | None = None) -> datetime:
    current = now or datetime.now(tz=timezone.utc)
    return current - timedelta(seconds=float(time_info["uptime"]))


async def run_probe(label: str, probe: Callable[[], Awaitable[T]], timeout: float | None = None) -> ProbeResult:
    """Await ``probe`` and convert any failure into :class:`ProbeFailed`."""
    limit = settings.probe_timeout_seconds if timeout is None else timeout
    try:
        value = await asyncio.wait_for(probe(), timeout=limit)
    except asyncio.TimeoutError:
        message = f"timed out after {limit}s"
        logger.error("Error fetching %s: %s", label, message)
        return ProbeFailed(message)
    except Exception as exc:
        logger.error("Error fetching %s: %s", label, exc)
        return ProbeFailed(str(exc))
    return ProbeOk(value)


def _unwrap(result: ProbeResult, fallback: Any) -> Any:
    if isinstance(result, ProbeOk):
        return result.value
    return fallback


def _failed(what: str) -> ErrorMarker:
    return ErrorMarker(error=f"Failed to fetch {what}")


async def gather_metrics(
    provider: SystemInformation | None = None,
    runtime: DockerCli | None = None,
) -> MetricsSnapshot:
    """Run every probe concurrently and assemble one snapshot."""
    provider = provider or SystemInformation()
    runtime = runtime or DockerCli()

    async def ip_address() -> str:
        return select_ipv4_address(await provider.network_interfaces())

    async def uptime() -> UptimeInfo:
        return uptime_summary(await provider.time())

    async def restart_time() -> datetime:
        return last_restart_time(await provider.time())

    async def processor() -> ProcessorInfo:
        return processor_summary(await provider.cpu())

    async def ram() -> RamUsage:
        return ram_in_mb(await provider.mem())

    async def cpu_usage() -> float:
        load = await provider.current_load()
        return float(load["currentLoad"])

    async def speeds() -> list[NetworkSpeed]:
        return network_speed(await provider.network_stats())

    async def processes() -> TopProcesses:
        return top_processes(await provider.processes(), limit=settings.top_process_limit)

    async def docker() -> Any:
        return await get_docker_overview(provider, runtime)

    probes: list[tuple[str, str, Callable[[], Awaitable[Any]], Any]] = [
        ("os_info", "OS info", provider.os_info, _failed("OS info")),
        ("ip_address", "system IP address", ip_address, UNKNOWN),
        ("uptime", "uptime", uptime, _failed("uptime")),
        ("last_restart_time", "last restart time", restart_time, UNKNOWN),
        ("bios_info", "BIOS info", provider.bios, _failed("BIOS info")),
        ("processor", "processor info", processor, _failed("processor info")),
        ("ram_in_mb", "RAM info", ram, _failed("RAM info")),
        ("disk_usage", "disk usage", provider.fs_size, _failed("disk usage")),
        ("cpu_usage", "CPU usage", cpu_usage, _failed("CPU usage")),
        ("load_avg", "load average", provider.current_load, _failed("load average")),
        ("network_speed", "network speed", speeds, _failed("network speed")),
        ("system_temperature", "system temperature", provider.cpu_temperature, _failed("system temperature")),
        ("top_processes", "top processes", processes, _failed("top processes")),
        ("docker_specific", "Docker overview", docker, _failed("Docker overview")),
    ]

    # The Docker unit enforces its own limit and reports it as a Docker error
    limits = {"docker_specific": settings.docker_probe_timeout_seconds + settings.probe_timeout_seconds}
    results = await asyncio.gather(
        *(run_probe(label, probe, timeout=limits.get(key)) for key, label, probe, _ in probes)
    )
    fields = {
        key: _unwrap(result, fallback)
        for (key, _, _, fallback), result in zip(probes, results)
    }

    return MetricsSnapshot(
        server_details=ServerDetails(
            os_info=fields["os_info"],
            ip_address=fields["ip_address"],
            uptime=fields["uptime"],
            last_restart_time=fields["last_restart_time"],
        ),
        hardware=Hardware(
            bios_info=fields["bios_info"],
            processor=fields["processor"],
            ram_in_mb=fields["ram_in_mb"],
            disk_usage=fields["disk_usage"],
        ),
        performance=Performance(
            cpu_usage=fields["cpu_usage"],
            load_avg=fields["load_avg"],
            network_speed=fields["network_speed"],
        ),
        system_temperature=fields["system_temperature"],
        top_processes=fields["top_processes"],
        docker_specific=fields["docker_specific"],
    )
