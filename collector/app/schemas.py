from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorMarker(BaseModel):
    error: str


class UptimeInfo(CamelModel):
    uptime_seconds: float
    uptime_minutes: str


class ProcessorInfo(CamelModel):
    model: str
    cores: int | None = None
    speed: float | None = None


class RamUsage(CamelModel):
    total: str
    used: str
    available: str


class NetworkSpeed(CamelModel):
    iface: str
    download_speed_in_mbit: str
    upload_speed_in_mbit: str


class TopProcesses(CamelModel):
    top_cpu: list[dict[str, Any]]
    top_memory: list[dict[str, Any]]


class VolumeDetail(CamelModel):
    name: str
    mount_path: str = "N/A"
    size: int | Literal["Unknown"] = "Unknown"


class VolumeSummary(CamelModel):
    count: int
    details: list[VolumeDetail] = Field(default_factory=list)


class NetworkSummary(CamelModel):
    count: int
    names: list[str] = Field(default_factory=list)


class DockerOverview(CamelModel):
    total_containers: int
    running_containers: int
    stopped_containers: int
    total_images: int
    volumes: VolumeSummary
    networks: NetworkSummary


class ServerDetails(CamelModel):
    os_info: dict[str, Any] | ErrorMarker
    ip_address: str
    uptime: UptimeInfo | ErrorMarker
    last_restart_time: datetime | Literal["Unknown"]


class Hardware(CamelModel):
    bios_info: dict[str, Any] | ErrorMarker
    processor: ProcessorInfo | ErrorMarker
    ram_in_mb: RamUsage | ErrorMarker = Field(alias="RAMInMB")
    disk_usage: list[dict[str, Any]] | ErrorMarker


class Performance(CamelModel):
    cpu_usage: float | ErrorMarker
    load_avg: dict[str, Any] | ErrorMarker
    network_speed: list[NetworkSpeed] | ErrorMarker


class MetricsSnapshot(CamelModel):
    server_details: ServerDetails
    hardware: Hardware
    performance: Performance
    system_temperature: dict[str, Any] | ErrorMarker
    top_processes: TopProcesses | ErrorMarker
    docker_specific: DockerOverview | ErrorMarker


class PasswordUpdate(BaseModel):
    password: str | None = None
