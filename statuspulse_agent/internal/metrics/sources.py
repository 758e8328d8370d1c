"""
Raw OS counter sources for the StatusPulse agent.

A SampleSource is the capability set the Sampler needs:

- read_cpu_counters()     per-core cumulative idle/total CPU seconds
- read_memory()           (total, free) bytes
- read_disk_usage()       list of DiskUsage, OS enumeration order
- read_network_counters() per-interface cumulative rx/tx bytes
- read_uptime()           seconds since boot

psutil provides CPU, memory, network and boot time on every platform.
Disk usage is read from the platform's own tool (df / wmic) so the
reported numbers match what an operator sees on the host.
"""

import logging
import platform
import subprocess
import time

import psutil

from statuspulse_agent.internal.errors import SamplingDegraded
from statuspulse_agent.internal.metrics.models import (
    CpuTimes,
    DiskUsage,
    NetworkCounters,
    percent_of,
)

logger = logging.getLogger(__name__)

DISK_COMMAND_TIMEOUT = 5  # seconds

# df reports these but they are not backed by a disk. overlay is kept: it is
# the root filesystem inside containers.
PSEUDO_FILESYSTEMS = {
    "tmpfs", "devtmpfs", "udev", "none", "shm",
    "devfs", "map", "proc", "sysfs", "cgroup", "efivarfs",
}

# read-only images (snap, AppImage) mounted from loop devices; always 100% used
READ_ONLY_IMAGE_FSTYPES = {"squashfs", "iso9660", "udf"}
LOOP_DEVICE_PREFIX = "/dev/loop"

ROOT_MOUNT = "/"


def root_first(disks: list[tuple[str, DiskUsage]]) -> list[DiskUsage]:
    """
    Order (mount point, disk) pairs so the filesystem mounted at / comes
    first, keeping OS order otherwise. The first disk drives host status.
    """
    ordered = sorted(disks, key=lambda pair: pair[0] != ROOT_MOUNT)
    return [disk for _, disk in ordered]


class SampleSource:
    """
    Base capability set. CPU, memory, network and uptime are common to all
    platforms; subclasses provide read_disk_usage().
    """

    name = "generic"

    def __init__(self, disk_command_timeout: float = DISK_COMMAND_TIMEOUT):
        self.disk_command_timeout = disk_command_timeout

    def read_cpu_counters(self) -> list[CpuTimes]:
        counters = []
        for times in psutil.cpu_times(percpu=True):
            # guest time is already accounted for in user/nice on Linux
            total = sum(times) - getattr(times, "guest", 0.0) - getattr(times, "guest_nice", 0.0)
            idle = times.idle + getattr(times, "iowait", 0.0)
            counters.append(CpuTimes(idle=idle, total=total))
        return counters

    def read_memory(self) -> tuple[int, int]:
        mem = psutil.virtual_memory()
        return int(mem.total), int(mem.available)

    def read_network_counters(self) -> dict[str, NetworkCounters]:
        counters = psutil.net_io_counters(pernic=True) or {}
        return {
            name: NetworkCounters(rx_bytes=int(nic.bytes_recv), tx_bytes=int(nic.bytes_sent))
            for name, nic in counters.items()
        }

    def read_uptime(self) -> float:
        return max(0.0, time.time() - psutil.boot_time())

    def read_disk_usage(self) -> list[DiskUsage]:
        return psutil_disk_usage()

    def _run_disk_command(self, cmd: list[str]) -> str | None:
        """
        Run the platform disk tool. Returns its stdout, or None when the
        tool is not installed on this host.
        """
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.disk_command_timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.debug(f"Disk command '{cmd[0]}' not found, using psutil instead")
            return None
        except subprocess.TimeoutExpired:
            raise SamplingDegraded("disk", f"'{' '.join(cmd)}' timed out after {self.disk_command_timeout}s")

        # df exits non-zero when a single mount is unreadable but still
        # prints the rest, so only give up on empty output.
        if proc.returncode != 0 and not proc.stdout.strip():
            raise SamplingDegraded("disk", f"'{' '.join(cmd)}' exited with {proc.returncode}: {proc.stderr.strip()}")
        return proc.stdout


class LinuxSource(SampleSource):
    name = "linux"

    def read_disk_usage(self) -> list[DiskUsage]:
        output = self._run_disk_command(["df", "-kP"])
        if output is None:
            return psutil_disk_usage()
        return parse_df_output(output)


class DarwinSource(LinuxSource):
    name = "darwin"


class WindowsSource(SampleSource):
    name = "windows"

    def read_disk_usage(self) -> list[DiskUsage]:
        # wmic is missing on recent Windows builds
        output = self._run_disk_command(["wmic", "logicaldisk", "get", "caption,freespace,size"])
        if output is None:
            return psutil_disk_usage()
        return parse_wmic_output(output)


def parse_df_output(output: str) -> list[DiskUsage]:
    """
    Parse `df -kP` output (1024-byte blocks, one line per filesystem).

    Lines that do not parse are skipped rather than failing the sample.
    Loop devices (snap images) are left out and the root filesystem is
    listed first.
    """
    disks = []
    lines = output.strip().splitlines()
    for line in lines[1:]:
        parts = line.split()
        if len(parts) < 6:
            logger.debug(f"Skipping unparseable df line: {line!r}")
            continue
        filesystem = parts[0]
        if filesystem in PSEUDO_FILESYSTEMS or filesystem.startswith(LOOP_DEVICE_PREFIX):
            continue
        mount_point = " ".join(parts[5:])
        try:
            total = int(parts[1]) * 1024
            used = int(parts[2]) * 1024
            free = int(parts[3]) * 1024
        except ValueError:
            logger.debug(f"Skipping df line with non-numeric sizes: {line!r}")
            continue
        if total <= 0:
            continue
        disks.append((mount_point, DiskUsage(
            identifier=filesystem,
            total=total,
            used=used,
            free=free,
            percent=percent_of(used, total),
        )))
    return root_first(disks)


def parse_wmic_output(output: str) -> list[DiskUsage]:
    """
    Parse `wmic logicaldisk get caption,freespace,size`.

    wmic orders columns alphabetically: Caption FreeSpace Size. Drives with
    no media report empty sizes and are skipped.
    """
    disks = []
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    for line in lines[1:]:
        parts = line.split()
        if len(parts) < 3:
            logger.debug(f"Skipping unparseable wmic line: {line!r}")
            continue
        try:
            free = int(parts[1])
            total = int(parts[2])
        except ValueError:
            logger.debug(f"Skipping wmic line with non-numeric sizes: {line!r}")
            continue
        if total <= 0:
            continue
        used = total - free
        disks.append(DiskUsage(
            identifier=parts[0],
            total=total,
            used=used,
            free=free,
            percent=percent_of(used, total),
        ))
    return disks


def psutil_disk_usage() -> list[DiskUsage]:
    disks = []
    for part in psutil.disk_partitions(all=False):
        if part.fstype in READ_ONLY_IMAGE_FSTYPES or part.device.startswith(LOOP_DEVICE_PREFIX):
            continue
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (PermissionError, OSError) as e:
            logger.debug(f"Skipping partition {part.device}: {e}")
            continue
        if usage.total <= 0:
            continue
        disks.append((part.mountpoint, DiskUsage(
            identifier=part.device,
            total=int(usage.total),
            used=int(usage.used),
            free=int(usage.free),
            percent=percent_of(usage.used, usage.total),
        )))
    return root_first(disks)


def get_sample_source(system: str | None = None, **kwargs) -> SampleSource:
    """Pick the SampleSource implementation for this platform."""
    system = system or platform.system()
    if system == "Linux":
        return LinuxSource(**kwargs)
    if system == "Darwin":
        return DarwinSource(**kwargs)
    if system == "Windows":
        return WindowsSource(**kwargs)
    logger.warning(f"Platform '{system}' has no dedicated sample source, using POSIX defaults")
    return LinuxSource(**kwargs)
