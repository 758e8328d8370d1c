import subprocess
from collections import namedtuple
from types import SimpleNamespace

import pytest

from statuspulse_agent.internal.errors import SamplingDegraded
from statuspulse_agent.internal.metrics import sources
from statuspulse_agent.internal.metrics.sources import (
    DarwinSource,
    LinuxSource,
    WindowsSource,
    get_sample_source,
    parse_df_output,
    parse_wmic_output,
)

scputimes = namedtuple("scputimes", "user nice system idle iowait guest guest_nice")

DF_OUTPUT = """\
Filesystem     1024-blocks      Used Available Capacity Mounted on
udev               8123456         0   8123456       0% /dev
tmpfs              1634000      2100   1631900       1% /run
/dev/nvme0n1p2   490617784 245308892 220320436      53% /
/dev/nvme0n1p1      523248      6220    517028       2% /boot/efi
garbage line
/dev/sdb1           notanumber  12   34    1% /mnt/broken
//nas/share         1000       250       750      25% /mnt/nas share
"""

WMIC_OUTPUT = "Caption  FreeSpace     Size\r\r\nC:       107374182400  536870912000\r\r\nD:                          \r\r\nE:       oops          123\r\r\n\r\r\n"


def test_parse_df_keeps_real_filesystems_in_order():
    disks = parse_df_output(DF_OUTPUT)

    assert [d.identifier for d in disks] == ["/dev/nvme0n1p2", "/dev/nvme0n1p1", "//nas/share"]
    root = disks[0]
    assert root.total == 490617784 * 1024
    assert root.used == 245308892 * 1024
    assert root.free == 220320436 * 1024
    assert root.percent == pytest.approx(245308892 / 490617784 * 100)


def test_parse_df_tolerates_empty_output():
    assert parse_df_output("") == []
    assert parse_df_output("Filesystem 1024-blocks Used Available Capacity Mounted on\n") == []


def test_parse_wmic_skips_drives_without_media_and_bad_lines():
    disks = parse_wmic_output(WMIC_OUTPUT)

    assert len(disks) == 1
    c = disks[0]
    assert c.identifier == "C:"
    assert c.total == 536870912000
    assert c.free == 107374182400
    assert c.used == 536870912000 - 107374182400
    assert c.percent == pytest.approx(80.0)


@pytest.mark.parametrize("system,expected", [
    ("Linux", LinuxSource),
    ("Darwin", DarwinSource),
    ("Windows", WindowsSource),
    ("FreeBSD", LinuxSource),
])
def test_get_sample_source_selects_platform(system, expected):
    assert type(get_sample_source(system)) is expected


def test_disk_command_timeout_is_degraded(monkeypatch):
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(sources.subprocess, "run", fake_run)

    with pytest.raises(SamplingDegraded) as exc:
        LinuxSource(disk_command_timeout=0.5).read_disk_usage()
    assert exc.value.metric == "disk"


def test_missing_disk_command_falls_back_to_psutil(monkeypatch):
    def fake_run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(sources.subprocess, "run", fake_run)
    monkeypatch.setattr(sources.psutil, "disk_partitions", lambda all=False: [
        SimpleNamespace(device="C:\\", mountpoint="C:\\", fstype="NTFS"),
    ])
    monkeypatch.setattr(sources.psutil, "disk_usage", lambda path: SimpleNamespace(
        total=1000, used=250, free=750, percent=25.0,
    ))

    disks = WindowsSource().read_disk_usage()

    assert [d.identifier for d in disks] == ["C:\\"]
    assert disks[0].percent == pytest.approx(25.0)


def test_df_nonzero_exit_with_output_is_still_parsed(monkeypatch):
    monkeypatch.setattr(sources.subprocess, "run", lambda cmd, **kw: SimpleNamespace(
        returncode=1, stdout=DF_OUTPUT, stderr="df: /run/user/1000/doc: Operation not permitted",
    ))

    assert len(LinuxSource().read_disk_usage()) == 3


def test_df_failure_without_output_is_degraded(monkeypatch):
    monkeypatch.setattr(sources.subprocess, "run", lambda cmd, **kw: SimpleNamespace(
        returncode=1, stdout="", stderr="df: cannot read table of mounted file systems",
    ))

    with pytest.raises(SamplingDegraded):
        LinuxSource().read_disk_usage()


def test_cpu_counters_exclude_guest_time(monkeypatch):
    cpu = scputimes(user=10.0, nice=0.0, system=5.0, idle=80.0, iowait=5.0, guest=3.0, guest_nice=0.0)
    monkeypatch.setattr(sources.psutil, "cpu_times", lambda percpu=False: [cpu])

    counters = LinuxSource().read_cpu_counters()

    assert counters[0].idle == pytest.approx(85.0)
    assert counters[0].total == pytest.approx(100.0)


CONTAINER_DF_OUTPUT = """\
Filesystem     1024-blocks      Used Available Capacity Mounted on
/dev/sda1         61255492  30000000  31255492      49% /etc/hosts
/dev/loop3           56704     56704         0     100% /snap/core18/2829
shm                  65536         0     65536       0% /dev/shm
overlay           61255492  20000000  41255492      33% /
"""


def test_parse_df_puts_root_first_and_skips_snap_images():
    disks = parse_df_output(CONTAINER_DF_OUTPUT)

    assert [d.identifier for d in disks] == ["overlay", "/dev/sda1"]
    assert disks[0].percent == pytest.approx(20000000 / 61255492 * 100)


def test_psutil_fallback_skips_squashfs_and_puts_root_first(monkeypatch):
    monkeypatch.setattr(sources.psutil, "disk_partitions", lambda all=False: [
        SimpleNamespace(device="/dev/sdb1", mountpoint="/data", fstype="xfs"),
        SimpleNamespace(device="/dev/loop0", mountpoint="/snap/lxd/1", fstype="squashfs"),
        SimpleNamespace(device="/dev/sda2", mountpoint="/", fstype="ext4"),
    ])
    monkeypatch.setattr(sources.psutil, "disk_usage", lambda path: SimpleNamespace(
        total=1000, used=100, free=900, percent=10.0,
    ))

    disks = sources.psutil_disk_usage()

    assert [d.identifier for d in disks] == ["/dev/sda2", "/dev/sdb1"]
