"""Network tuning for running many validators on one machine.

Parameters are only ever raised, never lowered, and a parameter that can't
be read or written is reported and skipped. Everything set here is
temporary and resets on reboot."""

from os import geteuid
from resource import RLIMIT_NOFILE, getrlimit
from typing import Optional, Union

from .console import banner, error, info, warning
from .decrees import FileLimit, Policy, Sysctl
from .decrees.sysctl import read_sysctl
from .facts import get_facts, get_sysname
from .utils import *

Parameters = tuple[tuple[str, Union[int, str]], ...]

MACOS_PARAMETERS: Parameters = (
    # TCP buffer sizes
    ('net.inet.tcp.sendspace', 262144),
    ('net.inet.tcp.recvspace', 262144),
    ('net.inet.udp.maxdgram', 65535),
    ('kern.ipc.maxsockbuf', 8388608),
    # pending connections and sockets
    ('kern.ipc.somaxconn', 2048),
    ('kern.ipc.maxsockets', 32768),
    ('net.inet.tcp.msl', 15000),
    ('net.inet.tcp.delayed_ack', 0),
    # ephemeral ports
    ('net.inet.ip.portrange.first', 10000),
    ('net.inet.ip.portrange.last', 65535),
)

LINUX_PARAMETERS: Parameters = (
    # socket buffers
    ('net.core.rmem_max', 16777216),
    ('net.core.wmem_max', 16777216),
    ('net.core.rmem_default', 262144),
    ('net.core.wmem_default', 262144),
    # TCP memory (min, default, max)
    ('net.ipv4.tcp_rmem', "4096 262144 16777216"),
    ('net.ipv4.tcp_wmem', "4096 262144 16777216"),
    # pending connections
    ('net.core.somaxconn', 2048),
    ('net.ipv4.tcp_max_syn_backlog', 4096),
    ('net.core.netdev_max_backlog', 4096),
    # TIME_WAIT
    ('net.ipv4.tcp_fin_timeout', 15),
    ('net.ipv4.tcp_tw_reuse', 1),
    ('net.ipv4.tcp_low_latency', 1),
    ('net.ipv4.ip_local_port_range', "10000 65535"),
    # open files system-wide
    ('fs.file-max', 2097152),
    ('fs.nr_open', 2097152),
)

PLATFORMS = {
    'Darwin': ('macOS', MACOS_PARAMETERS),
    'Linux': ('Linux', LINUX_PARAMETERS),
}

SUMMARY_PARAMETERS = {
    'Darwin': (
        ('TCP send buffer', 'net.inet.tcp.sendspace'),
        ('TCP recv buffer', 'net.inet.tcp.recvspace'),
        ('Max connections', 'kern.ipc.somaxconn'),
    ),
    'Linux': (
        ('TCP rmem max', 'net.core.rmem_max'),
        ('TCP wmem max', 'net.core.wmem_max'),
        ('Max connections', 'net.core.somaxconn'),
    ),
}


def sysctl_policy(parameters: Parameters, sudo: Optional[str] = 'sudo') -> Policy:
    policy = Policy(
        **{key: Sysctl(key=key, value=value, sudo=sudo) for key, value in parameters}
    )
    policy._prepare('sysctl')
    return policy


def report_dry_run(summary) -> None:
    for name, decree_summary in summary.items():
        update = decree_summary.get('updated')
        if isinstance(update, dict):
            info(f"Would set {name}: {update['from']} -> {update['to']}")


def print_settings(sysname: str) -> None:
    def setting(label, value):
        print(f"  {label + ':':<18}{value}")

    print("Current settings:")
    setting("File descriptors", getrlimit(RLIMIT_NOFILE)[0])
    for label, key in SUMMARY_PARAMETERS[sysname]:
        setting(label, coalesce(read_sysctl(key), 'N/A'))

    facts = get_facts()
    setting("CPU threads", coalesce(facts['cpu']['threads'], 'N/A'))
    setting("Memory", f"{facts['memory']['ram'] // 1048576} MiB")


def main(procname, *args, **env) -> Optional[int]:
    sysname = get_sysname()
    info(f"Detected OS: {sysname}")

    banner("Network Tuning for Local Validators")

    try:
        label, parameters = PLATFORMS[sysname]
    except KeyError:
        error(f"Unsupported OS: {sysname}")
        return 1

    dry_run = is_enabled(env.get('RADIXFLEET_DRY_RUN', ''))
    sudo = None if geteuid() == 0 else env.get('RADIXFLEET_SUDO', 'sudo')

    info("Increasing file descriptor limits...")
    file_limit = FileLimit()
    file_limit._prepare('file_limit')
    file_limit_summary = file_limit._apply(dry_run=dry_run)

    info(f"Applying {label} network tuning...")
    policy = sysctl_policy(parameters, sudo=sudo)
    summary = policy._apply(dry_run=dry_run)

    if dry_run:
        report_dry_run({'file descriptors': file_limit_summary, **summary})

    print()
    info("Network tuning complete!")
    print()
    print_settings(sysname)
    print()
    warning("Note: These settings are temporary and will reset on reboot.")
    print()

    return None


__all__ = (
    'LINUX_PARAMETERS',
    'MACOS_PARAMETERS',
    'PLATFORMS',
    'main',
    'sysctl_policy',
)
