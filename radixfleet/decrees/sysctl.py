from itertools import zip_longest
from resource import RLIM_INFINITY, RLIMIT_NOFILE, getrlimit, setrlimit
from subprocess import DEVNULL, run
from typing import Any, Optional, Sequence, Union

from ..console import info, warning
from ..utils import *
from .base import Decree


def parse_sysctl_value(value: Union[int, str]) -> tuple[int, ...]:
    """Parse single or whitespace separated multi-value parameters
    (like net.ipv4.tcp_rmem) into a tuple of integers."""
    if isinstance(value, int):
        return (value,)
    return tuple(int(part) for part in value.split())


def format_sysctl_value(values: Sequence[int]) -> str:
    return ' '.join(map(str, values))


def raise_values(current: Sequence[int], target: Sequence[int]) -> tuple[int, ...]:
    """Component-wise maximum; parameters are only ever raised."""
    return tuple(
        max(coalesce(c, t), coalesce(t, c)) for c, t in zip_longest(current, target)
    )


def read_sysctl(key: str) -> Optional[str]:
    try:
        result = run(
            ['sysctl', '-n', key],
            capture_output=True,
            text=True,
            stdin=DEVNULL,
        )
    except OSError:
        return None
    value = result.stdout.strip()
    if result.returncode or not value:
        return None
    return value


class Sysctl(Initializer, Decree):
    key: str
    value: Union[int, str]
    sudo: Optional[str] = 'sudo'

    failed = False

    @initializer
    def target(self) -> tuple[int, ...]:
        return parse_sysctl_value(self.value)

    @initializer
    def current(self) -> Optional[str]:
        return read_sysctl(self.key)

    @initializer
    def new_value(self) -> Optional[str]:
        current = self.current
        if current is None:
            return None
        return format_sysctl_value(raise_values(parse_sysctl_value(current), self.target))

    @initializer
    def _update_needed(self) -> bool:
        key = self.key
        current = self.current
        if current is None:
            warning(f"Parameter {key} not available on this system")
            return False

        try:
            values = parse_sysctl_value(current)
        except ValueError:
            warning(f"Parameter {key} has a non-numeric value: {current}")
            return False

        if any(c < t for c, t in zip(values, self.target)):
            return True

        info(f"{key} already >= {self.value} (current: {current})")
        return False

    def _update(self) -> None:
        key = self.key
        command = ['sysctl', '-w', f"{key}={self.new_value}"]
        if self.sudo:
            command.insert(0, self.sudo)
        try:
            result = run(command, stdin=DEVNULL, stdout=DEVNULL, stderr=DEVNULL)
        except OSError:
            self.failed = True
        else:
            self.failed = result.returncode != 0

        if self.failed:
            warning(f"Failed to set {key} (may require SIP disabled on macOS)")
        else:
            info(f"Set {key}: {self.current} -> {self.new_value}")

    @property
    def _summary(self) -> dict[str, Any]:
        summary = super()._summary
        if self.updated:
            summary['updated'] = {'from': self.current, 'to': self.new_value}
            if self.failed:
                summary['failed'] = True
        return summary


class FileLimit(Initializer, Decree):
    """Raise the soft limit on open file descriptors of this process
    (and therefore of everything it starts)."""

    target = 65536

    failed = False
    new_limit: Optional[int] = None

    @initializer
    def current(self) -> tuple[int, int]:
        return getrlimit(RLIMIT_NOFILE)

    @initializer
    def _update_needed(self) -> bool:
        soft, _ = self.current
        if soft == RLIM_INFINITY or soft >= self.target:
            info(f"File descriptors already at {soft}")
            return False
        return True

    def _update(self) -> None:
        soft, hard = self.current
        for limit in (self.target, hard):
            if limit == RLIM_INFINITY:
                continue
            try:
                setrlimit(RLIMIT_NOFILE, (limit, hard))
            except (ValueError, OSError):
                continue
            break
        else:
            self.failed = True

        self.new_limit, _ = getrlimit(RLIMIT_NOFILE)
        if self.failed:
            warning(f"Failed to raise file descriptors above {soft}")
        else:
            info(f"File descriptors: {soft} -> {self.new_limit}")

    @property
    def _summary(self) -> dict[str, Any]:
        summary = super()._summary
        if self.updated:
            soft, _ = self.current
            summary['updated'] = {'from': soft, 'to': coalesce(self.new_limit, self.target)}
            if self.failed:
                summary['failed'] = True
        return summary


__all__ = (
    'FileLimit',
    'Sysctl',
    'format_sysctl_value',
    'parse_sysctl_value',
    'raise_values',
    'read_sysctl',
)
