from subprocess import CompletedProcess

import pytest

import radixfleet.decrees.sysctl


class FakeSysctl:
    """Stands in for subprocess.run when it runs sysctl(8)."""

    def __init__(self, values=None, writable=True):
        self.values = dict(values or {})
        self.writable = writable
        self.commands = []

    def __call__(self, command, **kwargs):
        command = list(command)
        self.commands.append(command)
        args = command[1:] if command[0] == 'sudo' else command
        if args[:2] == ['sysctl', '-n']:
            key = args[2]
            if key in self.values:
                return CompletedProcess(command, 0, stdout=f"{self.values[key]}\n", stderr='')
            return CompletedProcess(command, 1, stdout='', stderr=f"unknown oid '{key}'")
        if args[:2] == ['sysctl', '-w']:
            if not self.writable:
                return CompletedProcess(command, 1)
            key, _, value = args[2].partition('=')
            self.values[key] = value
            return CompletedProcess(command, 0)
        raise AssertionError(f"unexpected command {command!r}")

    @property
    def writes(self):
        return [command for command in self.commands if '-w' in command]


@pytest.fixture
def fake_sysctl(monkeypatch):
    def install(values=None, writable=True):
        fake = FakeSysctl(values, writable=writable)
        monkeypatch.setattr(radixfleet.decrees.sysctl, 'run', fake)
        return fake

    return install
