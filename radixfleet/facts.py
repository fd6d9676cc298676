from os import uname
from typing import Any

from psutil import cpu_count, virtual_memory


def get_cpu(facts) -> None:
    facts['cpu'] = {
        'threads': cpu_count(logical=True),
    }


def get_memory(facts) -> None:
    facts['memory'] = {
        'ram': virtual_memory().total,
    }


def get_facts() -> dict[str, Any]:
    facts: dict[str, Any] = {}
    for f in (get_cpu, get_memory):
        f(facts)
    return facts


def get_sysname() -> str:
    return uname().sysname


__all__ = ('get_facts', 'get_sysname')
