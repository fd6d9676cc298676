import sys
from collections.abc import Mapping
from json import dump as dump_json, dumps as dumps_json
from re import compile as regcomp
from typing import Any, Optional

from .common import ConfigError, load_fleet, load_json
from .fleet import DuplicateTag, aggregate_fleet
from .formats import JSON
from .tags import decode_tags, encode_tags, provider_tags
from .utils import *

_isplainkey = regcomp(r'[0-9a-zA-Z_]+(?:-[0-9a-zA-Z_])*').fullmatch


def ghetto_yaml(o, _indent="", _sep=''):
    if isinstance(o, dict) and len(o):
        if _sep:
            print()
        for key, value in o.items():
            print(
                _indent,
                key if _isplainkey(key) else dumps_json(key, ensure_ascii=False),
                ":",
                sep="",
                end="",
            )
            ghetto_yaml(
                value, _indent if isinstance(value, list) else _indent + "  ", _sep=" "
            )
    elif isinstance(o, list) and len(o):
        if _sep:
            print()
        for value in o:
            print(_indent, "-", sep="", end="")
            ghetto_yaml(value, _indent + "  ", _sep=" ")
    elif isinstance(o, str) and _sep and "\n" in o:
        print(_sep, "|", sep="")
        for line in o.splitlines():
            print(_indent, line, sep="")
    else:
        print(_sep, end="")
        dump_json(o, sys.stdout, ensure_ascii=False)
        print()


def unwrap_output(document: Any) -> Any:
    """Accept both raw values and `terraform output -json` wrappers."""
    if isinstance(document, Mapping) and 'value' in document and 'type' in document:
        return document['value']
    return document


def encode_command(filename) -> dict[str, Any]:
    return encode_tags(load_fleet(filename)['nodes'])


def provider_command(filename) -> dict[str, Any]:
    return {name: provider_tags(tags) for name, tags in encode_command(filename).items()}


def decode_command(filename) -> dict[str, Any]:
    resources = unwrap_output(load_json(filename))
    if not isinstance(resources, Mapping):
        raise ConfigError(f"{filename}: expected a mapping of node name to resource")
    return decode_tags(resources)


def aggregate_command(filename) -> dict[str, Any]:
    fleet = load_fleet(filename)
    region = fleet['region']
    if not region:
        raise ConfigError(f"{filename}: region is not set")
    return aggregate_fleet(
        region,
        bootstrap_nodes=fleet['bootstrap_nodes'],
        spam_nodes=fleet['spam_nodes'],
        validator_nodes=fleet['validator_nodes'],
        strict=fleet['strict_tags'],
    )


COMMANDS = {
    'encode': encode_command,
    'provider': provider_command,
    'decode': decode_command,
    'aggregate': aggregate_command,
}


def usage(procname) -> None:
    warn(f"usage: {procname} {{{'|'.join(COMMANDS)}}} FILE")


def main(procname, command=None, filename=None, *args, **env) -> Optional[int]:
    handler = COMMANDS.get(command)
    if handler is None or filename is None or args:
        usage(procname)
        return 2

    try:
        result = handler(filename)
    except (ConfigError, DuplicateTag) as e:
        warn(e)
        return 1

    if env.get('RADIXFLEET_OUTPUT') == 'json':
        print(JSON(result), end="")
    else:
        ghetto_yaml(result)

    return None


__all__ = ('COMMANDS', 'ghetto_yaml', 'main')
