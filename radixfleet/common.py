import builtins as builtins_module
from collections.abc import Mapping
from json import loads as loads_json
from pathlib import Path
from typing import Any, Union
from weakref import ref as weakref

from .fleet import CATEGORIES
from .utils import *

_builtins = vars(builtins_module)


class ConfigError(Exception):
    pass


def load_config(filename: Union[Path, str], **context) -> dict[str, Any]:
    """Execute a Python configuration file and return its public variables.

    Files can pull in other files with include(), relative to the file
    doing the including. Anything passed as context is visible to the
    configuration as a predefined variable."""

    builtins: dict[str, Any] = subdict(__file__=None)
    builtins.update(_builtins)
    weak_builtins = weakref(builtins)

    variables: dict[str, Any] = subdict(__builtins__=builtins)
    variables.update(context)
    weak_variables = weakref(variables)

    def include(filename):
        builtins = weak_builtins()
        variables = weak_variables()

        old_file = builtins['__file__']
        new_file = str(Path(old_file or '.').parent / filename)
        try:
            content = get_file(new_file)
        except FileNotFoundError as e:
            raise ConfigError(f"{new_file}: no such configuration file") from e
        try:
            builtins['__file__'] = new_file
            code = compile(content, new_file, 'exec')
            exec(code, variables)
        finally:
            builtins['__file__'] = old_file

    builtins['include'] = include

    include(filename)

    return {
        name: value
        for name, value in variables.items()
        if not name.startswith('_') and name not in context
    }


def load_json(filename: Union[Path, str]) -> Any:
    try:
        return loads_json(get_file(filename))
    except FileNotFoundError as e:
        raise ConfigError(f"{filename}: no such file") from e
    except ValueError as e:
        raise ConfigError(f"{filename}: {e}") from e


def _mapping(config: Mapping[str, Any], key: str, filename) -> Mapping:
    value = config.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{filename}: {key} must be a mapping, not {type(value).__name__}")
    return value


def load_fleet(filename: Union[Path, str]) -> dict[str, Any]:
    """Load a fleet definition.

    A fleet file sets `region`, any of `bootstrap_nodes`, `spam_nodes`
    and `validator_nodes` (group -> node type -> index -> attributes),
    optionally `nodes` (name -> attributes) for plain tag encoding, and
    `strict_tags` to turn duplicate aggregated tags into an error."""

    config = load_config(filename)

    fleet: dict[str, Any] = {
        'region': config.get('region'),
        'nodes': _mapping(config, 'nodes', filename),
        'strict_tags': bool(config.get('strict_tags', False)),
    }
    for category in CATEGORIES:
        key = f"{category}_nodes"
        fleet[key] = _mapping(config, key, filename)

    region = fleet['region']
    if region is not None and not isinstance(region, str):
        raise ConfigError(f"{filename}: region must be a string")

    return fleet


__all__ = ('ConfigError', 'load_config', 'load_fleet', 'load_json')
