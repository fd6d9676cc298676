import asyncio
from collections.abc import Mapping
from typing import Any, Optional

import aiohttp

from .common import ConfigError, load_json
from .ctl import ghetto_yaml, unwrap_output
from .tags import decode_tags
from .utils import *

DEFAULT_PORT = 8080
DEFAULT_PATH = '/health'
DEFAULT_TIMEOUT = 5.0


def health_targets(
    nodes: Mapping[str, Mapping[str, Any]],
    port: int = DEFAULT_PORT,
    path: str = DEFAULT_PATH,
) -> dict[str, str]:
    """Health URLs of the decoded nodes that expose the health API."""
    return {
        name: f"http://{node['public_ip']}:{port}{path}"
        for name, node in nodes.items()
        if node.get('public_ip') and is_enabled(node.get('enable_health'))
    }


async def check_health(session: aiohttp.ClientSession, url: str) -> dict[str, Any]:
    async with session.get(url) as response:
        body = await response.text()
        return {
            'url': url,
            'status': response.status,
            'healthy': response.status == 200,
            'body': body.strip(),
        }


async def check_fleet(
    targets: Mapping[str, str],
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, dict[str, Any]]:
    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
    ) as session:
        results = await parallel(check_health(session, url) for url in targets.values())

    report = {}
    for (name, url), result in zip(targets.items(), results):
        if isinstance(result, asyncio.TimeoutError):
            result = {'url': url, 'healthy': False, 'error': f"timed out after {timeout}s"}
        elif isinstance(result, Exception):
            error = str(result) or type(result).__name__
            result = {'url': url, 'healthy': False, 'error': error}
        report[name] = result
    return report


async def main(procname, resources_file=None, *args, **env) -> Optional[int]:
    if resources_file is None or args:
        warn(f"usage: {procname} RESOURCES.json")
        return 2

    try:
        resources = unwrap_output(load_json(resources_file))
        if not isinstance(resources, Mapping):
            raise ConfigError(f"{resources_file}: expected a mapping of node name to resource")
        port = int(env.get('RADIXFLEET_HEALTH_PORT', DEFAULT_PORT))
        timeout = float(env.get('RADIXFLEET_HEALTH_TIMEOUT', DEFAULT_TIMEOUT))
    except (ConfigError, ValueError) as e:
        warn(e)
        return 1

    targets = health_targets(
        decode_tags(resources),
        port=port,
        path=env.get('RADIXFLEET_HEALTH_PATH', DEFAULT_PATH),
    )
    if not targets:
        warn("no nodes with the health API enabled")
        return None

    report = await check_fleet(targets, timeout=timeout)
    ghetto_yaml(report)

    if all(result['healthy'] for result in report.values()):
        return None
    return 1


__all__ = ('check_fleet', 'check_health', 'health_targets', 'main')
