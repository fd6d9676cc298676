"""Generate Docker Compose and per-node environment files for a cluster of
validators, either on this machine or spread over several hosts.

Copying the generated files to remote hosts is left to the operator."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Sequence

from psutil import virtual_memory

from .common import ConfigError, load_config
from .formats import ComposeFile, ShellEnv
from .teardown import compose_file_path
from .utils import *

DEFAULTS = frozendict(
    num_shards=2,
    validators_per_shard=4,
    image='hyperscale-node:latest',
    hosts=None,
    p2p_base_port=9000,
    rpc_base_port=8080,
    mem_limit=None,
    spammer=None,
)

SPAMMER_DEFAULTS = frozendict(
    tps=1000,
    duration='60s',
    cross_shard_ratio=0.3,
)


def cluster_settings(config: Mapping[str, Any]) -> dict[str, Any]:
    settings = dict(DEFAULTS)
    settings.update((key, value) for key, value in config.items() if key in DEFAULTS)

    for key in ('num_shards', 'validators_per_shard', 'p2p_base_port', 'rpc_base_port'):
        value = settings[key]
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigError(f"{key} must be a positive integer, not {value!r}")

    hosts = settings['hosts']
    if hosts is not None:
        if isinstance(hosts, str) or not hosts:
            raise ConfigError("hosts must be a non-empty list of host names")
        settings['hosts'] = list(hosts)

    spammer = settings['spammer']
    if spammer is not None and not isinstance(spammer, Mapping):
        raise ConfigError(f"spammer must be a mapping, not {type(spammer).__name__}")

    return settings


def plan_cluster(
    num_shards: int,
    validators_per_shard: int,
    hosts: Optional[Sequence[str]] = None,
    p2p_base_port: int = 9000,
    rpc_base_port: int = 8080,
) -> list[dict[str, Any]]:
    """Lay out validators shard by shard, assigning ports in sequence and
    hosts round-robin."""
    nodes: list[dict[str, Any]] = []
    for shard in range(num_shards):
        for index in range(validators_per_shard):
            number = len(nodes)
            nodes.append(
                {
                    'name': f"validator-{shard}-{index}",
                    'shard': shard,
                    'index': index,
                    'host': hosts[number % len(hosts)] if hosts else None,
                    'p2p_port': p2p_base_port + number,
                    'rpc_port': rpc_base_port + number,
                }
            )
    return nodes


def node_address(node: Mapping[str, Any], port_key: str = 'p2p_port') -> str:
    return f"{node['host'] or node['name']}:{node[port_key]}"


def node_env(
    node: Mapping[str, Any],
    nodes: Sequence[Mapping[str, Any]],
    num_shards: int,
) -> ShellEnv:
    return ShellEnv(
        NODE_NAME=node['name'],
        SHARD=node['shard'],
        VALIDATOR_INDEX=node['index'],
        NUM_SHARDS=num_shards,
        LISTEN_ADDR='0.0.0.0',
        P2P_PORT=node['p2p_port'],
        RPC_PORT=node['rpc_port'],
        PEERS=[node_address(peer) for peer in nodes if peer is not node],
    )


def default_mem_limit(containers: int) -> str:
    # Leave one share for the host itself.
    share = virtual_memory().total // (containers + 1)
    return f"{max(share // 1048576, 256)}m"


def spammer_service(
    spammer: Mapping[str, Any],
    targets: Sequence[Mapping[str, Any]],
    depends_on: Sequence[str],
    num_shards: int,
    image: str,
) -> dict[str, Any]:
    options = dict(SPAMMER_DEFAULTS)
    options.update(spammer)

    # One endpoint per shard is all the spammer needs.
    endpoints = [
        f"http://{node_address(node, 'rpc_port')}" for node in targets if node['index'] == 0
    ]
    return {
        'image': options.get('image', image),
        'container_name': 'spammer',
        'command': [
            'run',
            '--endpoints',
            ','.join(endpoints),
            '--num-shards',
            str(num_shards),
            '--tps',
            str(options['tps']),
            '--duration',
            str(options['duration']),
            '--cross-shard-ratio',
            str(options['cross_shard_ratio']),
            '--wait-ready',
        ],
        'depends_on': list(depends_on),
    }


def compose_document(
    settings: Mapping[str, Any],
    nodes: Sequence[Mapping[str, Any]],
    spammer_targets: Optional[Sequence[Mapping[str, Any]]] = None,
) -> ComposeFile:
    """Compose services for the given nodes; env files are expected in env/
    next to the compose file.

    The spammer service is only added when the settings configure one and
    there are spammer_targets to point it at."""
    image = settings['image']
    spammer = settings['spammer'] if spammer_targets else None
    mem_limit = settings['mem_limit']
    if mem_limit is None and settings['hosts'] is None:
        mem_limit = default_mem_limit(len(nodes) + (spammer is not None))

    services: dict[str, Any] = {}
    volumes: dict[str, Any] = {}
    for node in nodes:
        name = node['name']
        p2p_port = node['p2p_port']
        rpc_port = node['rpc_port']
        service = {
            'image': image,
            'container_name': name,
            'env_file': [f"env/{name}.env"],
            'ports': [f"{p2p_port}:{p2p_port}", f"{rpc_port}:{rpc_port}"],
            'volumes': [f"{name}-data:/data"],
            'restart': 'unless-stopped',
        }
        if mem_limit is not None:
            service['mem_limit'] = mem_limit
        services[name] = service
        volumes[f"{name}-data"] = {}

    if spammer is not None:
        services['spammer'] = spammer_service(
            spammer,
            spammer_targets,
            [node['name'] for node in nodes],
            settings['num_shards'],
            image,
        )

    return ComposeFile(services=services, volumes=volumes)


def write_cluster(compose_file: Path, compose: ComposeFile, envs: Mapping[str, ShellEnv]) -> Path:
    env_dir = compose_file.parent / 'env'
    env_dir.mkdir(parents=True, exist_ok=True)
    for name, env in envs.items():
        put_file(str(env), env_dir / f"{name}.env", 'w')
    put_file(str(compose), compose_file, 'w')
    return compose_file


def generate_cluster(config: Mapping[str, Any], compose_file: Path) -> list[Path]:
    """Write the compose file(s) and env files, return the compose files.

    A local cluster is written to `compose_file` itself, a multi-host
    cluster gets a file of the same name in one subdirectory per host. The
    spammer runs alongside the first host's validators."""
    settings = cluster_settings(config)
    num_shards = settings['num_shards']
    nodes = plan_cluster(
        num_shards,
        settings['validators_per_shard'],
        hosts=settings['hosts'],
        p2p_base_port=settings['p2p_base_port'],
        rpc_base_port=settings['rpc_base_port'],
    )
    envs = {node['name']: node_env(node, nodes, num_shards) for node in nodes}

    hosts = settings['hosts']
    if hosts is None:
        return [write_cluster(compose_file, compose_document(settings, nodes, nodes), envs)]

    written = []
    for number, host in enumerate(dict.fromkeys(hosts)):
        host_nodes = [node for node in nodes if node['host'] == host]
        compose = compose_document(
            settings,
            host_nodes,
            nodes if number == 0 else None,
        )
        host_envs = {node['name']: envs[node['name']] for node in host_nodes}
        host_file = compose_file.parent / host / compose_file.name
        written.append(write_cluster(host_file, compose, host_envs))
    return written


def main(procname, config_file=None, *args, **env) -> Optional[int]:
    try:
        config = load_config(config_file) if config_file else {}
        written = generate_cluster(config, compose_file_path(procname, env))
    except ConfigError as e:
        warn(e)
        return 1

    for compose_file in written:
        print(f"Wrote {compose_file}")
    return None


__all__ = (
    'DEFAULTS',
    'cluster_settings',
    'compose_document',
    'generate_cluster',
    'main',
    'node_env',
    'plan_cluster',
)
