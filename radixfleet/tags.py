"""Round-trip node configuration through cloud resource tags.

Every node attribute lives under the ``radixdlt:`` namespace on the
resource, next to the reserved ``Name`` tag. Encoding and decoding never
fail: whatever is not set comes out as None."""

from collections.abc import Mapping
from typing import Any, Optional

from .utils import *

TAG_PREFIX = 'radixdlt:'
NAME_TAG = 'Name'

# The enable_* flags that switch one of the node's HTTP APIs on are tagged
# with an -api suffix, everything else just swaps underscores for dashes.
_API_FLAGS = frozenset(
    (
        'enable_health',
        'enable_metrics',
        'enable_system',
        'enable_transactions',
        'enable_version',
    )
)

NODE_FIELDS: tuple[str, ...] = (
    'access_type',
    'collect_logs',
    'collect_metrics',
    'data_volume_size',
    'dns_subdomain',
    'docker_image',
    'docker_tag',
    'enable_archive',
    'enable_faucet',
    'enable_health',
    'enable_jmx_exporter',
    'enable_metrics',
    'enable_system',
    'enable_transactions',
    'enable_version',
    'explicit_ami',
    'instance_type',
    'java_opts',
    'log_level',
    'network_id',
    'node_type',
    'restart_policy',
    'seed_node',
    'shard_group',
    'ssh_user',
)


def tag_key(field: str) -> str:
    suffix = field.replace('_', '-')
    if field in _API_FLAGS:
        suffix += '-api'
    return TAG_PREFIX + suffix


TAG_KEYS: Mapping[str, str] = frozendict((field, tag_key(field)) for field in NODE_FIELDS)

ENCODED_FIELDS: tuple[str, ...] = NODE_FIELDS

# The AMI pin only matters when the instance is created and the faucet is
# wired up at provisioning time, so neither is read back from a running node.
DECODED_FIELDS: tuple[str, ...] = tuple(
    field for field in NODE_FIELDS if field not in ('explicit_ami', 'enable_faucet')
)

TagSet = dict[str, Optional[str]]


def encode_node(name: str, attributes: Optional[Mapping[str, Any]]) -> TagSet:
    attributes = attributes or {}
    tags: TagSet = {NAME_TAG: name}
    for field in ENCODED_FIELDS:
        tags[TAG_KEYS[field]] = attributes.get(field)
    return tags


def encode_tags(
    nodes: Mapping[str, Optional[Mapping[str, Any]]],
) -> dict[str, TagSet]:
    """Map node name -> attributes onto node name -> tag set.

    Every known field is emitted for every node, unset ones as None.
    Attributes that aren't in the field table are not carried over."""
    return {name: encode_node(name, attributes) for name, attributes in nodes.items()}


def decode_node(resource: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    resource = resource or {}
    tags = resource.get('tags') or {}
    node: dict[str, Any] = {'public_ip': resource.get('public_ip')}
    for field in DECODED_FIELDS:
        node[field] = tags.get(TAG_KEYS[field])
    return node


def decode_tags(
    resources: Mapping[str, Optional[Mapping[str, Any]]],
) -> dict[str, dict[str, Any]]:
    """Map node name -> resource (public_ip and tags) back onto
    node name -> attributes, with the resource's public_ip carried along."""
    return {name: decode_node(resource) for name, resource in resources.items()}


def _provider_value(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def provider_tags(tags: Mapping[str, Any]) -> dict[str, str]:
    """Render a tag set the way the cloud provider stores it: strings only,
    and no entry at all for unset values."""
    return {key: _provider_value(value) for key, value in tags.items() if value is not None}


__all__ = (
    'DECODED_FIELDS',
    'ENCODED_FIELDS',
    'NAME_TAG',
    'NODE_FIELDS',
    'TAG_KEYS',
    'TAG_PREFIX',
    'TagSet',
    'decode_node',
    'decode_tags',
    'encode_node',
    'encode_tags',
    'provider_tags',
    'tag_key',
)
