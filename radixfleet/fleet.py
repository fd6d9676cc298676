from collections.abc import Mapping
from typing import Any, Iterator, Optional

from .tags import NODE_FIELDS
from .utils import *

CATEGORIES = ('bootstrap', 'spam', 'validator')


def _without(*excluded: str) -> tuple[str, ...]:
    return tuple(field for field in NODE_FIELDS if field not in excluded)


CATEGORY_FIELDS: Mapping[str, tuple[str, ...]] = frozendict(
    bootstrap=_without('enable_faucet', 'enable_transactions', 'shard_group'),
    spam=_without(
        'dns_subdomain',
        'enable_archive',
        'enable_jmx_exporter',
        'enable_system',
        'enable_version',
        'seed_node',
    ),
    validator=_without('enable_faucet'),
)

NodeTree = Mapping[Any, Mapping[Any, Mapping[Any, Optional[Mapping[str, Any]]]]]


class DuplicateTag(Exception):
    def __init__(self, category: str, tag: str):
        super().__init__(f"{category}: more than one node resolves to tag {tag!r}")
        self.category = category
        self.tag = tag


def tag_name(region: str, node_type: str, index: Any) -> str:
    region = region.replace('-', '_')
    return f"{region}_{node_type}{index}"


def flatten_category(category: str, nodes: NodeTree, region: str) -> Iterator[dict[str, Any]]:
    """Walk group -> node_type -> index in input order and yield one tag
    record per node of the given category.

    Node types other than the category itself are skipped, even though
    callers are expected to hand in pre-categorized input."""
    fields = CATEGORY_FIELDS[category]
    for node_types in nodes.values():
        for node_type, indexed in node_types.items():
            if node_type != category:
                continue
            for index, attributes in indexed.items():
                attributes = attributes or {}
                record: dict[str, Any] = {field: attributes.get(field) for field in fields}
                # node_type is itself one of the fields, the category wins over
                # whatever the attributes carry
                record.update(
                    tag=tag_name(region, node_type, index),
                    node_type=node_type,
                    index=str(index),
                )
                yield record


def aggregate_category(
    category: str,
    nodes: Optional[NodeTree],
    region: str,
    strict: bool = False,
) -> dict[str, dict[str, Any]]:
    if category not in CATEGORY_FIELDS:
        raise ValueError(f"unknown fleet category {category!r}")

    aggregated: dict[str, dict[str, Any]] = {}
    for record in flatten_category(category, nodes or {}, region):
        tag = record['tag']
        if tag in aggregated:
            if strict:
                raise DuplicateTag(category, tag)
            warn(f"{category}: tag {tag!r} is defined more than once, keeping the last one")
        aggregated[tag] = record
    return aggregated


def aggregate_fleet(
    region: str,
    bootstrap_nodes: Optional[NodeTree] = None,
    spam_nodes: Optional[NodeTree] = None,
    validator_nodes: Optional[NodeTree] = None,
    strict: bool = False,
) -> dict[str, dict[str, dict[str, Any]]]:
    inputs = {
        'bootstrap': bootstrap_nodes,
        'spam': spam_nodes,
        'validator': validator_nodes,
    }
    return {
        category: aggregate_category(category, inputs[category], region, strict=strict)
        for category in CATEGORIES
    }


__all__ = (
    'CATEGORIES',
    'CATEGORY_FIELDS',
    'DuplicateTag',
    'aggregate_category',
    'aggregate_fleet',
    'flatten_category',
    'tag_name',
)
