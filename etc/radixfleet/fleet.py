# Fleet definition read by bin/ctl.py. This is plain Python: anything
# that isn't prefixed with an underscore is a setting.

region = 'eu-west-1'

# Tag encoding: node name -> attributes. Unset attributes are emitted as
# empty (null) tags, so only list what differs per node.
nodes = {
    'node-a': {
        'enable_health': 'true',
        'dns_subdomain': 'node-a',
    },
}

_common = {
    'docker_image': 'hyperscale-node',
    'docker_tag': 'latest',
    'collect_metrics': 'true',
}

# Aggregation: group -> node type -> index -> attributes.
# Node types that don't match the category are ignored.
bootstrap_nodes = {
    'core': {
        'bootstrap': {
            0: dict(_common, seed_node='true'),
        },
    },
}

spam_nodes = {
    'load': {
        'spam': {
            0: dict(_common, enable_faucet='true'),
        },
    },
}

validator_nodes = {
    'core': {
        'validator': {
            index: dict(_common, shard_group=str(index % 2), enable_health='true')
            for index in range(4)
        },
    },
}

# Refuse to run when two nodes end up with the same tag instead of
# keeping the last one.
strict_tags = True
