# Cluster layout read by bin/generate-cluster.py. The generated files
# end up next to the program (or next to $RADIXFLEET_COMPOSE_FILE).

num_shards = 2
validators_per_shard = 4
image = 'hyperscale-node:latest'

# Leave unset for a local cluster. With hosts, validators are spread
# round-robin and every host gets its own directory of files to copy over.
# hosts = ['10.0.1.10', '10.0.1.11']

spammer = {
    'tps': 1000,
    'duration': '5m',
    'cross_shard_ratio': 0.3,
}
