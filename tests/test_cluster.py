from subprocess import CompletedProcess
from types import SimpleNamespace

import pytest
from yaml import safe_load

import radixfleet.cluster
import radixfleet.teardown
from radixfleet.cluster import (
    cluster_settings,
    generate_cluster,
    main,
    node_env,
    plan_cluster,
)
from radixfleet.common import ConfigError
from radixfleet.teardown import COMPOSE_FILENAME
from radixfleet.teardown import main as teardown


@pytest.fixture(autouse=True)
def memory(monkeypatch):
    monkeypatch.setattr(
        radixfleet.cluster,
        'virtual_memory',
        lambda: SimpleNamespace(total=10 * 1073741824),
    )


class TestPlan:
    def test_local_layout(self):
        nodes = plan_cluster(2, 2)

        assert [node['name'] for node in nodes] == [
            'validator-0-0',
            'validator-0-1',
            'validator-1-0',
            'validator-1-1',
        ]
        assert [node['p2p_port'] for node in nodes] == [9000, 9001, 9002, 9003]
        assert [node['rpc_port'] for node in nodes] == [8080, 8081, 8082, 8083]
        assert all(node['host'] is None for node in nodes)

    def test_hosts_round_robin(self):
        nodes = plan_cluster(1, 3, hosts=['a', 'b'])

        assert [node['host'] for node in nodes] == ['a', 'b', 'a']

    def test_env_lists_every_other_node_as_peer(self):
        nodes = plan_cluster(1, 3)

        env = str(node_env(nodes[1], nodes, 1))

        assert "NODE_NAME=validator-0-1\n" in env
        assert "P2P_PORT=9001\n" in env
        assert "PEERS=validator-0-0:9000,validator-0-2:9002\n" in env


class TestSettings:
    def test_defaults(self):
        settings = cluster_settings({})

        assert settings['num_shards'] == 2
        assert settings['validators_per_shard'] == 4
        assert settings['hosts'] is None

    @pytest.mark.parametrize(
        'config',
        [
            {'num_shards': 0},
            {'validators_per_shard': 'four'},
            {'hosts': 'single-host'},
            {'hosts': []},
            {'spammer': ['tps', 10]},
        ],
    )
    def test_invalid(self, config):
        with pytest.raises(ConfigError):
            cluster_settings(config)


class TestGenerate:
    def test_local_cluster(self, tmp_path):
        config = {'num_shards': 2, 'validators_per_shard': 1, 'spammer': {'tps': 50}}

        (compose_file,) = generate_cluster(config, tmp_path / COMPOSE_FILENAME)

        assert compose_file == tmp_path / COMPOSE_FILENAME
        document = safe_load(compose_file.read_text())
        services = document['services']
        assert list(services) == ['validator-0-0', 'validator-1-0', 'spammer']
        assert services['validator-0-0']['env_file'] == ['env/validator-0-0.env']
        assert services['validator-1-0']['ports'] == ['9001:9001', '8081:8081']
        # 10 GiB shared between two validators, the spammer and the host
        assert services['validator-0-0']['mem_limit'] == '2560m'
        assert set(document['volumes']) == {'validator-0-0-data', 'validator-1-0-data'}

        command = services['spammer']['command']
        endpoints = command[command.index('--endpoints') + 1]
        assert endpoints == 'http://validator-0-0:8080,http://validator-1-0:8081'
        assert command[command.index('--tps') + 1] == '50'
        assert services['spammer']['depends_on'] == ['validator-0-0', 'validator-1-0']

        assert (tmp_path / 'env' / 'validator-1-0.env').is_file()

    def test_compose_file_is_block_yaml(self, tmp_path):
        config = {'num_shards': 1, 'validators_per_shard': 1}

        (compose_file,) = generate_cluster(config, tmp_path / COMPOSE_FILENAME)

        text = compose_file.read_text()
        assert text.startswith("services:\n")
        assert "  validator-0-0:\n" in text

    def test_no_spammer_unless_configured(self, tmp_path):
        config = {'num_shards': 1, 'validators_per_shard': 1}

        (compose_file,) = generate_cluster(config, tmp_path / COMPOSE_FILENAME)

        assert 'spammer' not in safe_load(compose_file.read_text())['services']

    def test_multi_host(self, tmp_path):
        config = {
            'num_shards': 1,
            'validators_per_shard': 3,
            'hosts': ['10.0.0.1', '10.0.0.2'],
            'spammer': {},
        }

        written = generate_cluster(config, tmp_path / COMPOSE_FILENAME)

        assert written == [
            tmp_path / '10.0.0.1' / COMPOSE_FILENAME,
            tmp_path / '10.0.0.2' / COMPOSE_FILENAME,
        ]
        first = safe_load(written[0].read_text())['services']
        second = safe_load(written[1].read_text())['services']
        assert list(first) == ['validator-0-0', 'validator-0-2', 'spammer']
        assert list(second) == ['validator-0-1']
        assert 'mem_limit' not in second['validator-0-1']
        env = (tmp_path / '10.0.0.2' / 'env' / 'validator-0-1.env').read_text()
        assert "PEERS=10.0.0.1:9000,10.0.0.1:9002\n" in env


class TestMain:
    def test_writes_next_to_program(self, tmp_path, capsys):
        config = tmp_path / 'cluster.py'
        config.write_text("num_shards = 1\nvalidators_per_shard = 2\n")

        assert main(str(tmp_path / 'generate-cluster.py'), str(config)) is None

        assert (tmp_path / COMPOSE_FILENAME).is_file()
        assert f"Wrote {tmp_path / COMPOSE_FILENAME}" in capsys.readouterr().out

    def test_bad_config(self, tmp_path, capsys):
        config = tmp_path / 'cluster.py'
        config.write_text("num_shards = -1\n")

        assert main(str(tmp_path / 'generate-cluster.py'), str(config)) == 1
        assert "num_shards" in capsys.readouterr().err

    def test_teardown_finds_overridden_compose_file(self, tmp_path, monkeypatch, capsys):
        calls = []

        def run(command, **kwargs):
            calls.append(list(command))
            return CompletedProcess(command, 0)

        monkeypatch.setattr(radixfleet.teardown, 'run', run)
        compose_file = tmp_path / 'cluster.yml'
        env = {'RADIXFLEET_COMPOSE_FILE': str(compose_file)}

        assert main('generate-cluster.py', None, **env) is None
        assert teardown('stop-cluster.py', **env) is None

        assert compose_file.is_file()
        assert not (tmp_path / COMPOSE_FILENAME).exists()
        assert calls == [
            ['docker', 'compose', '-f', str(compose_file), 'down', '-v', '--remove-orphans']
        ]
