import socket
from json import dumps

import pytest
from aiohttp import test_utils, web

from radixfleet.monitor import check_fleet, health_targets, main


def closed_port():
    with socket.socket() as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


def health_app():
    async def healthy(request):
        return web.Response(text="ok\n")

    async def syncing(request):
        return web.Response(status=503, text="syncing")

    app = web.Application()
    app.router.add_get('/health', healthy)
    app.router.add_get('/syncing', syncing)
    return app


class TestTargets:
    def test_only_health_enabled_nodes_with_an_address(self):
        nodes = {
            'a': {'public_ip': '10.0.0.1', 'enable_health': 'true'},
            'b': {'public_ip': '10.0.0.2', 'enable_health': 'false'},
            'c': {'public_ip': None, 'enable_health': 'true'},
            'd': {'public_ip': '10.0.0.4', 'enable_health': None},
        }

        assert health_targets(nodes, port=3333, path='/healthz') == {
            'a': 'http://10.0.0.1:3333/healthz',
        }


class TestCheckFleet:
    @pytest.mark.asyncio
    async def test_mixed_results(self):
        async with test_utils.TestServer(health_app()) as server:
            targets = {
                'up': str(server.make_url('/health')),
                'busy': str(server.make_url('/syncing')),
                'gone': f"http://127.0.0.1:{closed_port()}/health",
            }

            report = await check_fleet(targets, timeout=5)

        assert list(report) == ['up', 'busy', 'gone']
        assert report['up']['healthy'] is True
        assert report['up']['body'] == 'ok'
        assert report['busy'] == {
            'url': targets['busy'],
            'status': 503,
            'healthy': False,
            'body': 'syncing',
        }
        assert report['gone']['healthy'] is False
        assert report['gone']['error']


class TestMain:
    @pytest.mark.asyncio
    async def test_healthy_fleet(self, tmp_path, capsys):
        async with test_utils.TestServer(health_app()) as server:
            path = tmp_path / 'resources.json'
            path.write_text(
                dumps(
                    {
                        'node-a': {
                            'public_ip': '127.0.0.1',
                            'tags': {'radixdlt:enable-health-api': 'true'},
                        },
                        'node-b': {'public_ip': '127.0.0.1', 'tags': {}},
                    }
                )
            )

            result = await main(
                'monitor.py',
                str(path),
                RADIXFLEET_HEALTH_PORT=str(server.port),
            )

        assert result is None
        out = capsys.readouterr().out
        assert 'node-a:' in out
        assert 'node-b' not in out

    @pytest.mark.asyncio
    async def test_unhealthy_fleet(self, tmp_path):
        async with test_utils.TestServer(health_app()) as server:
            path = tmp_path / 'resources.json'
            path.write_text(
                dumps(
                    {
                        'node-a': {
                            'public_ip': '127.0.0.1',
                            'tags': {'radixdlt:enable-health-api': 'true'},
                        }
                    }
                )
            )

            result = await main(
                'monitor.py',
                str(path),
                RADIXFLEET_HEALTH_PORT=str(server.port),
                RADIXFLEET_HEALTH_PATH='/syncing',
            )

        assert result == 1

    @pytest.mark.asyncio
    async def test_usage(self):
        assert await main('monitor.py') == 2

    @pytest.mark.asyncio
    async def test_nothing_to_check(self, tmp_path, capsys):
        path = tmp_path / 'resources.json'
        path.write_text(dumps({'node-a': {'public_ip': '127.0.0.1', 'tags': {}}}))

        assert await main('monitor.py', str(path)) is None
        assert "no nodes" in capsys.readouterr().err
