"""Tests for kvbench.backend — connection settings and server statistics."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from kvbench.backend import NetworkSample, RedisBackend, RedisSettings


class TestRedisSettings(unittest.TestCase):
    def test_tcp_address(self) -> None:
        settings = RedisSettings(host="10.0.0.5", port=6380)
        self.assertEqual(settings.address, "tcp://10.0.0.5:6380")
        kwargs = settings.client_kwargs()
        self.assertEqual((kwargs["host"], kwargs["port"]), ("10.0.0.5", 6380))
        self.assertNotIn("unix_socket_path", kwargs)

    def test_unix_socket_when_port_zero(self) -> None:
        settings = RedisSettings(host="/var/run/redis.sock", port=0)
        self.assertEqual(settings.address, "unix:/var/run/redis.sock")
        kwargs = settings.client_kwargs()
        self.assertEqual(kwargs["unix_socket_path"], "/var/run/redis.sock")
        self.assertNotIn("host", kwargs)

    def test_timeouts(self) -> None:
        kwargs = RedisSettings().client_kwargs()
        self.assertEqual(kwargs["socket_timeout"], 0.5)
        self.assertEqual(kwargs["socket_connect_timeout"], 0.5)

    def test_empty_password_is_none(self) -> None:
        self.assertIsNone(RedisSettings(password="").client_kwargs()["password"])

    def test_to_dict_hides_password(self) -> None:
        self.assertNotIn("secret", str(RedisSettings(password="secret").to_dict()))


class TestNetworkSample(unittest.TestCase):
    def test_difference(self) -> None:
        delta = NetworkSample(1500, 9000) - NetworkSample(500, 1000)
        self.assertEqual(delta, NetworkSample(1000, 8000))


class TestRedisBackend(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.backend = RedisBackend(RedisSettings(), client=self.client)

    def test_server_version(self) -> None:
        self.client.info.return_value = {"redis_version": "7.2.4"}
        self.assertEqual(self.backend.server_version(), "7.2.4")
        self.client.info.assert_called_with("server")

    def test_network_sample(self) -> None:
        self.client.info.return_value = {
            "total_net_input_bytes": 1234,
            "total_net_output_bytes": 5678,
        }
        self.assertEqual(self.backend.network_sample(), NetworkSample(1234, 5678))
        self.client.info.assert_called_with("stats")

    def test_network_sample_missing_counters(self) -> None:
        self.client.info.return_value = {}
        self.assertEqual(self.backend.network_sample(), NetworkSample(0, 0))

    def test_close(self) -> None:
        self.backend.close()
        self.client.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
