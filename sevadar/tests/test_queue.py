import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from sevadar.queue import InMemoryRenderQueue, RedisRenderQueue


class InMemoryRenderQueueTests(unittest.TestCase):
    def test_fifo(self):
        queue = InMemoryRenderQueue()
        queue.enqueue("a")
        queue.enqueue("b")
        self.assertEqual(queue.pending(), 2)
        self.assertEqual(queue.dequeue(block=False), "a")
        self.assertEqual(queue.dequeue(block=False), "b")
        self.assertIsNone(queue.dequeue(block=False))


class RedisRenderQueueTests(unittest.TestCase):
    @patch("sevadar.queue.redis.Redis.from_url")
    def test_push_and_pop(self, mock_from_url):
        client = MagicMock()
        client.blpop.return_value = (b"sevadar:render-jobs", b"job-1")
        client.lpop.return_value = None
        client.llen.return_value = 3
        mock_from_url.return_value = client

        queue = RedisRenderQueue("redis://localhost:6379/0")
        queue.enqueue("job-1")

        client.rpush.assert_called_once_with("sevadar:render-jobs", "job-1")
        self.assertEqual(queue.dequeue(timeout=2), "job-1")
        client.blpop.assert_called_once_with("sevadar:render-jobs", timeout=2)
        self.assertIsNone(queue.dequeue(block=False))
        self.assertEqual(queue.pending(), 3)

    @patch("sevadar.queue.redis.Redis.from_url")
    def test_reconnects_after_connection_error(self, mock_from_url):
        broken = MagicMock()
        broken.blpop.side_effect = redis_exceptions.ConnectionError("reset")
        healthy = MagicMock()
        mock_from_url.side_effect = [broken, healthy]

        queue = RedisRenderQueue("redis://localhost:6379/0")

        self.assertIsNone(queue.dequeue())
        self.assertIs(queue.client, healthy)


if __name__ == "__main__":
    unittest.main()
