import unittest
from unittest.mock import MagicMock, patch

from sevadar.storage import InMemoryStorageClient, S3StorageClient


class StorageTests(unittest.TestCase):
    def test_in_memory_roundtrip(self):
        storage = InMemoryStorageClient()
        storage.put_bytes("posters/a.jpg", b"\xff\xd8", "image/jpeg")
        self.assertEqual(storage.get_bytes("posters/a.jpg"), b"\xff\xd8")
        self.assertEqual(storage.public_url("posters/a.jpg"), "https://example.test/storage/posters/a.jpg")
        with self.assertRaises(FileNotFoundError):
            storage.get_bytes("posters/missing.jpg")

    @patch("sevadar.storage.boto3.client")
    def test_s3_upload_and_long_lived_url(self, mock_client_factory):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://bucket.example/signed"
        mock_client_factory.return_value = client

        storage = S3StorageClient(
            bucket="sevadar",
            region="ap-south-1",
            endpoint="",
            access_key_id="key",
            secret_access_key="secret",
        )
        storage.put_bytes("profiles/u1/x.jpg", b"jpeg", "image/jpeg")
        url = storage.public_url("profiles/u1/x.jpg")

        self.assertIsNone(mock_client_factory.call_args.kwargs["endpoint_url"])
        client.put_object.assert_called_once_with(
            Bucket="sevadar", Key="profiles/u1/x.jpg", Body=b"jpeg", ContentType="image/jpeg"
        )
        self.assertEqual(url, "https://bucket.example/signed")
        self.assertEqual(
            client.generate_presigned_url.call_args.kwargs["ExpiresIn"], 7 * 24 * 3600
        )


if __name__ == "__main__":
    unittest.main()
