import unittest
from unittest.mock import MagicMock

from backend.image_upload import ImageUploader, ImageUploadError
from backend.storage import CosStorageClient, InMemoryStorageClient
from shared.site_content import PendingUpload


class ImageUploaderTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient()
        self.uploader = ImageUploader(self.storage, prefix="/images/")

    def test_upload_returns_public_url(self):
        url = self.uploader.upload(
            PendingUpload(filename="Front Porch.jpg", content=b"jpeg", content_type="image/jpeg")
        )

        (path,) = self.storage.stored_objects
        self.assertTrue(path.startswith("images/"))
        self.assertTrue(path.endswith("-Front-Porch.jpg"))
        self.assertEqual(url, f"{self.storage.base_url}/{path}")
        self.assertEqual(self.storage.get_bytes(path), b"jpeg")

    def test_unsafe_filename_is_replaced(self):
        self.uploader.upload(PendingUpload(filename="../..", content=b"x"))
        (path,) = self.storage.stored_objects
        self.assertTrue(path.endswith("-image"))
        self.assertNotIn("..", path)

    def test_empty_file_is_rejected(self):
        with self.assertRaisesRegex(ImageUploadError, "empty"):
            self.uploader.upload(PendingUpload(filename="a.png", content=b""))
        self.assertEqual(self.storage.stored_objects, {})

    def test_storage_errors_are_wrapped(self):
        storage = MagicMock()
        storage.upload_bytes.side_effect = IOError("bucket unavailable")
        uploader = ImageUploader(storage)

        with self.assertRaisesRegex(ImageUploadError, "bucket unavailable"):
            uploader.upload(PendingUpload(filename="a.png", content=b"png"))

    def test_missing_object(self):
        with self.assertRaises(FileNotFoundError):
            self.storage.get_bytes("images/missing.png")


class CosStorageClientTests(unittest.TestCase):
    def _client(self, **overrides):
        settings = dict(
            bucket="site-1250000000",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="key",
            secret_access_key="secret",
        )
        settings.update(overrides)
        return CosStorageClient(**settings)

    def test_public_url_uses_bucket_host(self):
        self.assertEqual(
            self._client().public_url("images/a.png"),
            "https://site-1250000000.cos.ap-guangzhou.myqcloud.com/images/a.png",
        )

    def test_public_url_prefers_cdn(self):
        client = self._client(public_base_url="https://cdn.example.com/")
        self.assertEqual(
            client.public_url("images/a.png"), "https://cdn.example.com/images/a.png"
        )

    def test_upload_bytes_sets_content_type(self):
        client = self._client()
        client._client = MagicMock()

        client.upload_bytes("images/a.png", b"png", "image/png")

        client._client.put_object.assert_called_once_with(
            Bucket="site-1250000000",
            Key="images/a.png",
            Body=b"png",
            ContentType="image/png",
        )


if __name__ == "__main__":
    unittest.main()
