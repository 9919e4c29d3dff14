import os
import sys
import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

# Add the parent directory to sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.family_graph.config import config
from src.family_graph.graph_errors import DataAccessError, GraphError
from src.family_graph.snapshot_files import (
    FileCache,
    _snapshot_contexts,
    forget_snapshot,
    get_or_load_snapshot,
    s3_key_for,
    snapshot_namespace,
)

SAMPLE_GED = str(Path(__file__).parent / "sample.ged")


class TestFileCache(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache_dir = Path(self.tmp.name) / "cache"
        self.patcher = patch.object(config, 'SNAPSHOT_CACHE_DIR', str(self.cache_dir))
        self.patcher.start()

    def tearDown(self):
        self.patcher.stop()
        self.tmp.cleanup()

    def test_cache_dir_is_created(self):
        FileCache()
        self.assertTrue(self.cache_dir.exists())

    def test_local_file(self):
        self.assertEqual(FileCache().get_file(SAMPLE_GED), Path(SAMPLE_GED))

    def test_missing_local_file(self):
        with patch.object(config, 'S3_BUCKET', ''):
            self.assertIsNone(FileCache().get_file("/nonexistent/file.ged"))

    def test_s3_download(self):
        with patch.object(config, 'S3_BUCKET', 'test-bucket'), \
                patch('src.family_graph.snapshot_files.boto3.client') as mock_client:
            s3 = MagicMock()
            mock_client.return_value = s3
            cache = FileCache()
            local = cache.get_file("s3://test-bucket/trees/family.ged")
        s3.download_file.assert_called_once_with('test-bucket', 'trees/family.ged', str(local))
        self.assertEqual(local.suffix, ".ged")

    def test_s3_download_failure(self):
        with patch.object(config, 'S3_BUCKET', 'test-bucket'), \
                patch('src.family_graph.snapshot_files.boto3.client') as mock_client:
            s3 = MagicMock()
            s3.download_file.side_effect = ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "download_file")
            mock_client.return_value = s3
            self.assertIsNone(FileCache().get_file("s3://test-bucket/missing.ged"))

    def test_exists_in_s3(self):
        with patch.object(config, 'S3_BUCKET', 'test-bucket'), \
                patch('src.family_graph.snapshot_files.boto3.client') as mock_client:
            s3 = MagicMock()
            mock_client.return_value = s3
            cache = FileCache()
            self.assertTrue(cache.exists_in_s3("s3://test-bucket/family.ged"))

            s3.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
            self.assertFalse(cache.exists_in_s3("s3://test-bucket/family.ged"))

            s3.head_object.side_effect = ClientError({"Error": {"Code": "403"}}, "HeadObject")
            with self.assertRaises(ClientError):
                cache.exists_in_s3("s3://test-bucket/family.ged")

    def test_exists_in_s3_requires_bucket(self):
        with patch.object(config, 'S3_BUCKET', ''):
            with self.assertRaises(GraphError):
                FileCache().exists_in_s3("s3://bucket/family.ged")

    def test_clean_old_files_and_evict(self):
        cache = FileCache()
        old_file = self.cache_dir / "old.ged"
        new_file = self.cache_dir / "new.ged"
        old_file.write_text("old")
        new_file.write_text("new")
        old_time = datetime.now() - timedelta(hours=config.SNAPSHOT_TTL_HOURS + 1)
        os.utime(old_file, (old_time.timestamp(), old_time.timestamp()))

        self.assertEqual(cache.clean_old_files(), 1)
        self.assertFalse(old_file.exists())
        self.assertTrue(new_file.exists())

        cached = cache._get_cached_file_path("s3://bucket/family.ged")
        cached.write_text("0 HEAD")
        cache.evict("s3://bucket/family.ged")
        self.assertFalse(cached.exists())

    def test_s3_key_for(self):
        with patch.object(config, 'S3_BUCKET', 'test-bucket'):
            self.assertEqual(s3_key_for("s3://test-bucket/a/b.ged"), "a/b.ged")


class TestSnapshotRegistry(unittest.TestCase):

    def setUp(self):
        _snapshot_contexts.clear()

    def tearDown(self):
        _snapshot_contexts.clear()

    def test_snapshot_is_loaded_once(self):
        first = get_or_load_snapshot(SAMPLE_GED)
        self.assertIs(get_or_load_snapshot(SAMPLE_GED), first)
        self.assertEqual(first.source_file, SAMPLE_GED)
        self.assertEqual(first.cache_namespace, snapshot_namespace(SAMPLE_GED))
        self.assertEqual(len(first.person_store.get_all()), 6)

        self.assertTrue(forget_snapshot(SAMPLE_GED))
        self.assertFalse(forget_snapshot(SAMPLE_GED))
        self.assertIsNot(get_or_load_snapshot(SAMPLE_GED), first)

    def test_namespaces_differ_per_file(self):
        self.assertNotEqual(snapshot_namespace("a.ged"), snapshot_namespace("b.ged"))
        self.assertTrue(snapshot_namespace("a.ged").startswith("family:"))

    def test_missing_snapshot(self):
        with patch.object(config, 'S3_BUCKET', ''):
            with self.assertRaises(DataAccessError) as cm:
                get_or_load_snapshot("/nonexistent/file.ged")
        self.assertEqual(cm.exception.error_code, "FILE_NOT_FOUND")
        self.assertNotIn("/nonexistent/file.ged", _snapshot_contexts)


if __name__ == '__main__':
    unittest.main()
