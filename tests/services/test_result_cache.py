"""Tests for the content-addressed result cache."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from domain.errors import CacheIOError
from services.result_cache import ResultCache, result_key


class TestResultKey:
    """Tests for result_key function."""

    def test_deterministic(self):
        a = result_key(5, -34.6037, -58.3816, 'pin', 'center', 1)
        b = result_key(5, -34.6037, -58.3816, 'pin', 'center', 1)
        assert a == b
        assert len(a) == 64

    def test_scale_changes_key(self):
        assert result_key(5, -34.6037, -58.3816, 'pin', 'center', 1) != result_key(
            5, -34.6037, -58.3816, 'pin', 'center', 2
        )

    def test_fields_do_not_run_together(self):
        assert result_key(5, 1.0, 23.0, None, None, 1) != result_key(51, 23.0, 1.0, None, None, 1)
        assert result_key(5, 12.0, 3.0, None, None, 1) != result_key(51, 2.0, 3.0, None, None, 1)

    def test_none_differs_from_empty(self):
        assert result_key(5, 0.0, 0.0, None, None, 1) != result_key(5, 0.0, 0.0, '', '', 1)

    def test_marker_and_anchor_matter(self):
        base = result_key(5, 0.0, 0.0, 'pin', None, 1)
        assert base != result_key(5, 0.0, 0.0, 'pin', 'center', 1)
        assert base != result_key(5, 0.0, 0.0, 'flag', None, 1)


class TestResultCache:
    """Tests for ResultCache class."""

    def test_creates_directory(self, tmp_path):
        cache_dir = tmp_path / 'nested' / 'cache'
        ResultCache(cache_dir)
        assert cache_dir.is_dir()

    def test_write_read_exists(self, tmp_path):
        cache = ResultCache(tmp_path, 'png')
        digest = cache.key(3, 1.0, 2.0, 'pin', None, 1)
        assert not cache.exists(digest)
        path = cache.write(digest, b'image-bytes')
        assert path == tmp_path / f'{digest}.png'
        assert cache.exists(digest)
        assert cache.read(digest) == b'image-bytes'

    def test_no_temp_files_left(self, tmp_path):
        cache = ResultCache(tmp_path)
        cache.write('abc', b'1')
        cache.write('abc', b'2')
        assert [p.name for p in tmp_path.iterdir()] == ['abc.png']
        assert cache.read('abc') == b'2'

    def test_extension(self, tmp_path):
        cache = ResultCache(tmp_path, '.jpg')
        assert cache.path_for('abc').name == 'abc.jpg'

    def test_read_missing(self, tmp_path):
        with pytest.raises(CacheIOError):
            ResultCache(tmp_path).read('missing')

    def test_write_failure(self, tmp_path):
        cache = ResultCache(tmp_path)
        with patch('services.result_cache.tempfile.mkstemp', side_effect=OSError('disk full')):
            with pytest.raises(CacheIOError):
                cache.write('abc', b'data')
        assert not cache.exists('abc')

    def test_rename_failure_cleans_temp(self, tmp_path):
        cache = ResultCache(tmp_path)
        with patch('services.result_cache.os.replace', side_effect=OSError('denied')):
            with pytest.raises(CacheIOError):
                cache.write('abc', b'data')
        assert list(tmp_path.iterdir()) == []

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_bytes(b'')
        with pytest.raises(CacheIOError):
            ResultCache(blocker / 'cache')
