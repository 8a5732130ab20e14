"""URL 校验与下载测试"""

from __future__ import annotations

import hashlib
import urllib.error
from pathlib import Path

import pytest

from modpac.core.exceptions import FetchFailure
from modpac.utils import net
from modpac.utils.net import download, parse_sha1, validate_url_scheme, verify_sha1


class TestValidateUrlScheme:
    def test_http_ok(self) -> None:
        validate_url_scheme("http://repo.example.com/maven2/")

    def test_https_ok(self) -> None:
        validate_url_scheme("https://repo1.maven.org/maven2/")

    def test_file_rejected(self) -> None:
        with pytest.raises(FetchFailure, match="不受支持"):
            validate_url_scheme("file:///etc/passwd")

    def test_empty_scheme_rejected(self) -> None:
        with pytest.raises(FetchFailure, match="不受支持"):
            validate_url_scheme("/local/path")

    def test_context_in_error(self) -> None:
        with pytest.raises(FetchFailure, match="guava-18.0.jar"):
            validate_url_scheme("ftp://x/guava-18.0.jar", context="guava-18.0.jar")


class _Response:
    def __init__(self, data: bytes) -> None:
        self._chunks = [data, b""]

    def read(self, size: int) -> bytes:
        return self._chunks.pop(0)

    def __enter__(self) -> _Response:
        return self

    def __exit__(self, *exc: object) -> None:
        return None


class TestDownload:
    def test_writes_dest(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[tuple[str, int]] = []

        def fake_urlopen(url: str, timeout: int) -> _Response:
            seen.append((url, timeout))
            return _Response(b"jar-bytes")

        monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
        dest = tmp_path / "g" / "a-1.0.jar"
        assert download("https://repo.example.com/g/a-1.0.jar", dest, timeout=5) == dest
        assert dest.read_bytes() == b"jar-bytes"
        assert seen == [("https://repo.example.com/g/a-1.0.jar", 5)]
        assert not (tmp_path / "g" / "a-1.0.jar.part").exists()

    def test_failure_leaves_nothing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_urlopen(url: str, timeout: int) -> _Response:
            raise urllib.error.URLError("connection refused")

        monkeypatch.setattr(net.urllib.request, "urlopen", fake_urlopen)
        dest = tmp_path / "a-1.0.jar"
        with pytest.raises(FetchFailure, match="下载失败"):
            download("https://repo.example.com/a-1.0.jar", dest)
        assert list(tmp_path.iterdir()) == []

    def test_rejects_scheme_before_network(self, tmp_path: Path) -> None:
        with pytest.raises(FetchFailure, match="不受支持"):
            download("file:///etc/passwd", tmp_path / "passwd")


class TestSha1:
    def test_parse_forms(self) -> None:
        digest = "A" * 40
        assert parse_sha1(digest) == "a" * 40
        assert parse_sha1(f"{digest}  guava-18.0.jar\n") == "a" * 40
        assert parse_sha1("") is None
        assert parse_sha1("<html>404</html>") is None

    def test_verify(self, tmp_path: Path) -> None:
        jar = tmp_path / "a-1.0.jar"
        jar.write_bytes(b"jar-bytes")
        verify_sha1(jar, hashlib.sha1(b"jar-bytes").hexdigest())
        with pytest.raises(FetchFailure, match="校验和不匹配 a-1.0.jar"):
            verify_sha1(jar, "0" * 40)
