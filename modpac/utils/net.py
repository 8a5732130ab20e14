"""远程 Maven 仓库下载"""

from __future__ import annotations

import hashlib
import logging
import re
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urlparse

from modpac.core.exceptions import FetchFailure

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http", "https")

_SHA1_RE = re.compile(r"\b([0-9a-fA-F]{40})\b")


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """远程仓库只接受 http(s) 地址，配置里写错成 file:// 等直接拒绝"""
    scheme = urlparse(url).scheme
    if scheme in REMOTE_SCHEMES:
        return
    where = f" ({context})" if context else ""
    raise FetchFailure(f"远程地址协议 '{scheme}' 不受支持{where}: {url}")


def download(url: str, dest: Path, *, timeout: int = 60) -> Path:
    """下载 url 到 dest，先写临时文件再改名，失败时不留下半个文件"""
    validate_url_scheme(url, context=dest.name)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp, \
                open(tmp, "wb") as out:  # nosec B310
            while True:
                chunk = resp.read(64 * 1024)
                if not chunk:
                    break
                out.write(chunk)
        tmp.replace(dest)
    except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
        tmp.unlink(missing_ok=True)
        raise FetchFailure(f"下载失败: {url} - {e}") from e
    logger.debug("已下载: %s -> %s", url, dest)
    return dest


def parse_sha1(text: str) -> str | None:
    """从 .sha1 附属文件中取出摘要

    仓库里常见两种写法：只有摘要，或 "摘要  文件名"（sha1sum 输出）。
    """
    m = _SHA1_RE.search(text)
    return m.group(1).lower() if m else None


def verify_sha1(path: Path, expected: str) -> None:
    """校验文件的 SHA-1 摘要，不一致时抛 FetchFailure"""
    sha1 = hashlib.sha1()  # nosec B324
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha1.update(chunk)
    actual = sha1.hexdigest()
    if actual != expected:
        raise FetchFailure(f"校验和不匹配 {path.name}: 期望 {expected}, 实际 {actual}")
    logger.debug("校验和通过: %s", path.name)
