"""文件工具测试"""

from __future__ import annotations

import os
import stat
import time
from pathlib import Path

from modpac.utils.files import copy_all, delete_all, exists_newer, move_dir


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDeleteAll:
    def test_tree_with_readonly_file(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "t" / "sub" / "ro.txt")
        os.chmod(f, stat.S_IREAD)
        delete_all(tmp_path / "t")
        assert not (tmp_path / "t").exists()

    def test_missing_is_noop(self, tmp_path: Path) -> None:
        delete_all(tmp_path / "nothing")

    def test_symlink_target_kept(self, tmp_path: Path) -> None:
        target = _write(tmp_path / "real" / "keep.txt")
        link = tmp_path / "link"
        link.symlink_to(tmp_path / "real", target_is_directory=True)
        delete_all(link)
        assert not link.exists()
        assert target.exists()


class TestCopyAndMove:
    def test_copy_all_merges(self, tmp_path: Path) -> None:
        _write(tmp_path / "src" / "a" / "x.txt", "new")
        _write(tmp_path / "dst" / "a" / "x.txt", "old")
        _write(tmp_path / "dst" / "keep.txt")
        copy_all(tmp_path / "src", tmp_path / "dst")
        assert (tmp_path / "dst" / "a" / "x.txt").read_text(encoding="utf-8") == "new"
        assert (tmp_path / "dst" / "keep.txt").exists()

    def test_move_dir(self, tmp_path: Path) -> None:
        _write(tmp_path / "src" / "f.txt", "x")
        move_dir(tmp_path / "src", tmp_path / "deep" / "dst")
        assert (tmp_path / "deep" / "dst" / "f.txt").read_text(encoding="utf-8") == "x"
        assert not (tmp_path / "src").exists()


class TestExistsNewer:
    def test_stamp_comparison(self, tmp_path: Path) -> None:
        f = _write(tmp_path / "d" / "A.java")
        past = time.time() - 100
        os.utime(f, (past, past))
        assert exists_newer(past - 1, tmp_path / "d")
        assert not exists_newer(past + 1, tmp_path / "d")

    def test_missing_root(self, tmp_path: Path) -> None:
        assert not exists_newer(0.0, tmp_path / "nothing")
