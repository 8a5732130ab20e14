"""文件工具：递归删除 / 复制 / 新旧比较"""

from __future__ import annotations

import os
import shutil
import stat
import sys
from pathlib import Path


def _make_writable(func, path, _exc) -> None:  # type: ignore[no-untyped-def]
    """rmtree 遇到只读文件时补写权限后重试"""
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    func(path)


def delete_all(path: Path) -> None:
    """删除文件或整个目录树，不存在时什么也不做"""
    if not path.exists() and not path.is_symlink():
        return
    if path.is_dir() and not path.is_symlink():
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_make_writable)
        else:
            shutil.rmtree(path, onerror=_make_writable)
    else:
        path.unlink()


def copy_all(from_dir: Path, to_dir: Path) -> None:
    """把 from_dir 的内容递归复制进 to_dir，覆盖同名文件"""
    shutil.copytree(from_dir, to_dir, dirs_exist_ok=True)


def exists_newer(stamp: float, root: Path) -> bool:
    """root 下是否存在修改时间不早于 stamp 的文件"""
    if not root.exists():
        return False
    for dirpath, _dirs, files in os.walk(root):
        for name in files:
            if (Path(dirpath) / name).stat().st_mtime >= stamp:
                return True
    return False


def move_dir(src: Path, dest: Path) -> None:
    """移动目录到 dest；同一文件系统上为原子 rename，跨设备时退化为复制后删除"""
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(src, dest)
    except OSError:
        copy_all(src, dest)
        delete_all(src)
