"""YAML 读写：只用于 modpac 自身的配置文件

读取时所有问题（文件过大、语法错误、顶层不是映射）统一转换为 ConfigError，
调用方不必关心 PyYAML 的异常类型。写入经由临时文件 + rename，
中途失败不会留下截断的配置。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from modpac.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# 配置文件不会超过这个大小，超过即视为误指向了别的文件
MAX_YAML_SIZE = 1024 * 1024


def read_mapping(path: str | Path) -> dict[str, Any]:
    """读取顶层为映射的 YAML 文件；文件不存在或为空时返回 {}"""
    p = Path(path)
    if not p.exists():
        return {}
    try:
        if p.stat().st_size > MAX_YAML_SIZE:
            raise ConfigError(f"配置文件过大: {p} (上限 {MAX_YAML_SIZE} 字节)")
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"配置文件无效: {p}: {e}") from e
    except OSError as e:
        raise ConfigError(f"无法读取配置文件: {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"配置文件无效: {p}: 顶层应为映射，实际为 {type(data).__name__}")
    return data


def write_mapping(path: str | Path, data: dict[str, Any]) -> None:
    """按键的原有顺序写出 YAML，允许非 ASCII 字符"""
    p = Path(path)
    text = yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(p.parent), prefix=f".{p.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, p)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
    logger.debug("已写入 %s", p)
