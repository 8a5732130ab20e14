"""清单读取器：行式 key: value 文本

package.spam / module.spam 共用同一语法:

    # 注释
    name: mylib
    depend: mvn:com.google.guava:guava:18.0
    depend: git:https://github.com/acme/core.git#api
    jcopts: -Xlint:-serial -g

格式错误不抛异常，统一累积到 errors，由 finish() 一并返回，
让调用方可以加载带错误的包并一次性报告全部问题。
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Callable, TypeVar

from modpac.core.dep.models import Depend, Scope, Source
from modpac.core.exceptions import ConfigError

T = TypeVar("T")


class ManifestReader:
    """清单解析器：按键取值，记录已消费的键，finish() 报告剩余问题"""

    def __init__(self, lines: Iterable[str]) -> None:
        self._values: dict[str, list[str]] = {}
        self._errors: list[str] = []
        self._consumed: set[str] = set()
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition(":")
            key, value = key.strip(), value.strip()
            if not sep or not key:
                self._errors.append(f"第 {lineno} 行格式无效: {raw.rstrip()}")
                continue
            self._values.setdefault(key, []).append(value)

    # ---- 取值 ----

    def _single(self, key: str, parse: Callable[[str], T]) -> T | None:
        self._consumed.add(key)
        values = self._values.get(key, [])
        if not values:
            return None
        if len(values) > 1:
            self._errors.append(f"'{key}' 重复定义，使用第一个值: {values[0]}")
        try:
            return parse(values[0])
        except ConfigError as e:
            self._errors.append(f"'{key}' 值无效: {e}")
            return None

    def string(self, key: str, default: str = "") -> str:
        value = self._single(key, str)
        return default if value is None else value

    def source(self, key: str) -> Source | None:
        return self._single(key, Source.parse)

    def string_list(self, key: str) -> list[str]:
        """可重复的键，每行一个值"""
        self._consumed.add(key)
        return list(self._values.get(key, []))

    def words(self, key: str) -> list[str]:
        """可重复的键，每行按空白拆成多个值"""
        self._consumed.add(key)
        return [w for value in self._values.get(key, []) for w in value.split()]

    def depends(self, key: str = "depend") -> list[Depend]:
        self._consumed.add(key)
        result: list[Depend] = []
        for value in self._values.get(key, []):
            try:
                result.append(Depend.parse(value, Scope.MAIN))
            except ConfigError as e:
                self._errors.append(f"依赖无效 '{value}': {e}")
        return result

    # ---- 收尾 ----

    def finish(self) -> list[str]:
        """返回累积的错误（含未识别的键），调用后读取器不应再使用"""
        errors = list(self._errors)
        for key in self._values:
            if key not in self._consumed:
                errors.append(f"未知的配置键: {key}")
        return errors
