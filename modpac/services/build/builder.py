"""包构建器

职责:
- 清理模块的构建产物
- 按模块拓扑序编译包内全部模块 (resources → scala → kotlin → java → jar)
- 增量判断：main 目录下没有比 module.jar 新的文件时跳过

构建前要求模块依赖完全解析，任何缺失依赖都视为致命错误。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from modpac.core.config import Config
from modpac.core.dep.models import Scope
from modpac.core.dep.resolver import Depends, DependencyResolver
from modpac.core.package import Module, Package
from modpac.services.build.toolchain import Toolchain, collect_sources
from modpac.utils.files import copy_all, delete_all, exists_newer

logger = logging.getLogger(__name__)

SCALA_LIBRARY = "org.scala-lang:scala-library"
KOTLIN_STDLIB = "org.jetbrains.kotlin:kotlin-stdlib"


class PackageBuilder:
    """按模块编译包并打包 module.jar"""

    def __init__(
        self,
        resolver: DependencyResolver,
        toolchain: Toolchain,
        config: Config,
    ) -> None:
        self.resolver = resolver
        self.toolchain = toolchain
        self.config = config

    # ---- 包级操作 ----

    def clean(self, pkg: Package) -> None:
        """删除包内全部模块的 classes 目录"""
        for mod in pkg.modules():
            delete_all(mod.classes_dir)

    def build(self, pkg: Package) -> None:
        """清理并重新构建包内全部模块"""
        for mod in pkg.modules():
            self.build_module(mod)

    def rebuild(self, pkg: Package) -> bool:
        """只重建有源码变动的模块，返回是否有模块被重建"""
        rebuilt = False
        for mod in pkg.modules():
            rebuilt = self.rebuild_module(mod) or rebuilt
        return rebuilt

    # ---- 模块级操作 ----

    def rebuild_module(self, mod: Module) -> bool:
        jar = mod.module_jar
        last_build = jar.stat().st_mtime if jar.exists() else 0.0
        if not exists_newer(last_build, mod.main_dir):
            logger.debug("无需重建: %s", mod.display_name())
            return False
        self.build_module(mod)
        return True

    def build_module(self, mod: Module) -> None:
        logger.info("构建 %s ...", mod.display_name())
        depends = self.resolver.require(mod, Scope.MAIN)

        delete_all(mod.classes_dir)
        mod.classes_dir.mkdir(parents=True, exist_ok=True)

        if mod.resources_dir.exists():
            copy_all(mod.resources_dir, mod.classes_dir)

        src_dirs = mod.source_dirs()
        scala_dir = src_dirs.get("scala")
        java_dir = src_dirs.get("java")
        kotlin_dir = src_dirs.get("kt")
        # scala 先编译：混合编译时 java 源码可能引用 scala 类，而 scalac 不为 .java 生成字节码
        if scala_dir is not None:
            self._build_scala(mod, depends, scala_dir, java_dir)
        if kotlin_dir is not None:
            self._build_kotlin(mod, depends, kotlin_dir)
        if java_dir is not None:
            self._build_java(mod, depends, java_dir, multi_lang=scala_dir is not None)

        self.toolchain.jar(mod.classes_dir, mod.module_jar)

    # ---- 各语言 ----

    def _target(self, mod: Module) -> str:
        return os.path.relpath(mod.classes_dir, mod.root)

    def _classpath(self, mod: Module, depends: Depends) -> list[str]:
        return [str(p) for p in depends.depend_classpath() if p != mod.classes_dir]

    def _build_scala(
        self, mod: Module, depends: Depends, scala_dir: Path, java_dir: Path | None,
    ) -> None:
        version = depends.find_version(SCALA_LIBRARY) or self.config.default_scala_version
        sources: list[str] = []
        if java_dir is not None:
            sources += collect_sources(mod.root, java_dir, ".java")
        sources += collect_sources(mod.root, scala_dir, ".scala")
        self.toolchain.scalac(
            mod.root, version, self._target(mod), self._classpath(mod, depends),
            mod.package.scopts, sources,
        )

    def _build_kotlin(self, mod: Module, depends: Depends, kotlin_dir: Path) -> None:
        version = depends.find_version(KOTLIN_STDLIB) or self.config.default_kotlin_version
        self.toolchain.kotlinc(
            mod.root, version, self._target(mod), self._classpath(mod, depends),
            collect_sources(mod.root, kotlin_dir, ".kt"),
        )

    def _build_java(self, mod: Module, depends: Depends, java_dir: Path, multi_lang: bool) -> None:
        target = self._target(mod)
        classpath = self._classpath(mod, depends)
        # 混合编译时 java 可能依赖其他语言刚生成的类
        if multi_lang:
            classpath.insert(0, target)
        self.toolchain.javac(
            mod.root, target, classpath, [*mod.package.jcopts, *mod.jcopts],
            collect_sources(mod.root, java_dir, ".java"),
        )
