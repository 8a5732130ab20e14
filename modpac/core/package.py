"""包与模块的运行时元数据

Package 对应安装根目录下一个带 package.spam 的源码树，包含一个或多个 Module。
模块之间的依赖只通过 Source 标识查表解析，不保存对象反向引用；
Module → Package 是唯一持有的结构性引用。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from modpac.core.dep.models import DEFAULT_MODULE, Depend, Source
from modpac.core.exceptions import CyclicDependencyError
from modpac.core.manifest import ManifestReader

logger = logging.getLogger(__name__)

DEFAULT_JCOPTS = ["-source", "1.8", "-target", "1.8", "-Xlint:all"]
DEFAULT_SCOPTS = ["-deprecation", "-feature"]

SOURCE_LANGS = ("java", "scala", "kt")


class Module:
    """包内的一个模块：独立的源码目录、依赖声明与构建产物"""

    FILE = "module.spam"

    def __init__(
        self,
        package: Package,
        name: str,
        root: Path,
        source: Source | None,
        manifest: ManifestReader,
        inherited: Iterable[Depend] = (),
    ) -> None:
        self.package = package
        self.name = name
        self.root = root
        self.source = source
        self.descrip = manifest.string("descrip")
        self.jcopts = manifest.string_list("jcopt") + manifest.words("jcopts")
        self.depends: list[Depend] = [*inherited, *manifest.depends()]
        # 同包内被依赖的模块名，用于拓扑排序
        self.local_depends: set[str] = {
            d.id.module for d in self.depends
            if isinstance(d.id, Source) and self.is_sibling(d.id)
        }

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_MODULE

    def is_sibling(self, source: Source) -> bool:
        """source 是否指向同一个包里的模块"""
        return self.package.source is not None and \
            source.package_source() == self.package.source

    # ---- 目录约定 ----

    @property
    def target_dir(self) -> Path:
        return self.root / "target"

    @property
    def classes_dir(self) -> Path:
        return self.target_dir / "classes"

    @property
    def module_jar(self) -> Path:
        return self.target_dir / "module.jar"

    @property
    def main_dir(self) -> Path:
        src = self.root / "src"
        main = src / "main"
        return main if main.exists() else src

    @property
    def resources_dir(self) -> Path:
        return self.main_dir / "resources"

    def source_dirs(self) -> dict[str, Path]:
        """语言 -> 源码目录（只返回存在的）"""
        return {
            lang: self.main_dir / lang
            for lang in SOURCE_LANGS
            if (self.main_dir / lang).is_dir()
        }

    def classpath(self) -> Path:
        """模块自身产物：已打包则用 jar，否则用 classes 目录"""
        return self.module_jar if self.module_jar.exists() else self.classes_dir

    def display_name(self) -> str:
        return self.package.name if self.is_default else f"{self.package.name}#{self.name}"

    def __repr__(self) -> str:
        return f"Module({self.display_name()})"


class Package:
    """已安装（或刚检出待构建）的包"""

    FILE = "package.spam"

    def __init__(self, root: Path, manifest: ManifestReader) -> None:
        self.root = root
        self.source = manifest.source("source")
        self.name = manifest.string("name")
        self.version = manifest.string("version")
        self.license = manifest.string("license")
        self.weburl = manifest.string("weburl")
        self.descrip = manifest.string("descrip")

        self.jcopts = DEFAULT_JCOPTS + manifest.string_list("jcopt") + manifest.words("jcopts")
        self.scopts = DEFAULT_SCOPTS + manifest.string_list("scopt") + manifest.words("scopts")
        self.depends = manifest.depends()
        module_names = manifest.string_list("module")

        self.errors = manifest.finish()
        if self.source is None:
            self.errors.append("缺少必填键: source")
        if not self.name:
            self.errors.append("缺少必填键: name")

        self._modules: dict[str, Module] = {}
        # 顶层有 src 目录时，包根目录本身就是默认模块，包级 depend 归它所有
        if (root / "src").exists():
            self._modules[DEFAULT_MODULE] = Module(
                self, DEFAULT_MODULE, root, self.source, ManifestReader([]),
                inherited=self.depends,
            )

        for mname in module_names:
            mroot = root / mname
            msource = self.source.module_source(mname) if self.source else None
            try:
                mfile = mroot / Module.FILE
                mmanifest = ManifestReader(mfile.read_text(encoding="utf-8").splitlines())
            except OSError as e:
                self.errors.append(f"无法读取模块 {mname}: {e}")
                continue
            self._modules[mname] = Module(self, mname, mroot, msource, mmanifest)
            self.errors.extend(f"{mname}: {err}" for err in mmanifest.finish())

    @classmethod
    def load(cls, file: Path) -> Package:
        """从 package.spam 文件构造，文件所在目录即包根目录"""
        lines = file.read_text(encoding="utf-8").splitlines()
        return cls(file.parent, ManifestReader(lines))

    def module(self, name: str) -> Module | None:
        return self._modules.get(name)

    def module_names(self) -> list[str]:
        return list(self._modules)

    def modules(self) -> list[Module]:
        """按拓扑序返回全部模块：被依赖的模块排在依赖它的模块之前

        反复扫描剩余模块，把依赖已全部就位的模块移入结果；
        某一轮没有任何进展即说明存在环。
        """
        ordered: list[Module] = []
        seen: set[str] = set()
        remain = list(self._modules.values())
        while remain:
            progressed = False
            for mod in list(remain):
                if mod.local_depends <= seen:
                    seen.add(mod.name)
                    ordered.append(mod)
                    remain.remove(mod)
                    progressed = True
            if not progressed:
                names = [m.name for m in remain]
                raise CyclicDependencyError(
                    f"包 {self.name} 内模块存在循环依赖: {names}", remaining=names,
                )
        return ordered

    def package_depends(self) -> list[Source]:
        """本包任一模块依赖的其他包（去重、保持声明顺序，不含自身）"""
        deps: dict[Source, None] = {}
        for mod in self.modules():
            for dep in mod.depends:
                if isinstance(dep.id, Source):
                    psrc = dep.id.package_source()
                    if psrc != self.source:
                        deps[psrc] = None
        return list(deps)

    def depends_satisfied(self, built: set[Source]) -> bool:
        """本包依赖的包是否都已在 built 中"""
        return all(src in built for src in self.package_depends())

    def __repr__(self) -> str:
        return f"Package({self.name}, {self.source})"
