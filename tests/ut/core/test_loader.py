"""模块加载图测试：查找顺序、共享加载器身份、缺失符号报告"""

from __future__ import annotations

import threading
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from modpac.core.dep.resolver import DependencyResolver
from modpac.core.exceptions import LoadError
from modpac.core.loader import (
    ArtifactLoader,
    ModuleLoadGraph,
    SharedLoaderCache,
    symbol_entry,
)
from modpac.core.package import Module
from modpac.core.repository import PackageRepository

from helpers import FakeMaven, source_url


def _touch(root: Path, *entries: str) -> None:
    for entry in entries:
        path = root / entry
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")


@pytest.fixture
def install(repository: PackageRepository, make_package: Callable[..., Path]) -> Callable[..., Module]:
    def _install(name: str, **kwargs: object) -> Module:
        repository.add_package(make_package(name, **kwargs))
        pkg = repository.package_by_name(name)
        assert pkg is not None
        mod = pkg.module("main")
        assert mod is not None
        return mod

    return _install


@pytest.fixture
def graph() -> ModuleLoadGraph:
    return ModuleLoadGraph(cache=SharedLoaderCache())


class TestArtifactLoader:
    def test_symbol_entry(self) -> None:
        assert symbol_entry("a.b.C") == "a/b/C.class"

    def test_directory_and_archive(self, tmp_path: Path) -> None:
        classes = tmp_path / "classes"
        _touch(classes, "a/Dir.class")
        jar = tmp_path / "lib.jar"
        with zipfile.ZipFile(jar, "w") as zf:
            zf.writestr("a/Zip.class", b"")
            zf.writestr("conf/app.properties", b"")
        loader = ArtifactLoader([classes, jar])

        found = loader.find_symbol("a.Dir")
        assert found is not None and found.container == classes
        assert found.location == str(classes / "a/Dir.class")
        zipped = loader.find_symbol("a.Zip")
        assert zipped is not None and zipped.location == f"{jar}!/a/Zip.class"
        resource = loader.find_resource("/conf/app.properties")
        assert resource is not None and resource.entry == "conf/app.properties"
        assert loader.find_symbol("a.Nope") is None

    def test_corrupt_archive_is_empty(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.jar"
        bad.write_bytes(b"not a zip")
        assert ArtifactLoader([bad]).find_symbol("a.B") is None

    def test_missing_path_skipped(self, tmp_path: Path) -> None:
        assert ArtifactLoader([tmp_path / "gone"]).find_symbol("a.B") is None


class TestLookupOrder:
    def test_own_then_private_then_modules_then_shared(
        self,
        resolver: DependencyResolver,
        fake_maven: FakeMaven,
        install: Callable[..., Module],
        graph: ModuleLoadGraph,
    ) -> None:
        private = fake_maven.add("g:priv:1.0", entries=("x/Own.class", "x/Priv.class"))
        shared = fake_maven.add(
            "org.scala-lang:scala-library:2.11.7",
            entries=("x/Dep.class", "x/Priv.class", "scala/Predef.class"),
        )
        dep = install("dep")
        _touch(dep.classes_dir, "x/Dep.class", "x/Priv.class")
        mod = install("app", depends=[
            source_url("dep"), "mvn:g:priv:1.0", "mvn:org.scala-lang:scala-library:2.11.7",
        ])
        _touch(mod.classes_dir, "x/Own.class")

        loader = graph.build(resolver.resolve(mod))

        assert loader.resolve_symbol("x.Own").container == mod.classes_dir
        assert loader.resolve_symbol("x.Priv").container == private
        assert loader.resolve_symbol("x.Dep").container == dep.classes_dir
        assert loader.resolve_symbol("scala.Predef").container == shared

    def test_missing_symbol_names_module(
        self, resolver: DependencyResolver, install: Callable[..., Module], graph: ModuleLoadGraph,
    ) -> None:
        mod = install("app")
        loader = graph.build(resolver.resolve(mod))
        with pytest.raises(LoadError) as exc:
            loader.resolve_symbol("x.Nope")
        assert exc.value.module == "git:https://example.com/app.git"
        assert exc.value.symbol == "x.Nope"
        assert "缺少依赖: x.Nope" in str(exc.value)
        assert loader.resolve_resource("nothing.txt") is None

    def test_diamond_shares_node(
        self, resolver: DependencyResolver, install: Callable[..., Module], graph: ModuleLoadGraph,
    ) -> None:
        install("d")
        install("b", depends=[source_url("d")])
        install("c", depends=[source_url("d")])
        mod = install("a", depends=[source_url("b"), source_url("c")])
        root = graph.build(resolver.resolve(mod))
        assert len(graph) == 4
        assert root.delegates[0].delegates[0] is root.delegates[1].delegates[0]
        text = "\n".join(graph.dump(root))
        assert "(*) git:https://example.com/d.git" in text


class TestSharedLoaders:
    def test_same_path_same_loader(self, tmp_path: Path) -> None:
        cache = SharedLoaderCache()
        jar = tmp_path / "shared.jar"
        assert cache.get(jar) is cache.get(tmp_path / "." / "shared.jar")
        assert len(cache) == 1

    def test_dotdot_and_symlink_share_loader(self, tmp_path: Path) -> None:
        cache = SharedLoaderCache()
        (tmp_path / "lib").mkdir()
        jar = tmp_path / "lib" / "shared.jar"
        jar.write_bytes(b"")
        link = tmp_path / "link.jar"
        link.symlink_to(jar)
        loader = cache.get(jar)
        assert cache.get(tmp_path / "lib" / ".." / "lib" / "shared.jar") is loader
        assert cache.get(link) is loader
        assert len(cache) == 1

    def test_modules_share_loader_instance(
        self,
        resolver: DependencyResolver,
        fake_maven: FakeMaven,
        install: Callable[..., Module],
    ) -> None:
        cache = SharedLoaderCache()
        fake_maven.add("org.scala-lang:scala-library:2.11.7", entries=("scala/Predef.class",))
        a = install("a", depends=["mvn:org.scala-lang:scala-library:2.11.7"])
        b = install("b", depends=["mvn:org.scala-lang:scala-library:2.11.7"])

        # 两个独立的加载图（如两次运行）仍共享同一个加载器
        la = ModuleLoadGraph(cache).build(resolver.resolve(a))
        lb = ModuleLoadGraph(cache).build(resolver.resolve(b))
        assert la.shared[0] is lb.shared[0]

    def test_concurrent_get(self, tmp_path: Path) -> None:
        cache = SharedLoaderCache()
        results: list[object] = []
        lock = threading.Lock()

        def grab() -> None:
            loader = cache.get(tmp_path / "x.jar")
            with lock:
                results.append(loader)

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 8
        assert all(r is results[0] for r in results)
