"""包源码获取模块

- vcs.py: Git / Mercurial / Subversion 驱动
- fetcher.py: 单个包的检出、更新与安装
"""

from modpac.services.repo.fetcher import PackageFetcher
from modpac.services.repo.vcs import GitDriver, HgDriver, SvnDriver, VCSDriver, get_driver

__all__ = [
    "PackageFetcher",
    "VCSDriver",
    "GitDriver",
    "HgDriver",
    "SvnDriver",
    "get_driver",
]
