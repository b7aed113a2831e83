from .adapter import LinkAdapter
from .alipan import AliPanChecker
from .browser import BrowserSessionFactory
from .quark import QuarkChecker
from .registry import CheckerRegistry
from .uc import UcChecker
from .xunlei import XunleiChecker
from .yd import YdChecker

__all__ = [
    "AliPanChecker",
    "BrowserSessionFactory",
    "CheckerRegistry",
    "LinkAdapter",
    "QuarkChecker",
    "UcChecker",
    "XunleiChecker",
    "YdChecker",
]
