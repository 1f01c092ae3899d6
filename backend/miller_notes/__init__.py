"""miller-notes - 分层笔记的 Miller 列式标签页树"""

__version__ = "0.1.0"
