"""
服务层：导航、视图投影、导出选择、导出/导入
"""

from .navigation import NavigationController
from .selection import ExportSelection
from .transfer import ExportFormat, ImportResult, TabTransferService, strip_markup
from .view_projector import ViewState, natural_key, parse_sort_mode, project

__all__ = [
    'NavigationController',
    'ExportSelection',
    'ExportFormat',
    'ImportResult',
    'TabTransferService',
    'strip_markup',
    'ViewState',
    'natural_key',
    'parse_sort_mode',
    'project',
]
