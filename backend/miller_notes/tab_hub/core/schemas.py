"""Tab record Pydantic schemas (wire format and export format)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TabRecord(BaseModel):
    """持久化服务的条目记录（GET/POST /tabs）"""

    id: str = Field(..., description="条目 ID")
    title: str = Field(..., description="标题")
    content: str = Field("", description="HTML 内容")
    parent_id: Optional[str] = Field(None, description="所在窗口 ID（根窗口为 null）")
    created_at: int = Field(..., description="创建时间戳（毫秒）")


class ExportRecord(BaseModel):
    """
    导出记录（结构化导出格式的单个元素）

    序列化使用驼峰字段名 (fromParent / createdAt)，与导出文件保持一致。
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="导出时的条目 ID（导入时可省略）")
    title: str = Field(..., description="标题")
    content: str = Field("", description="HTML 内容")
    depth: int = Field(0, ge=0, description="层级深度（根窗口为 0）")
    from_parent: str = Field(..., alias="fromParent", description="所属条目标题或根标签")
    created_at: Optional[int] = Field(None, alias="createdAt", description="创建时间戳（毫秒）")
