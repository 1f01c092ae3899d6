"""
持久化服务客户端

对接外部键值存储服务：
- GET  /tabs  -> [{id, title, content, parent_id, created_at}]
- POST /tabs  单条记录 upsert（幂等）
"""

import logging
from typing import List, Optional

import httpx
import pydantic
from pydantic import TypeAdapter

from miller_notes.core import SyncFailureError
from miller_notes.tab_hub.core.schemas import TabRecord

logger = logging.getLogger(__name__)

_TAB_LIST = TypeAdapter(List[TabRecord])


class TabsClient:
    """
    基于 httpx.AsyncClient 的 /tabs 客户端

    所有网络和格式错误都转换为 SyncFailureError。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: 服务地址，如 http://localhost:8080
            timeout: 请求超时（秒）
            transport: 自定义传输层（测试中使用 httpx.MockTransport）
        """
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 2.0)),
            transport=transport,
        )

    async def fetch_all(self) -> List[TabRecord]:
        """读取全部条目记录（初始加载）"""
        try:
            response = await self._client.get("/tabs")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise SyncFailureError(f"GET /tabs 失败: {e}", cause=e) from e
        except ValueError as e:
            raise SyncFailureError(f"GET /tabs 返回的不是 JSON: {e}", cause=e) from e

        try:
            records = _TAB_LIST.validate_python(data)
        except pydantic.ValidationError as e:
            raise SyncFailureError(f"GET /tabs 返回格式无效: {e.error_count()} 处错误", cause=e) from e

        logger.debug(f"tabs_fetched: {len(records)}")
        return records

    async def upsert(self, record: TabRecord) -> None:
        """写入单条记录"""
        try:
            response = await self._client.post("/tabs", json=record.model_dump())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SyncFailureError(f"POST /tabs 失败: {e}", tab_id=record.id, cause=e) from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TabsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
