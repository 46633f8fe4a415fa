"""Shared fakes and payloads for the quote wizard tests."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from quote_wizard.config import (
    AppSettings,
    ModelSettings,
    QuoteLanguage,
    RecordStoreSettings,
)
from quote_wizard.models import InterviewRecord


QUESTIONS_PAYLOAD: Dict[str, Any] = {
    "questions": [
        {
            "id": 1,
            "text": "您手头已经有整理好的素材内容吗？",
            "options": ["有现成的文档/文字稿", "只有视频链接，需要提取", "什么都没有，需要AI自动生成"],
        },
        {
            "id": 2,
            "text": "您希望模仿哪类博主的风格？",
            "options": ["美妆护肤", "旅行探店", "职场干货"],
        },
        {
            "id": 3,
            "text": "生成的文案需要自动发布吗？",
            "options": ["需要全自动发布", "生成后我手动发布"],
        },
    ]
}

QUOTE_PAYLOAD: Dict[str, Any] = {
    "tiers": [
        {"name": "基础版", "price": "399", "features": ["单一风格模仿", "手动触发"], "desc": "入门"},
        {"name": "标准版", "price": "999", "features": ["多风格切换", "批量生成"], "desc": "推荐"},
        {"name": "高级版", "price": "咨询报价", "features": ["自动发布", "数据回流"], "desc": "全自动"},
    ],
    "notes": ["报价不含服务器及 AI API 调用费用。"],
    "analysis": "您的需求适合用 Coze 工作流实现。",
}


class FakeGateway:
    """Stands in for the completion gateway; replays queued outcomes."""

    def __init__(self, outcomes: Optional[List[Any]] = None) -> None:
        self.outcomes: List[Any] = list(outcomes or [])
        self.calls: List[Tuple[str, str]] = []
        self._gate = asyncio.Event()
        self._gate.set()

    def hold(self) -> None:
        self._gate.clear()

    def release(self) -> None:
        self._gate.set()

    async def complete(self, user_prompt: str, system_instruction: str) -> Dict[str, Any]:
        self.calls.append((user_prompt, system_instruction))
        await self._gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeSink:
    """Collects records instead of posting them."""

    def __init__(self) -> None:
        self.records: List[InterviewRecord] = []

    async def record(self, record: InterviewRecord) -> None:
        self.records.append(record)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        model=ModelSettings(
            api_key="sk-test",
            endpoint="https://llm.example.com/v1",
            model="gpt-test",
            timeout=5.0,
        ),
        record_store=RecordStoreSettings(
            base_url="https://nocodb.example.com",
            table_id="tbl123",
            api_token="token-abc",
        ),
        language=QuoteLanguage.ZH,
        max_questions=5,
    )


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()
