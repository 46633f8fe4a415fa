"""Best-effort archival of finished interviews to a NocoDB table."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from .config import RecordStoreSettings
from .models import InterviewRecord

logger = logging.getLogger(__name__)

RECORD_STATUS = "Generated"


class NocoDBRecordSink:
    """Posts one row per completed quote; never raises."""

    def __init__(
        self,
        settings: RecordStoreSettings,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    @staticmethod
    def build_row(record: InterviewRecord) -> Dict[str, Any]:
        return {
            "User_Request": record.request,
            "Questions_Answers": json.dumps(
                list(record.qa_pairs), ensure_ascii=False, indent=2
            ),
            "Quote_Details": json.dumps(
                record.quote.to_dict(), ensure_ascii=False, indent=2
            ),
            "Status": RECORD_STATUS,
        }

    async def record(self, record: InterviewRecord) -> None:
        """Send the record once; failures are logged and swallowed."""

        settings = self._settings
        if not settings.is_complete:
            logger.warning("NocoDB settings incomplete; skipping save.")
            return

        url = f"{settings.base_url}/api/v2/tables/{settings.table_id}/records"
        headers = {
            "Content-Type": "application/json",
            "xc-token": settings.api_token or "",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url, headers=headers, json=self.build_row(record)
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("NocoDB error: %s", exc)
            return

        if not response.is_success:
            logger.error(
                "NocoDB save failed (%s): %s", response.status_code, response.text
            )
            return
        logger.info("Interview saved to NocoDB")
