from __future__ import annotations

from typing import Any

from newsdesk.providers.base import HttpProvider


class AirtableClient(HttpProvider):
    """Records provider backed by an Airtable base."""

    name = "airtable"
    base_url = "https://api.airtable.com/v0"

    def __init__(self, api_key: str, base_id: str, table_id: str, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self.base_id = base_id
        self.table_id = table_id

    async def test_connection(self) -> None:
        await self._request("GET", f"/{self.base_id}/{self.table_id}", params={"maxRecords": 1})

    async def fetch_records(
        self, *, view: str | None = None, max_records: int = 100
    ) -> list[dict[str, Any]]:
        """Return the ``fields`` of every record, following pagination offsets."""
        records: list[dict[str, Any]] = []
        offset: str | None = None
        while len(records) < max_records:
            params: dict[str, Any] = {"pageSize": min(100, max_records - len(records))}
            if view:
                params["view"] = view
            if offset:
                params["offset"] = offset
            result = await self._request("GET", f"/{self.base_id}/{self.table_id}", params=params)
            for record in result.get("records") or []:
                fields = dict(record.get("fields") or {})
                fields.setdefault("id", record.get("id"))
                records.append(fields)
            offset = result.get("offset")
            if not offset:
                break
        return records
