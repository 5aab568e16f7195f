import logging
from typing import List, Optional, Union

import httpx

from build_orders.shared.schemas import (
    BuildOrderCreate, BuildOrderUpdate, BuildOrderOut, SessionOut
)

logger = logging.getLogger("build_orders.client")


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, fields: Optional[list] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.fields = fields or []


class BuildOrdersClient:
    """Thin wrapper over the REST API. Payloads are validated locally with the server's own schemas."""

    def __init__(self, server_url: str, token: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None, timeout: float = 5.0):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(base_url=server_url, headers=headers, timeout=timeout, transport=transport)

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _check(self, resp: httpx.Response) -> httpx.Response:
        if resp.is_success:
            return resp
        try:
            body = resp.json()
        except ValueError:
            body = {}
        message = body.get("error") if isinstance(body, dict) else None
        fields = body.get("fields") if isinstance(body, dict) else None
        logger.debug(f"{resp.request.method} {resp.request.url} -> {resp.status_code}")
        raise ApiError(resp.status_code, message or resp.reason_phrase, fields)

    def list_build_orders(self, public: bool = False, user_id: Optional[str] = None) -> List[BuildOrderOut]:
        params = {}
        if public:
            params["public"] = "true"
        if user_id:
            params["userId"] = user_id
        resp = self._check(self.client.get("/build-orders", params=params))
        return [BuildOrderOut.model_validate(b) for b in resp.json()]

    def get_build_order(self, build_order_id: str) -> BuildOrderOut:
        resp = self._check(self.client.get(f"/build-orders/{build_order_id}"))
        return BuildOrderOut.model_validate(resp.json())

    def create_build_order(self, payload: Union[BuildOrderCreate, dict]) -> BuildOrderOut:
        if not isinstance(payload, BuildOrderCreate):
            payload = BuildOrderCreate.model_validate(payload)
        resp = self._check(self.client.post("/build-orders", json=payload.model_dump(mode="json", by_alias=True)))
        created = BuildOrderOut.model_validate(resp.json())
        logger.info(f"Created build order {created.id} ({len(created.steps)} steps)")
        return created

    def update_build_order(self, build_order_id: str, payload: Union[BuildOrderUpdate, dict]) -> BuildOrderOut:
        if not isinstance(payload, BuildOrderUpdate):
            payload = BuildOrderUpdate.model_validate(payload)
        body = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
        resp = self._check(self.client.put(f"/build-orders/{build_order_id}", json=body))
        return BuildOrderOut.model_validate(resp.json())

    def delete_build_order(self, build_order_id: str):
        self._check(self.client.delete(f"/build-orders/{build_order_id}"))
        logger.info(f"Deleted build order {build_order_id}")

    def session(self) -> Optional[SessionOut]:
        data = self._check(self.client.get("/auth/session")).json()
        return SessionOut.model_validate(data) if data else None
