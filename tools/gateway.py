import json
from typing import Any, Dict, Optional, Union
import httpx
from loguru import logger

class EndpointGateway:
    """Outbound lead delivery and inbound webhook parsing."""

    def __init__(self, url: str = "", timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

        if not self.url:
            logger.warning("No sync endpoint configured, leads will not be dispatched")

    def send(self, lead: Dict[str, Any]) -> bool:
        """
        POST one lead as JSON.

        HTTP error statuses are logged but not treated as failures; only a
        transport or client error (connection, DNS, timeout, bad URL)
        returns False.
        """
        if not self.url:
            return False

        body = json.dumps(lead, default=str)
        headers = {"Content-Type": "application/json"}

        try:
            if self._client is not None:
                response = self._client.post(self.url, content=body, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, content=body, headers=headers)
            logger.info(f"Endpoint response ({response.status_code}): {response.text}")
            return True
        except Exception as e:
            logger.error(f"Lead dispatch failed for {lead.get('id', 'unknown')}: {e}")
            return False

    def receive(self, raw_body: Union[str, bytes]) -> Dict[str, Any]:
        """Parse an inbound JSON body; returns {'error': ...} instead of raising."""
        try:
            data = json.loads(raw_body)
            logger.info(f"Received data: {json.dumps(data, default=str)}")
            return {"success": True, "data": data}
        except (ValueError, TypeError) as e:
            logger.warning(f"Inbound payload rejected: {e}")
            return {"error": str(e)}
