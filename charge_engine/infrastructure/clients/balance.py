"""Balance service HTTP client for average-balance based charges"""

from datetime import datetime
from decimal import Decimal, InvalidOperation

import httpx

from charge_engine.config import settings
from charge_engine.domain.exceptions import BalanceServiceError
from charge_engine.domain.models import Customer


class BalanceClient:
    """Client for the external ledger balance API"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url or settings.balance_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def average_balance(self, customer: Customer, start: datetime, end: datetime) -> Decimal:
        """
        Fetch the customer's average daily balance over [start, end).

        Raises:
            BalanceServiceError: On timeout, HTTP errors, or invalid response
        """
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = client.get(
                    f"{self.base_url}/balances/average",
                    params={
                        "customer_code": customer.customer_code,
                        "start": start.isoformat(),
                        "end": end.isoformat(),
                    },
                )
                response.raise_for_status()
                data = response.json()
                return Decimal(str(data["average_balance"]))

            except httpx.TimeoutException as e:
                raise BalanceServiceError(f"Balance API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BalanceServiceError(f"Balance API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise BalanceServiceError(f"Balance API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, InvalidOperation) as e:
                raise BalanceServiceError(f"Invalid balance data from ledger: {e}") from e
