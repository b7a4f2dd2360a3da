"""
Public (unsigned) REST endpoints of the Pacifica API
"""

from typing import Any, Dict, Optional, Union

from ..config.settings import PacificaConfig
from ..exceptions import APIError, ValidationError
from ..transport.http import HttpTransport
from ..validation import validate_required


class ApiClient:
    """
    Read-only market and account queries.

    Args:
        config: SDK configuration
        transport: Shared HTTP transport, created from ``config`` when omitted
    """

    def __init__(self, config: Optional[PacificaConfig] = None,
                 transport: Optional[HttpTransport] = None):
        self.config = config or (transport.config if transport else PacificaConfig())
        self.transport = transport or HttpTransport(self.config)

    def _get_market_data(self, endpoint: str, params: Optional[Dict[str, Any]], hint: str) -> Any:
        try:
            return self.transport.get(endpoint, params)
        except APIError as e:
            if e.status == 404:
                raise APIError(
                    f"{endpoint} is not available via REST API. Use the WebSocket "
                    f"subscription '{hint}' for real-time data.",
                    status=404,
                    response_data=e.response_data,
                ) from e
            raise

    # Market data

    def get_market_info(self, market: Optional[str] = None) -> Any:
        endpoint = f"/markets/{market}" if market else "/markets"
        return self._get_market_data(endpoint, None, "prices")

    def get_ticker(self, market: str) -> Any:
        validate_required(market, 'market')
        return self._get_market_data(f"/ticker/{market}", None, f"ticker:{market}")

    def get_prices(self) -> Any:
        """Tickers for every market."""
        return self._get_market_data("/tickers", None, "prices")

    def get_orderbook(self, market: str, depth: Optional[int] = None) -> Any:
        validate_required(market, 'market')
        params = {'depth': depth} if depth else None
        return self._get_market_data(f"/orderbook/{market}", params, f"orderbook:{market}")

    def get_recent_trades(self, market: str, limit: Optional[int] = None) -> Any:
        validate_required(market, 'market')
        params = {'limit': limit} if limit else None
        return self._get_market_data(f"/trades/{market}", params, f"trades:{market}")

    # Account data

    def get_account_info(self, account: str) -> Any:
        validate_required(account, 'account')
        return self.transport.get("/account", {'account': account})

    def get_balance(self, account: Optional[str] = None, currency: Optional[str] = None) -> Any:
        if currency:
            return self.transport.get(f"/account/balance/{currency}", {'account': account})
        if not account:
            raise ValidationError("Account parameter is required for get_balance()", field='account')
        return self.get_account_info(account)

    def get_account_history(self, account: str, limit: Optional[int] = None,
                            cursor: Optional[str] = None) -> Any:
        validate_required(account, 'account')
        return self.transport.get(
            "/account/balance/history",
            {'account': account, 'limit': limit, 'cursor': cursor},
        )

    def get_positions(self, account: Optional[str] = None, market: Optional[str] = None) -> Any:
        return self.transport.get("/positions", {'account': account, 'market': market})

    def get_position(self, market: str, account: Optional[str] = None) -> Any:
        validate_required(market, 'market')
        return self.transport.get(f"/positions/{market}", {'account': account})

    # Orders

    def get_open_orders(self, account: str, market: Optional[str] = None) -> Any:
        """
        Orders that are still working.

        The endpoint returns every order; entries whose status is open or
        pending (or that have nothing filled yet) are kept.
        """
        validate_required(account, 'account')
        response = self.transport.get("/orders", {'account': account, 'market': market})
        if isinstance(response, dict) and response.get('success') and isinstance(response.get('data'), list):
            filtered = dict(response)
            filtered['data'] = [order for order in response['data'] if _is_open_order(order)]
            return filtered
        return response

    def get_order_history(self, account: str, market: Optional[str] = None,
                          limit: Optional[int] = None) -> Any:
        validate_required(account, 'account')
        return self.transport.get(
            "/orders/history",
            {'account': account, 'market': market, 'limit': limit},
        )

    def get_order(self, order_id: Union[int, str]) -> Any:
        validate_required(order_id, 'order_id')
        return self.transport.get(f"/orders/{order_id}")

    def get_open_twap_orders(self, account: str) -> Any:
        validate_required(account, 'account')
        return self.transport.get("/orders/twap", {'account': account})

    def get_twap_order_history(self, account: str) -> Any:
        validate_required(account, 'account')
        return self.transport.get("/orders/twap/history", {'account': account})

    def get_twap_order_history_by_id(self, order_id: Union[int, str]) -> Any:
        validate_required(order_id, 'order_id')
        return self.transport.get("/orders/twap/history_by_id", {'order_id': str(order_id)})

    def get_builder_code_approvals(self, account: str) -> Any:
        validate_required(account, 'account')
        return self.transport.get("/account/builder_codes/approvals", {'account': account})

    def close(self) -> None:
        self.transport.close()


def _is_open_order(order: Any) -> bool:
    if not isinstance(order, dict):
        return False
    status = str(order.get('status') or '').lower()
    if status in ('', 'open', 'pending'):
        return True
    return order.get('filled_amount') in ('0', 0)
