"""Nova reservation / table / SMS / payments API client"""

import re
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

from app.config import settings
from app.core.errors import (
    ConfigurationError,
    ExternalAPIError,
    ExternalTimeoutError,
    PaymentError,
    TableAlreadyOccupiedError,
)

logger = structlog.get_logger()

TABLE_ALREADY_OCCUPIED = "TableAlreadyOccupied"

RESERVATIONS_PATH = "/unified/internal-service/api/restaurant-reservations"
SMS_PATH = "/mycustomers/customers/send-custom-sms"

CHECKOUT_PATHS = {
    "stripe": "/payments/stripe/checkout/V3",
    "payrix": "/payments/payrix/checkout/V3",
    "worldpay": "/payments/payrix/checkout/V3",
}


def parse_phone_number(phone: str) -> Tuple[str, str]:
    """
    Split a phone number into (country_code, mobile_number).

    "+14155551234" -> ("+1", "4155551234"), "4155551234" -> ("+1", "4155551234"),
    "+919876543210" -> ("+91", "9876543210"), "+447911123456" -> ("+44", "7911123456").
    Anything unrecognised falls back to +1.
    """
    cleaned = re.sub(r"[^\d+]", "", phone or "")
    digits = cleaned.replace("+", "")

    if cleaned.startswith("+"):
        if cleaned.startswith("+1") and len(cleaned) == 12:
            return "+1", cleaned[2:]
        if cleaned.startswith("+91") and len(cleaned) == 13:
            return "+91", cleaned[3:]
        if len(digits) >= 11 and len(digits[2:]) >= 9:
            return "+" + digits[:2], digits[2:]

    if len(digits) == 10:
        return "+1", digits
    if len(digits) == 11 and digits.startswith("1"):
        return "+1", digits[1:]
    if len(digits) == 12 and digits.startswith("91"):
        return "+91", digits[2:]

    return "+1", (digits[1:] if digits.startswith("1") else digits) or digits


def split_name(name: str) -> Tuple[str, str]:
    """Split a full name into first and last name on the first whitespace"""
    parts = (name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class CircuitBreaker:
    """
    Opens after `threshold` consecutive failures and rejects calls until
    `cooldown` seconds have passed.
    """

    def __init__(self, name: str, threshold: int = 3, cooldown: float = 30.0):
        self.name = name
        self.threshold = threshold
        self.cooldown = cooldown
        self.failures = 0
        self.opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if time.monotonic() - self.opened_at >= self.cooldown:
            # half-open: let the next call through
            self.opened_at = None
            self.failures = self.threshold - 1
            return False
        return True

    def check(self):
        if self.is_open:
            raise ExternalAPIError(f"Nova {self.name} service temporarily unavailable")

    def record_success(self):
        self.failures = 0
        self.opened_at = None

    def record_failure(self):
        self.failures += 1
        if self.failures >= self.threshold:
            self.opened_at = time.monotonic()
            logger.warning("Nova circuit opened", circuit=self.name, failures=self.failures)


class NovaClient:
    """
    Async client for the Nova API.

    Every request is bounded by `timeout`. Reads and customer upserts are
    retried `max_retries` times on timeout or connection failure; table
    bookings, SMS and checkout sessions are sent once. Booking and payment
    calls sit behind circuit breakers.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.nova_api_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.nova_api_key
        self.timeout = timeout if timeout is not None else settings.nova_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.nova_max_retries
        self.transport = transport
        self.booking_circuit = CircuitBreaker("booking")
        self.payment_circuit = CircuitBreaker("payment")

    def _require_base_url(self):
        if not self.base_url:
            raise ConfigurationError("NOVA_API_BASE_URL is not configured")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        retries: int = 0,
        circuit: Optional[CircuitBreaker] = None,
    ) -> httpx.Response:
        """Send one request, retrying transport failures `retries` times"""
        self._require_base_url()
        if circuit:
            circuit.check()

        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.request(method, url, json=json, headers=headers)
                break
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < retries:
                    attempt += 1
                    logger.warning("Nova request failed, retrying", path=path, attempt=attempt, error=str(e))
                    continue
                if circuit:
                    circuit.record_failure()
                if isinstance(e, httpx.TimeoutException):
                    raise ExternalTimeoutError(f"Nova API timed out after {self.timeout}s: {path}")
                raise ExternalAPIError(f"Nova API unreachable: {e}")
            except httpx.HTTPError as e:
                if circuit:
                    circuit.record_failure()
                raise ExternalAPIError(f"Nova API request failed: {e}")

        if circuit:
            if response.status_code >= 500:
                circuit.record_failure()
            else:
                circuit.record_success()
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, label: str):
        if response.is_success:
            return
        raise ExternalAPIError(
            f"{label} error: {response.status_code} {response.reason_phrase} - {response.text[:500]}",
            status_code=response.status_code,
            body=response.text,
        )

    @staticmethod
    def _json(response: httpx.Response, label: str) -> Any:
        """Decoded success body; a 2xx that is not JSON is an API error"""
        try:
            return response.json()
        except ValueError:
            raise ExternalAPIError(
                f"{label} returned a non-JSON body: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            )

    @staticmethod
    def _ack(response: httpx.Response) -> Dict[str, Any]:
        """Body of an acknowledgement whose side effect already happened; empty or non-JSON counts as {}"""
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    async def create_customer(self, restaurant_ref_id: str, name: str, phone: str) -> str:
        """Create or fetch a Nova customer, returning its refId"""
        if not restaurant_ref_id:
            raise ConfigurationError(
                "Restaurant Nova Ref ID is not configured. Please set it in restaurant settings."
            )
        country_code, mobile_number = parse_phone_number(phone)
        first_name, last_name = split_name(name)

        response = await self._request(
            "POST",
            f"{RESERVATIONS_PATH}/{restaurant_ref_id}/customer",
            json={
                "restaurantRefId": restaurant_ref_id,
                "name": name,
                "firstName": first_name,
                "lastName": last_name,
                "mobileNumber": mobile_number,
                "countryCode": country_code,
            },
            retries=self.max_retries,
        )
        self._raise_for_status(response, "Nova API")

        data = self._json(response, "Nova API")
        ref_id = data.get("refId") if isinstance(data, dict) else None
        if not ref_id:
            raise ExternalAPIError("Nova API did not return a customer refId")
        return ref_id

    async def get_table_status(self, restaurant_ref_id: str) -> List[Dict[str, Any]]:
        """Areas with their tables, occupancy flags and capacities"""
        if not restaurant_ref_id:
            raise ConfigurationError(
                "Restaurant Nova Ref ID is not configured. Please set it in restaurant settings."
            )
        response = await self._request(
            "GET",
            f"{RESERVATIONS_PATH}/{restaurant_ref_id}/table-status",
            headers={"accept": "*/*"},
            retries=self.max_retries,
        )
        self._raise_for_status(response, "Nova API")
        return self._json(response, "Nova API") or []

    async def book_table(
        self,
        restaurant_ref_id: str,
        table_ref_id: str,
        customer_ref_id: str,
        reservation_date: str,
        seats_required: int,
    ) -> Dict[str, Any]:
        """
        Book a table for a customer.

        Raises TableAlreadyOccupiedError when Nova answers with a
        TableAlreadyOccupied entry in its list-of-errors body.
        """
        if not restaurant_ref_id:
            raise ConfigurationError(
                "Restaurant Nova Ref ID is not configured. Please set it in restaurant settings."
            )
        if not customer_ref_id:
            raise ConfigurationError("Customer Nova Ref ID is required to book a table.")

        response = await self._request(
            "POST",
            f"{RESERVATIONS_PATH}/{restaurant_ref_id}/table/{table_ref_id}/book-table",
            json={
                "customerRefId": customer_ref_id,
                "reservationDate": reservation_date,
                "seatsRequired": seats_required,
            },
            circuit=self.booking_circuit,
        )

        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            if isinstance(error_data, list) and any(
                isinstance(err, dict) and err.get("errorCode") == TABLE_ALREADY_OCCUPIED
                for err in error_data
            ):
                raise TableAlreadyOccupiedError(
                    "Table is already occupied",
                    status_code=response.status_code,
                    body=response.text,
                )
            self._raise_for_status(response, "Nova API")

        return self._ack(response)

    async def send_custom_sms(self, phone: str, message: str) -> Dict[str, Any]:
        """Send a free-text SMS"""
        if not self.api_key:
            raise ConfigurationError("Nova API key is not configured. Please set NOVA_API_KEY.")
        country_code, mobile_number = parse_phone_number(phone)
        if not mobile_number:
            raise ExternalAPIError("Invalid phone number")

        response = await self._request(
            "POST",
            SMS_PATH,
            json={
                "mobileNumber": mobile_number,
                "countryCode": country_code,
                "message": message,
            },
            headers={"accept": "*/*", "x-api-key": self.api_key},
        )
        self._raise_for_status(response, "SMS API")
        return self._ack(response)

    async def get_merchant_config(self, restaurant_ref_id: str) -> Dict[str, Any]:
        """Payment gateway configuration for the restaurant"""
        response = await self._request(
            "GET",
            f"/unified/payments/{restaurant_ref_id}/stripe/merchant",
            headers={"accept": "*/*"},
            retries=self.max_retries,
            circuit=self.payment_circuit,
        )
        self._raise_for_status(response, "Merchant config API")
        return self._json(response, "Merchant config API")

    async def create_checkout_session(
        self,
        gateway_id: str,
        merchant_id: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Create a hosted checkout session on the gateway-specific endpoint"""
        path = CHECKOUT_PATHS.get((gateway_id or "").lower())
        if not path:
            raise PaymentError(f"Unsupported payment gateway: {gateway_id}")

        response = await self._request(
            "POST",
            path,
            json=payload,
            headers={"merchant_id": merchant_id},
            circuit=self.payment_circuit,
        )
        self._raise_for_status(response, "Checkout API")
        return self._json(response, "Checkout API")


_client: Optional[NovaClient] = None


def get_nova_client() -> NovaClient:
    """FastAPI dependency returning the shared Nova client"""
    global _client
    if _client is None:
        _client = NovaClient()
    return _client
