"""Casino offers web API client.

Thin request/response wrappers around the login, guest account and casino
offer endpoints. There is no retry, backoff or pagination; a failed call
raises ApiError. Offer details are fetched concurrently, and a failure for
one offer is recorded on that offer instead of aborting the batch.
"""

import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Optional

import httpx

from .config import Config
from .credentials import Credentials
from .models import UserInfo, UserOffers

logger = logging.getLogger(__name__)

AUTH_URL = "https://www.royalcaribbean.com/auth/oauth2/access_token"
ACCOUNT_URL = "https://aws-prd.api.rccl.com/en/royal/web/v3/guestAccounts/{account_id}"
OFFERS_URL = "https://www.royalcaribbean.com/api/casino/casino-offers/v1"
OFFERS_REFERER = "https://www.royalcaribbean.com/club-royale/offers/"
TOKEN_SCOPE = "openid profile email vdsid"


class ApiError(Exception):
    """A non-success response or an unusable payload from the offers API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def account_id_from_token(token: str) -> Optional[str]:
    """Return the ``sub`` claim of a JWT access token, or None if malformed."""
    try:
        parts = token.split(".")
        if len(parts) != 3:
            raise ValueError("Invalid JWT token format")
        payload = parts[1] + "=" * (-len(parts[1]) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
        return claims.get("sub")
    except (ValueError, AttributeError, binascii.Error) as e:
        logger.warning(f"Error decoding JWT token: {e}")
        return None


def _raise_for_status(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    raise ApiError(
        f"Failed to {what}: {response.status_code} {response.reason_phrase} {response.text}",
        status_code=response.status_code,
        body=response.text,
    )


def _json(response: httpx.Response, what: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ApiError(f"Failed to {what}: response is not JSON ({e})") from e


class OffersClient:
    """Async client for one session against the offers API."""

    def __init__(
        self,
        client_auth: str = Config.CLIENT_AUTH,
        app_key: str = Config.APP_KEY,
        brand: str = Config.BRAND,
        timeout: float = Config.REQUEST_TIMEOUT,
        max_concurrency: int = Config.MAX_CONCURRENT_REQUESTS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_auth = client_auth
        self.app_key = app_key
        self.brand = brand
        self.max_concurrency = max(1, max_concurrency)
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def __aenter__(self) -> "OffersClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _offer_headers(self, access_token: str) -> dict[str, str]:
        account_id = account_id_from_token(access_token)
        if not account_id:
            raise ApiError("Failed to extract account ID from token")
        return {
            "accept": "application/json",
            "account-id": account_id,
            "authorization": f"Bearer {access_token}",
            "content-type": "application/json",
            "referer": OFFERS_REFERER,
        }

    async def request_access_token(self, username: str, password: str) -> str:
        """Log in with the password grant and return the access token."""
        response = await self._client.post(
            AUTH_URL,
            data={
                "grant_type": "password",
                "username": username,
                "password": password,
                "scope": TOKEN_SCOPE,
            },
            headers={"Authorization": self.client_auth},
        )
        _raise_for_status(response, "request access token")
        token = (_json(response, "request access token") or {}).get("access_token")
        if not token:
            raise ApiError("No access token found in token response")
        return token

    async def fetch_user_account(self, access_token: str) -> dict:
        account_id = account_id_from_token(access_token)
        if not account_id:
            raise ApiError("Failed to extract account ID from token")
        response = await self._client.get(
            ACCOUNT_URL.format(account_id=account_id),
            headers={
                "access-token": access_token,
                "appkey": self.app_key,
                "content-type": "application/json",
            },
        )
        _raise_for_status(response, "fetch user account")
        return _json(response, "fetch user account")

    async def fetch_all_offers(self, access_token: str, consumer_id: str, loyalty_id: str) -> dict:
        response = await self._client.post(
            OFFERS_URL,
            headers=self._offer_headers(access_token),
            json={
                "cruiseLoyaltyId": loyalty_id,
                "consumerId": consumer_id,
                "brand": self.brand,
            },
        )
        _raise_for_status(response, "fetch offers")
        return _json(response, "fetch offers")

    async def fetch_offer_details(self, access_token: str, loyalty_id: str, offer: dict) -> dict:
        campaign = offer.get("campaignOffer") or {}
        response = await self._client.post(
            OFFERS_URL,
            headers=self._offer_headers(access_token),
            json={
                "returnExcludedSailings": True,
                "brand": self.brand,
                "cruiseLoyaltyId": loyalty_id,
                "offerCode": campaign.get("offerCode"),
                "playerOfferId": offer.get("playerOfferId"),
            },
        )
        _raise_for_status(response, "fetch offer details")
        return _json(response, "fetch offer details")

    async def fetch_offers_with_details(
        self,
        access_token: str,
        loyalty_id: str,
        offers: list[dict],
    ) -> list[dict[str, Any]]:
        """Fetch details for every offer concurrently.

        Results keep the order of ``offers``. An offer whose detail call
        fails gets ``details: None`` and an ``error`` message.
        """
        sem = asyncio.Semaphore(self.max_concurrency)

        async def one(offer: dict) -> dict[str, Any]:
            async with sem:
                try:
                    details = await self.fetch_offer_details(access_token, loyalty_id, offer)
                    return {"offer": offer, "details": details}
                except (ApiError, httpx.HTTPError) as e:
                    code = (offer.get("campaignOffer") or {}).get("offerCode") or "unknown"
                    logger.warning(f"Error fetching details for offer {code}: {e}")
                    return {"offer": offer, "details": None, "error": str(e)}

        return list(await asyncio.gather(*[one(o) for o in offers]))

    async def fetch_user_offers(self, credentials: Credentials, label: str) -> UserOffers:
        """Log in and fetch every offer with its details for one account."""
        logger.info(f"Authenticating {label}...")
        token = await self.request_access_token(credentials.username, credentials.password)

        user = await self.fetch_user_account(token)
        if not isinstance(user, dict):
            raise ApiError(f"User account for {label} is not a JSON object")
        payload = user.get("payload") or {}
        try:
            consumer_id = payload["consumerId"]
            loyalty_id = payload["loyaltyInformation"]["crownAndAnchorId"]
        except (KeyError, TypeError) as e:
            raise ApiError(f"User account for {label} is missing {e}") from e

        offers = (await self.fetch_all_offers(token, consumer_id, loyalty_id)).get("offers") or []
        logger.info(f"Fetching offer details for {label} ({len(offers)} offers)...")
        offers_with_details = await self.fetch_offers_with_details(token, loyalty_id, offers)

        return UserOffers(
            label=label,
            user_info=UserInfo(
                consumer_id=consumer_id,
                loyalty_id=loyalty_id,
                account_id=account_id_from_token(token),
            ),
            offers_with_details=offers_with_details,
        )
