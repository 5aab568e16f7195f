"""
Steam sign-in (OpenID 2.0)
Flow: redirect to Steam -> Steam redirects back with a signed assertion ->
check_authentication round trip -> fetch the player summary with the Web API key.
One shot; nothing here retries.
"""

import re
import logging
from typing import Mapping, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from build_orders.server.config import Settings

logger = logging.getLogger("build_orders.server.steam")

# --- Constants ---
OPENID_ENDPOINT = "https://steamcommunity.com/openid/login"
OPENID_NS = "http://specs.openid.net/auth/2.0"
IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
PLAYER_SUMMARIES_URL = "https://api.steampowered.com/ISteamUser/GetPlayerSummaries/v0002/"
CALLBACK_PATH = "/auth/callback/steam"

IS_VALID_RE = re.compile(r"is_valid\s*:\s*true", re.IGNORECASE)
CLAIMED_ID_RE = re.compile(r"^https://steamcommunity\.com/openid/id/([0-9]{17,25})")


class SteamAuthError(Exception):
    """Any failure of the Steam identity exchange."""


class SteamProfile(BaseModel):
    steamid: str
    personaname: str
    avatarfull: Optional[str] = None
    profileurl: Optional[str] = None
    realname: Optional[str] = None


def login_url(settings: Settings) -> str:
    params = {
        "openid.ns": OPENID_NS,
        "openid.mode": "checkid_setup",
        "openid.return_to": callback_url(settings),
        "openid.realm": settings.public_url,
        "openid.identity": IDENTIFIER_SELECT,
        "openid.claimed_id": IDENTIFIER_SELECT,
    }
    return f"{OPENID_ENDPOINT}?{urlencode(params)}"


def validation_params(params: Mapping[str, str]) -> dict:
    """Echoes the signed assertion back to Steam in check_authentication mode."""
    data = {
        "openid.assoc_handle": params.get("openid.assoc_handle", ""),
        "openid.signed": params.get("openid.signed", ""),
        "openid.sig": params.get("openid.sig", ""),
        "openid.ns": OPENID_NS,
        "openid.mode": "check_authentication",
    }
    signed_fields = [f for f in params.get("openid.signed", "").split(",") if f]
    for field in signed_fields:
        # 'mode' is signed as id_res but must be sent as check_authentication
        if field == "mode":
            continue
        data[f"openid.{field}"] = params.get(f"openid.{field}", "")
    return data


def callback_url(settings: Settings) -> str:
    return f"{settings.public_url}{CALLBACK_PATH}"


def verify_assertion(client: httpx.Client, params: Mapping[str, str], return_to: str) -> str:
    """Returns the 64-bit Steam id once Steam confirms the assertion was issued for return_to."""
    if params.get("openid.mode") != "id_res":
        raise SteamAuthError(f"Unexpected openid.mode: {params.get('openid.mode')!r}")

    # An assertion issued to another site must not open a session here
    if not params.get("openid.return_to", "").startswith(return_to):
        raise SteamAuthError(f"openid.return_to does not match {return_to}")

    signed_fields = params.get("openid.signed", "").split(",")
    for field in ("claimed_id", "return_to"):
        if field not in signed_fields:
            raise SteamAuthError(f"Steam assertion does not sign {field}")

    try:
        response = client.post(
            OPENID_ENDPOINT,
            data=validation_params(params),
            headers={"Accept-language": "en"},
        )
    except httpx.HTTPError as e:
        raise SteamAuthError(f"Steam OpenID validation request failed: {e}") from e

    if not IS_VALID_RE.search(response.text):
        raise SteamAuthError("Steam authentication failed")

    match = CLAIMED_ID_RE.match(params.get("openid.claimed_id", ""))
    if not match:
        raise SteamAuthError("Steam assertion carried no usable claimed_id")
    return match.group(1)


def fetch_player_summary(client: httpx.Client, api_key: Optional[str], steam_id: str) -> SteamProfile:
    if not api_key:
        raise SteamAuthError("STEAM_API_KEY not configured")

    try:
        response = client.get(PLAYER_SUMMARIES_URL, params={"key": api_key, "steamids": steam_id})
    except httpx.HTTPError as e:
        raise SteamAuthError(f"Failed to fetch Steam player data: {e}") from e

    if response.is_error:
        raise SteamAuthError(f"Steam API request failed with status {response.status_code}")

    try:
        players = response.json().get("response", {}).get("players", [])
        if not players:
            raise SteamAuthError("No player data returned from Steam API")
        return SteamProfile(**players[0])
    except (ValueError, ValidationError) as e:
        raise SteamAuthError(f"Malformed Steam API response: {e}") from e


def authenticate(client: httpx.Client, settings: Settings, params: Mapping[str, str]) -> SteamProfile:
    steam_id = verify_assertion(client, params, callback_url(settings))
    profile = fetch_player_summary(client, settings.steam_api_key, steam_id)
    if profile.steamid != steam_id:
        raise SteamAuthError(f"Steam API returned profile {profile.steamid} for {steam_id}")
    logger.info(f"Steam sign-in verified for {steam_id} ({profile.personaname})")
    return profile
