# linwheel/services/linkedin_api.py
import logging
import re
import secrets
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode, quote

import httpx

from linwheel.config import settings
from linwheel.db import token_crypto

logger = logging.getLogger(__name__)

AUTH_URL = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
REST_BASE = "https://api.linkedin.com/rest"
FEED_URL = "https://www.linkedin.com/feed/update/"

OAUTH_STATE_MAX_AGE = 15 * 60

# error codes
NOT_CONNECTED = "NOT_CONNECTED"
TOKEN_EXPIRED = "TOKEN_EXPIRED"
RATE_LIMITED = "RATE_LIMITED"
IMAGE_UPLOAD_FAILED = "IMAGE_UPLOAD_FAILED"
DOCUMENT_UPLOAD_FAILED = "DOCUMENT_UPLOAD_FAILED"
POST_FAILED = "POST_FAILED"
CONTENT_REJECTED = "CONTENT_REJECTED"
OAUTH_ERROR = "OAUTH_ERROR"
API_ERROR = "API_ERROR"

USER_MESSAGES = {
    NOT_CONNECTED: "Please connect your LinkedIn account first.",
    TOKEN_EXPIRED: "Your LinkedIn connection has expired. Please reconnect.",
    RATE_LIMITED: "LinkedIn rate limit reached. Please try again later.",
    IMAGE_UPLOAD_FAILED: "Failed to upload image to LinkedIn. Try again or post without an image.",
    DOCUMENT_UPLOAD_FAILED: "Failed to upload document to LinkedIn. Try again or check PDF format.",
    POST_FAILED: "Failed to publish to LinkedIn. Please try again.",
    CONTENT_REJECTED: "LinkedIn rejected the content. It may violate their policies.",
    OAUTH_ERROR: "LinkedIn authorization failed. Please try connecting again.",
    API_ERROR: "LinkedIn API error. Please try again later.",
}


class LinkedInError(Exception):
    def __init__(self, code: str, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or USER_MESSAGES.get(code, code))
        self.code = code
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, USER_MESSAGES[API_ERROR])

    @property
    def requires_reconnect(self) -> bool:
        return self.code in (TOKEN_EXPIRED, NOT_CONNECTED)

    @property
    def is_retriable(self) -> bool:
        return self.code in (RATE_LIMITED, API_ERROR)


def error_from_response(resp: httpx.Response, default_code: str) -> LinkedInError:
    if resp.status_code == 401:
        code = TOKEN_EXPIRED
    elif resp.status_code == 429:
        code = RATE_LIMITED
    elif resp.status_code == 403:
        code = CONTENT_REJECTED
    else:
        code = default_code
    return LinkedInError(code, f"LinkedIn API error ({resp.status_code}): {resp.text[:500]}", resp.status_code)


# Helper: log request id if present in LinkedIn response
def log_request_id(resp: httpx.Response) -> None:
    req_id = resp.headers.get("x-restli-request-id") or resp.headers.get("x-li-request-id")
    if req_id:
        logger.info("LinkedIn request id: %s", req_id)


# Helper: retry logic for the OAuth token endpoint (publishing never retries)
def linkedin_request_with_retry(method: str, url: str, **kwargs) -> httpx.Response:
    max_attempts = 3
    backoff = 2
    for attempt in range(1, max_attempts + 1):
        try:
            with httpx.Client(timeout=httpx.Timeout(30, connect=5)) as c:
                resp = c.request(method, url, **kwargs)
            log_request_id(resp)
            if resp.status_code in (429, 500, 502, 503, 504) and attempt < max_attempts:
                logger.warning("%s attempt %d got %d, retrying", url, attempt, resp.status_code)
                time.sleep(backoff * attempt)
                continue
            return resp
        except httpx.RequestError as e:
            logger.warning("request error on %s: %s", url, e)
            if attempt < max_attempts:
                time.sleep(backoff * attempt)
                continue
            raise LinkedInError(API_ERROR, str(e)) from e
    raise LinkedInError(API_ERROR, f"LinkedIn API failed after {max_attempts} attempts")


# --- OAuth ---

def create_oauth_state(user_id: str) -> str:
    return token_crypto.seal_json({
        "user_id": user_id,
        "nonce": secrets.token_urlsafe(16),
        "timestamp": int(time.time()),
    })


def verify_oauth_state(state: str) -> Optional[str]:
    """Return the user id the state was issued for, or None when invalid or older than 15 minutes."""
    data = token_crypto.open_json(state, max_age_seconds=OAUTH_STATE_MAX_AGE)
    if not data or not data.get("user_id") or not data.get("nonce"):
        return None
    if time.time() - int(data.get("timestamp", 0)) > OAUTH_STATE_MAX_AGE:
        return None
    return str(data["user_id"])


def auth_url(state: str, scopes: Optional[str] = None) -> str:
    params = {
        "response_type": "code",
        "client_id": settings.linkedin_client_id,
        "redirect_uri": settings.linkedin_redirect_uri,
        "scope": scopes or settings.linkedin_scopes,
        "state": state,
    }
    qs = urlencode(params, quote_via=quote, safe=":/")
    return f"{AUTH_URL}?{qs}"


def _token_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    resp = linkedin_request_with_retry(
        "POST", TOKEN_URL,
        data=payload,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    if resp.status_code != 200:
        raise LinkedInError(OAUTH_ERROR, f"Token request failed ({resp.status_code}): {resp.text[:300]}", resp.status_code)
    data = resp.json()
    if not data.get("access_token"):
        raise LinkedInError(OAUTH_ERROR, "No access_token in token response")
    return data


def exchange_code_for_token(code: str) -> Dict[str, Any]:
    return _token_request({
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": settings.linkedin_redirect_uri,
        "client_id": settings.linkedin_client_id,
        "client_secret": settings.linkedin_client_secret,
    })


def exchange_refresh_for_token(refresh_token: str) -> Dict[str, Any]:
    return _token_request({
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": settings.linkedin_client_id,
        "client_secret": settings.linkedin_client_secret,
    })


def get_user_info(access_token: str) -> Dict[str, Any]:
    """OpenID userinfo: sub, name, email, picture."""
    with httpx.Client(timeout=httpx.Timeout(30, connect=5)) as c:
        r = c.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
    log_request_id(r)
    if r.status_code != 200:
        raise error_from_response(r, OAUTH_ERROR)
    data = r.json()
    if not data.get("sub"):
        raise LinkedInError(OAUTH_ERROR, "userinfo response missing 'sub'")
    return data


# --- posting ---

def person_urn(profile_id: str) -> str:
    return profile_id if profile_id.startswith("urn:li:person:") else f"urn:li:person:{profile_id}"


def post_url(urn: str) -> str:
    return f"{FEED_URL}{urn}"


# reserved characters of LinkedIn's "little text" commentary format
_LITTLE_TEXT_RESERVED = re.compile(r"([\\|{}@\[\]()<>#*_~])")

def escape_commentary(text: str) -> str:
    return _LITTLE_TEXT_RESERVED.sub(r"\\\1", text)


class LinkedInClient:
    def __init__(self, access_token: str, author_urn: str, timeout: float = 60.0):
        if not access_token:
            raise LinkedInError(NOT_CONNECTED)
        self.access_token = access_token
        self.author_urn = person_urn(author_urn)
        self.timeout = timeout

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        h = {
            "Authorization": f"Bearer {self.access_token}",
            "LinkedIn-Version": settings.linkedin_api_version,
            "X-Restli-Protocol-Version": "2.0.0",
        }
        if json_body:
            h["Content-Type"] = "application/json"
        return h

    def _initialize_upload(self, kind: str, failure_code: str) -> Dict[str, Any]:
        url = f"{REST_BASE}/{kind}?action=initializeUpload"
        payload = {"initializeUploadRequest": {"owner": self.author_urn}}
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.post(url, headers=self._headers(), json=payload)
        except httpx.RequestError as e:
            raise LinkedInError(failure_code, str(e)) from e
        log_request_id(r)
        if r.status_code != 200:
            raise error_from_response(r, failure_code)
        return r.json().get("value") or {}

    def _put_bytes(self, upload_url: str, data: bytes, content_type: str, failure_code: str) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.put(upload_url, headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": content_type,
                }, content=data)
        except httpx.RequestError as e:
            raise LinkedInError(failure_code, str(e)) from e
        if r.status_code not in (200, 201):
            raise LinkedInError(failure_code, f"upload returned {r.status_code}", r.status_code)

    def upload_image(self, image_bytes: bytes, content_type: str = "image/png") -> str:
        init = self._initialize_upload("images", IMAGE_UPLOAD_FAILED)
        upload_url, image_urn = init.get("uploadUrl"), init.get("image")
        if not upload_url or not image_urn:
            raise LinkedInError(IMAGE_UPLOAD_FAILED, "initializeUpload response missing uploadUrl/image")
        self._put_bytes(upload_url, image_bytes, content_type, IMAGE_UPLOAD_FAILED)
        logger.info("uploaded image %s", image_urn)
        return image_urn

    def upload_document(self, pdf_bytes: bytes) -> str:
        init = self._initialize_upload("documents", DOCUMENT_UPLOAD_FAILED)
        upload_url, doc_urn = init.get("uploadUrl"), init.get("document")
        if not upload_url or not doc_urn:
            raise LinkedInError(DOCUMENT_UPLOAD_FAILED, "initializeUpload response missing uploadUrl/document")
        self._put_bytes(upload_url, pdf_bytes, "application/pdf", DOCUMENT_UPLOAD_FAILED)
        logger.info("uploaded document %s", doc_urn)
        return doc_urn

    def create_post(
        self,
        commentary: str,
        media_urn: Optional[str] = None,
        alt_text: Optional[str] = None,
        media_title: Optional[str] = None,
    ) -> Dict[str, str]:
        payload: Dict[str, Any] = {
            "author": self.author_urn,
            "commentary": escape_commentary(commentary),
            "visibility": "PUBLIC",
            "distribution": {
                "feedDistribution": "MAIN_FEED",
                "targetEntities": [],
                "thirdPartyDistributionChannels": [],
            },
            "lifecycleState": "PUBLISHED",
            "isReshareDisabledByAuthor": False,
        }
        if media_urn:
            media: Dict[str, Any] = {"id": media_urn}
            if media_title:
                media["title"] = media_title
            elif alt_text:
                media["altText"] = alt_text
            payload["content"] = {"media": media}

        try:
            with httpx.Client(timeout=self.timeout) as c:
                r = c.post(f"{REST_BASE}/posts", headers=self._headers(), json=payload)
        except httpx.RequestError as e:
            raise LinkedInError(API_ERROR, str(e)) from e
        log_request_id(r)
        if r.status_code not in (200, 201):
            logger.warning("create post failed: %s %s", r.status_code, r.text[:300])
            raise error_from_response(r, POST_FAILED)
        urn = r.headers.get("x-restli-id") or r.headers.get("x-linkedin-id")
        if not urn:
            raise LinkedInError(POST_FAILED, "LinkedIn did not return a post id")
        return {"post_urn": urn, "post_url": post_url(urn)}
