"""
BI server client: sign in with a personal access token, download a view
as CSV, and look up a view id from its content URL.

Settings are read from levelup_dashboard.config at call time. With
MOCK_TABLEAU enabled every call is answered locally with simulated data.
"""

import logging
from dataclasses import dataclass
from urllib.parse import unquote

import requests

from .. import config
from ..simulator import generate_long_export

logger = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """BI server authentication, download or lookup failure."""


@dataclass(frozen=True)
class TableauSession:
    token: str
    site_id: str


def _api_root() -> str:
    if not config.TABLEAU_SERVER_URL:
        raise ExportError("TABLEAU_SERVER_URL is not set")
    return f"{config.TABLEAU_SERVER_URL.rstrip('/')}/api/{config.TABLEAU_API_VERSION}"


def _request(method: str, url: str, **kwargs) -> requests.Response:
    try:
        return requests.request(method, url, timeout=config.HTTP_TIMEOUT, **kwargs)
    except requests.exceptions.RequestException as exc:
        logger.error("BI server request failed: %s", exc)
        raise ExportError(f"Request to BI server failed: {exc}") from exc


def authenticate() -> TableauSession:
    """Sign in and return the session token and site id."""
    if config.MOCK_TABLEAU:
        logger.info("Mock mode: returning a fake BI session")
        return TableauSession(token="mock-token", site_id="mock-site-id")

    body = {
        "credentials": {
            "personalAccessTokenName": config.TABLEAU_PAT_NAME,
            "personalAccessTokenSecret": config.TABLEAU_PAT_SECRET,
            "site": {"contentUrl": config.TABLEAU_SITE_ID},
        }
    }
    resp = _request(
        "POST",
        f"{_api_root()}/auth/signin",
        json=body,
        headers={"Accept": "application/json"},
    )
    if not resp.ok:
        logger.error("BI sign-in failed: %s %s", resp.status_code, resp.text)
        raise ExportError(f"Authentication failed: {resp.status_code} {resp.text}")

    credentials = resp.json()["credentials"]
    return TableauSession(token=credentials["token"], site_id=credentials["site"]["id"])


def date_filter(start_date: str | None = None, end_date: str | None = None) -> dict[str, str]:
    """Query parameters restricting a view download to a date range.

    >>> date_filter("2025-12-20", "2025-12-23")
    {'vf_Time Event': '2025-12-20:2025-12-23'}
    """
    if start_date and end_date:
        return {config.DATE_FILTER_FIELD: f"{start_date}:{end_date}"}
    if start_date or end_date:
        return {config.DATE_FILTER_FIELD: start_date or end_date}
    return {}


def fetch_view_csv(
    view_id: str,
    session: TableauSession,
    start_date: str | None = None,
    end_date: str | None = None,
) -> str:
    """Download a view's underlying data as CSV text."""
    if config.MOCK_TABLEAU:
        logger.info("Mock mode: simulating export for view %s", view_id)
        return generate_long_export().to_csv(index=False)

    url = f"{_api_root()}/sites/{session.site_id}/views/{view_id}/data"
    params = date_filter(start_date, end_date)
    resp = _request("GET", url, params=params, headers={"X-Tableau-Auth": session.token})
    if not resp.ok:
        logger.error("View download failed: %s %s", resp.status_code, resp.text)
        raise ExportError(f"Fetching view {view_id} failed: {resp.status_code} {resp.text}")

    logger.info("Fetched view %s (%d bytes)", view_id, len(resp.content))
    return resp.text


def _split_content_url(content_url: str) -> tuple[str, str] | None:
    """'Workbook/sheets/Sheet' or 'views/Workbook/Sheet' -> (workbook, sheet)."""
    parts = [
        p for p in content_url.split("/")
        if p and p.lower() not in ("views", "sheets")
    ]
    if len(parts) < 2:
        return None
    return unquote(parts[-2]).lower(), unquote(parts[-1]).lower()


def _view_matches(view: dict, workbook: str, sheet: str) -> bool:
    content_url = (view.get("contentUrl") or "").lower()
    if f"{workbook}/sheets/{sheet}" in content_url or f"{workbook}/{sheet}" in content_url:
        return True
    workbook_name = ((view.get("workbook") or {}).get("name") or "").lower()
    view_name = (view.get("name") or "").lower()
    return workbook_name == workbook and view_name == sheet


def find_view_by_content_url(content_url: str, session: TableauSession) -> dict | None:
    """Scan the site's views page by page for one matching content_url.

    Returns
    -------
    {"id", "name", "contentUrl"} of the first match, or None.
    """
    if config.MOCK_TABLEAU:
        return {"id": "mock-view-id", "name": "Mock View", "contentUrl": content_url}

    target = _split_content_url(content_url)
    if target is None:
        logger.warning("Cannot parse content URL '%s'", content_url)
        return None
    workbook, sheet = target

    url = f"{_api_root()}/sites/{session.site_id}/views"
    headers = {"X-Tableau-Auth": session.token, "Accept": "application/json"}
    for page in range(1, config.VIEW_MAX_PAGES + 1):
        resp = _request(
            "GET", url, headers=headers,
            params={"pageSize": config.VIEW_PAGE_SIZE, "pageNumber": page},
        )
        # Out-of-range pages come back as 400/404 on some servers
        if resp.status_code in (400, 404):
            break
        if not resp.ok:
            raise ExportError(f"Listing views page {page} failed: {resp.status_code}")

        views = (resp.json().get("views") or {}).get("view") or []
        if not views:
            break
        for view in views:
            if _view_matches(view, workbook, sheet):
                logger.info("Found view '%s' on page %d", view.get("name"), page)
                return {
                    "id": view.get("id"),
                    "name": view.get("name"),
                    "contentUrl": view.get("contentUrl"),
                }

    logger.info("View '%s' not found", content_url)
    return None
