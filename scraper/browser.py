"""Minimal page-navigation interface backed by requests and BeautifulSoup."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class NavigationError(Exception):
    """Raised when a page cannot be loaded."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"Failed to load {url}: {message}")
        self.url = url
        self.status = status


@dataclass
class PageResponse:
    """Result of a navigation."""
    url: str
    status: int


class Page(Protocol):
    """What the crawler needs from a loaded page."""

    url: Optional[str]

    def goto(self, url: str, timeout: float) -> PageResponse:
        ...

    def evaluate(self, script: Callable[[BeautifulSoup], Any]) -> Any:
        ...

    def set_user_agent(self, user_agent: str) -> None:
        ...

    def content(self) -> str:
        ...


class RequestsPage:
    """
    A page loaded with a plain HTTP GET.

    ``evaluate`` runs a callable against the parsed document, the way a
    headless browser would run a script in the page context.
    """

    def __init__(self, session: requests.Session):
        self.session = session
        self.url: Optional[str] = None
        self._html = ''
        self._soup: Optional[BeautifulSoup] = None

    def goto(self, url: str, timeout: float) -> PageResponse:
        """
        Load a URL into the page.

        Args:
            url: Page URL
            timeout: Request timeout in seconds

        Returns:
            PageResponse with the final URL and HTTP status

        Raises:
            NavigationError: On network failure or an HTTP error other than 404
        """
        logger.debug(f"Navigating to {url}")
        try:
            response = self.session.get(url, timeout=timeout)
        except requests.RequestException as e:
            raise NavigationError(url, str(e)) from e

        self.url = response.url or url
        self._html = response.text
        self._soup = None

        # 404 is how the site says a feed has no more pages
        if response.status_code >= 400 and response.status_code != 404:
            raise NavigationError(
                url, f"HTTP {response.status_code}", status=response.status_code
            )

        return PageResponse(url=self.url, status=response.status_code)

    def evaluate(self, script: Callable[[BeautifulSoup], Any]) -> Any:
        if self._soup is None:
            self._soup = BeautifulSoup(self._html, 'html.parser')
        return script(self._soup)

    def set_user_agent(self, user_agent: str) -> None:
        self.session.headers['User-Agent'] = user_agent

    def content(self) -> str:
        return self._html


class RequestsBrowser:
    """Browser session sharing one HTTP connection pool across pages."""

    def __init__(self, user_agent: Optional[str] = None):
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'fr-FR,fr;q=0.9,en;q=0.8',
        })
        if user_agent:
            self.session.headers['User-Agent'] = user_agent
        self._closed = False

    def new_page(self) -> RequestsPage:
        if self._closed:
            raise RuntimeError("Browser session is closed")
        return RequestsPage(self.session)

    def close(self) -> None:
        if not self._closed:
            self.session.close()
            self._closed = True
            logger.info("Browser session closed")

    def __enter__(self) -> 'RequestsBrowser':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
