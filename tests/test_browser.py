"""Unit tests for the requests-backed browser."""
import pytest
import responses
from requests.exceptions import Timeout

from scraper.browser import NavigationError, RequestsBrowser

URL = "https://www.baiedessinges.com/programme/liste/"


@responses.activate
def test_goto_and_evaluate():
    responses.add(responses.GET, URL, body="<html><h1>Programme</h1></html>", status=200)

    with RequestsBrowser(user_agent="TestAgent/1.0") as browser:
        page = browser.new_page()
        response = page.goto(URL, timeout=30)
        title = page.evaluate(lambda soup: soup.h1.get_text())

    assert response.status == 200
    assert page.url == URL
    assert title == "Programme"
    assert page.content() == "<html><h1>Programme</h1></html>"
    assert responses.calls[0].request.headers["User-Agent"] == "TestAgent/1.0"


@responses.activate
def test_set_user_agent_applies_to_requests():
    responses.add(responses.GET, URL, body="ok")
    browser = RequestsBrowser()
    page = browser.new_page()

    page.set_user_agent("Other/2.0")
    page.goto(URL, timeout=30)

    assert responses.calls[0].request.headers["User-Agent"] == "Other/2.0"


@responses.activate
def test_404_is_returned_not_raised():
    responses.add(responses.GET, URL, body="missing", status=404)
    page = RequestsBrowser().new_page()

    assert page.goto(URL, timeout=30).status == 404


@responses.activate
def test_server_error_raises():
    responses.add(responses.GET, URL, status=503)
    page = RequestsBrowser().new_page()

    with pytest.raises(NavigationError) as excinfo:
        page.goto(URL, timeout=30)

    assert excinfo.value.status == 503
    assert excinfo.value.url == URL


@responses.activate
def test_network_error_raises():
    responses.add(responses.GET, URL, body=Timeout("too slow"))
    page = RequestsBrowser().new_page()

    with pytest.raises(NavigationError) as excinfo:
        page.goto(URL, timeout=30)

    assert excinfo.value.status is None
    assert isinstance(excinfo.value.__cause__, Timeout)


def test_closed_browser_refuses_new_pages():
    browser = RequestsBrowser()
    browser.close()

    with pytest.raises(RuntimeError):
        browser.new_page()
