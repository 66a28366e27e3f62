"""HTTP primitive functions, used for small JSON documents such as the manifest, the
version descriptors and the asset indexes. Bulk artifacts go through the download
module instead.
"""

from urllib.error import HTTPError, URLError
from http.client import HTTPResponse
import urllib.request
import json
import ssl

from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Any, cast


__all__ = ["HttpResponse", "HttpError", "http_request", "DEFAULT_TIMEOUT"]


# Per-connection timeout in seconds, for both requests and downloads.
DEFAULT_TIMEOUT = 10.0


class HttpResponse:
    """An HTTP response containing the status, data and received headers.
    """

    def __init__(self, res: Optional[HTTPResponse]) -> None:

        self.status = 0 if res is None else res.status
        self.data = b"null" if res is None else res.read()
        self.headers = {}

        if res is not None:
            for header_name, header_value in res.getheaders():
                self.headers[header_name] = header_value

    def json(self) -> Any:
        """Parse the data as JSON. This may raise a JSONDecodeError.
        """
        return json.loads(self.data)

    def __repr__(self) -> str:
        return f"<HttpResponse {self.status}>"


class HttpError(Exception):
    """An HTTP error, raised when the status code of the response is not 2xx.

    If any network error happens and it's impossible to receive a response from the
    server, an instance of `HttpResponse` with status equal to 0 is used. The original
    reason for this error is given in the `reason` attribute in any case.
    """

    def __init__(self, res: HttpResponse, method: str, url: str, reason: Exception) -> None:
        self.res = res
        self.method = method
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.method} {self.url}: {self.reason}"

    def __repr__(self) -> str:
        return f"<HttpError {self.res}, origin: {self.method} {self.url}, reason: {self.reason}>"


def http_request(method: str, url: str, *,
    data: Optional[bytes] = None,
    headers: Optional[dict] = None,
    accept: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT
) -> HttpResponse:
    """Make a synchronous HTTP request.

    :return: The response returned should've a status of 2xx.
    :raises HttpError: An error wrapping a response that is not of status 2xx, or a
    response of status 0 if the server could not be reached.
    """

    if headers is None:
        headers = {}
    if accept is not None:
        headers["Accept"] = accept
    if "User-Agent" not in headers:
        headers["User-Agent"] = f"{LAUNCHER_NAME}/{LAUNCHER_VERSION}"

    try:
        req = urllib.request.Request(url, data, headers, method=method)
        res: HTTPResponse = urllib.request.urlopen(req, context=ssl_context(), timeout=timeout)
        return HttpResponse(res)
    except HTTPError as error:
        raise HttpError(HttpResponse(cast(HTTPResponse, error)), method, url, error)
    except URLError as error:
        raise HttpError(HttpResponse(None), method, url, error)
    except OSError as error:
        # Timeouts while reading the body are not wrapped by urllib.
        raise HttpError(HttpResponse(None), method, url, error)


def ssl_context() -> Optional[ssl.SSLContext]:
    """Return an SSL context using certifi's certificates if it's installed, or none to
    use the default context of the platform.
    """
    try:
        import certifi
        return ssl.create_default_context(cafile=certifi.where())
    except ImportError:
        return None
