"""Broker location, resolved from an explicit URL or the environment."""

import os
from urllib.parse import urlparse

from tubeworker.constants import BEANSTALK_URL_ENV, DEFAULT_BEANSTALK_PORT, DEFAULT_BEANSTALK_URL
from tubeworker.exception import BadURL


def beanstalk_url(url: str | None = None) -> str:
    """The broker URL: an explicit one wins, then BEANSTALK_URL, then localhost.

    @param url: An explicitly configured URL
    @return: A beanstalk:// URL
    """

    if url:
        return url
    return os.getenv(BEANSTALK_URL_ENV) or DEFAULT_BEANSTALK_URL


def beanstalk_host_and_port(url: str) -> tuple[str, int]:
    """Split a beanstalk:// URL into host and port.

    @param url: e.g. "beanstalk://queue.internal:11301/"
    @return: The host and port, the port defaulting to 11300
    @raises BadURL: If the scheme isn't beanstalk or there's no host
    """

    parsed = urlparse(url)
    if parsed.scheme != "beanstalk" or not parsed.hostname:
        raise BadURL(url)

    try:
        port = parsed.port
    except ValueError as err:
        raise BadURL(url) from err

    return parsed.hostname, port or DEFAULT_BEANSTALK_PORT
