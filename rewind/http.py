"""Minimal GET client used by HTTP polling."""

import urllib.error
import urllib.request

OK = 200


def status(url, timeout=10):
    """GET url and return the response status code.

    Returns None when nothing answered (connection refused, DNS failure,
    socket timeout): for a poll that is "not up yet", not an error.
    """
    request = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status
    except urllib.error.HTTPError as e:
        return e.code
    except OSError:
        return None
