"""
Request-level fakes shared by the test modules.
"""
import json
from unittest.mock import Mock


def make_response(status=200, body=None, headers=None):
    """Build a requests-like response Mock."""
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    if body is None:
        resp.json.side_effect = ValueError('No JSON')
        resp.text = ''
    else:
        resp.json.return_value = body
        resp.text = json.dumps(body)
    return resp


class FakeApi:
    """
    Stand-in for requests.get that routes by URL path suffix.

    A route's responder may be a response, an exception instance (raised), a list of
    responders consumed in order (the last one repeats), or a callable taking the params dict.
    Unrouted URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.timeouts = []

    def add(self, path, responder):
        self.routes[path] = responder
        return self

    def calls_to(self, path):
        return [c for c in self.calls if c[0].split('?')[0].endswith(path)]

    def _resolve(self, path, params):
        responder = self.routes[path]
        if isinstance(responder, list):
            responder = responder.pop(0) if len(responder) > 1 else responder[0]
        if isinstance(responder, BaseException):
            raise responder
        if callable(responder) and not isinstance(responder, Mock):
            return responder(params)
        return responder

    def __call__(self, url, headers=None, params=None, timeout=None):
        params = dict(params or {})
        self.calls.append((url, params))
        self.timeouts.append(timeout)
        base = url.split('?')[0]
        # longest suffix wins so /repos/o/r does not shadow /repos/o/r/commits
        for path in sorted(self.routes, key=len, reverse=True):
            if base.endswith(path):
                return self._resolve(path, params)
        return make_response(404, {'message': 'Not Found'})
