# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI middleware used for CORS support (optional).

Respond to CORS preflight OPTIONS requests and inject CORS headers into all
other responses. Preflight requests are answered here, i.e. they never reach
the authentication step of the dispatcher.

Configuration::

    cors:
      allow_origin: "*"            # or a list of origins
      allow_methods: [GET, PROPFIND, PUT]   # default: all WebDAV methods
      allow_headers: [Authorization, Depth, Content-Type]
      expose_headers: [DAV, ETag]
      allow_credentials: true
      max_age: 600
      add_always: {"X-Frame-Options": "DENY"}
"""

from wsgidav.mw.base_mw import BaseMiddleware

from davguard import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

#: Returned as `Access-Control-Allow-Methods` if `cors.allow_methods` is unset
DEFAULT_ALLOW_METHODS = (
    "COPY",
    "DELETE",
    "GET",
    "HEAD",
    "LOCK",
    "MKCOL",
    "MOVE",
    "OPTIONS",
    "PROPFIND",
    "PROPPATCH",
    "PUT",
    "UNLOCK",
)


def _join(values):
    return ", ".join(sorted(util.to_set(values)))


def _append_vary(headers, value):
    """Add `value` to the Vary header in `headers`, keeping existing entries."""
    for i, (name, old) in enumerate(headers):
        if name.lower() == "vary":
            tokens = [t.strip() for t in old.split(",") if t.strip()]
            if "*" not in tokens and value.lower() not in (t.lower() for t in tokens):
                headers[i] = (name, ", ".join(tokens + [value]))
            return
    headers.append(("Vary", value))


class Cors(BaseMiddleware):
    def __init__(self, wsgidav_app, next_app, config):
        super().__init__(wsgidav_app, next_app, config)
        opts = config.get("cors") or {}

        allow_origins = opts.get("allow_origin")
        if type(allow_origins) is str:
            allow_origins = allow_origins.strip()
            if allow_origins != "*":
                allow_origins = [allow_origins]
        elif allow_origins:
            allow_origins = [ao.strip() for ao in allow_origins]
        else:
            allow_origins = []

        allow_methods = _join(opts.get("allow_methods") or DEFAULT_ALLOW_METHODS)
        allow_headers = _join(opts.get("allow_headers") or [])
        expose_headers = _join(opts.get("expose_headers") or [])
        max_age = opts.get("max_age")
        always_headers = opts.get("add_always")

        self.allow_credentials = bool(opts.get("allow_credentials", False))

        add_always = []
        if self.allow_credentials:
            add_always.append(("Access-Control-Allow-Credentials", "true"))
        if always_headers:
            if type(always_headers) is not dict:
                raise ValueError(f"cors.add_always must be a dict: {always_headers}")
            for n, v in always_headers.items():
                add_always.append((n, str(v)))

        add_non_preflight = add_always[:]
        if expose_headers:
            add_non_preflight.append(("Access-Control-Expose-Headers", expose_headers))

        add_preflight = add_always[:]
        add_preflight.append(("Access-Control-Allow-Methods", allow_methods))
        if allow_headers:
            add_preflight.append(("Access-Control-Allow-Headers", allow_headers))
        if max_age:
            add_preflight.append(("Access-Control-Max-Age", str(int(max_age))))

        self.non_preflight_headers = add_non_preflight
        self.preflight_headers = add_preflight
        #: Either '*' or a list of origins
        self.allow_origins = allow_origins

    def __repr__(self):
        return f"{self.__module__}.{self.__class__.__name__}({self.allow_origins})"

    def is_disabled(self):
        return not self.allow_origins

    def _allow_origin_headers(self, origin):
        """Return the Access-Control-Allow-Origin headers for `origin` (or None)."""
        if not origin:
            return None
        if self.allow_origins == "*":
            if self.allow_credentials:
                # Browsers reject '*' for credentialed requests
                return [("Access-Control-Allow-Origin", origin), ("Vary", "Origin")]
            return [("Access-Control-Allow-Origin", "*")]
        if origin in self.allow_origins:
            return [("Access-Control-Allow-Origin", origin), ("Vary", "Origin")]
        return None

    def __call__(self, environ, start_response):
        method = environ["REQUEST_METHOD"].upper()
        origin = environ.get("HTTP_ORIGIN")
        ac_req_meth = environ.get("HTTP_ACCESS_CONTROL_REQUEST_METHOD")

        acao_headers = self._allow_origin_headers(origin)

        if origin:
            if acao_headers:
                _logger.debug(
                    f"Granted CORS {method} {environ.get('PATH_INFO')!r} "
                    f"{ac_req_meth!r}, origin: {origin!r}"
                )
            else:
                _logger.warning(
                    f"Denied CORS {method} {environ.get('PATH_INFO')!r} "
                    f"{ac_req_meth!r}, origin: {origin!r}"
                )

        is_preflight = method == "OPTIONS" and origin and ac_req_meth is not None

        if is_preflight:
            # Always return 2xx, but only add Access-Control-Allow-Origin etc.
            # if Origin is allowed
            resp_headers = [
                ("Content-Length", "0"),
                ("Date", util.get_rfc1123_time()),
            ]
            if acao_headers:
                resp_headers += acao_headers + self.preflight_headers

            start_response("204 No Content", resp_headers)
            return [b""]

        def wrapped_start_response(status, headers, exc_info=None):
            if acao_headers:
                for name, value in acao_headers:
                    if name == "Vary":
                        _append_vary(headers, value)
                util.update_headers_in_place(
                    headers,
                    [h for h in acao_headers if h[0] != "Vary"]
                    + self.non_preflight_headers,
                )
            return start_response(status, headers, exc_info)

        return self.next_app(environ, wrapped_start_response)
