# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI application that authenticates, authorizes and adapts requests before
they are passed to a tenant's WebDAV engine.

Every request passes these gates, in order:

1. Tenant resolution
   If the credential store is empty, the anonymous tenant is used and
   authentication is skipped. Otherwise HTTP Basic credentials are required.
2. Authentication
   Missing or malformed credentials, unknown users and wrong passwords all
   produce the same ``401 Unauthorized`` response.
3. Authorization
   The tenant's rules must allow the method on the requested path (and on
   the ``Destination`` of COPY and MOVE), else ``403 Forbidden``.
4. Method adaptation
   HEAD responses are stripped of their body. A GET on a collection is
   turned into a ``PROPFIND`` with ``Depth: 1`` (unless the client sent a
   Depth header). From RFC 4918, section 9.4:

       GET, when applied to a collection, may return the contents of an
       "index.html" resource, a human-readable view of the contents of the
       collection, or something else altogether.

5. Delegation
   The configured prefix is moved from ``PATH_INFO`` to ``SCRIPT_NAME`` and
   the request is passed to the tenant's engine.

The dispatcher adds these values to the WSGI ``environ``::

    environ["davguard.tenant"] = <Tenant>
    environ["davguard.user_name"] = user name ('' for the anonymous tenant)
"""

from types import MappingProxyType
from urllib.parse import unquote, urlparse

from wsgidav.dav_error import HTTP_NOT_FOUND, DAVError
from wsgidav.util import send_status_response

from davguard import util
from davguard.permissions import allowed

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

DEFAULT_REALM = "Restricted"


# ========================================================================
# TenantHandler
# ========================================================================
class TenantHandler:
    """Binds a tenant to its scoped filesystem provider and protocol engine.

    The engine is any WSGI application that serves requests relative to the
    prefix (usually a ``WsgiDAVApp`` that publishes `provider` on '/').
    """

    def __init__(self, tenant, provider, engine):
        self.tenant = tenant
        self.provider = provider
        self.engine = engine

    def __repr__(self):
        return f"{self.__class__.__name__}({self.tenant!r}, {self.provider!r})"


# ========================================================================
# HeadResponseFilter
# ========================================================================
class HeadResponseFilter:
    """Pass status and headers of a response, but drop all body bytes.

    An instance wraps exactly one HEAD request.
    """

    def __init__(self, start_response):
        self._start_response = start_response

    def start_response(self, status, response_headers, exc_info=None):
        self._start_response(status, response_headers, exc_info)
        return self._write

    @staticmethod
    def _write(data):
        return None

    def iter_response(self, app_iter):
        # Iterating is required: the engine may call start_response() lazily
        try:
            for _data in app_iter:
                pass
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()
        yield b""


# ========================================================================
# Dispatcher
# ========================================================================
class Dispatcher:
    """Resolve the tenant of a request and pass it to the tenant's engine.

    Args:
        store (CredentialStore): empty for single-tenant mode
        anonymous (Tenant | None): tenant used if `store` is empty
        make_handler (callable): ``make_handler(tenant) -> TenantHandler``,
            called once per tenant on construction
        prefix (str): URL prefix ('' or '/a/b')
        realm (str): realm name for the Basic authentication challenge
    """

    error_message_401 = b"Not authorized"

    def __init__(self, store, anonymous, make_handler, *, prefix="", realm=None):
        self.store = store
        self.prefix = util.normalize_prefix(prefix)
        self.realm = realm or DEFAULT_REALM

        if len(store):
            self.anonymous_handler = None
            handlers = {t.username: make_handler(t) for t in store}
        else:
            if anonymous is None:
                raise ValueError("An anonymous tenant is required if no users are defined.")
            self.anonymous_handler = make_handler(anonymous)
            handlers = {}
        self.handlers = MappingProxyType(handlers)

    def __repr__(self):
        mode = "anonymous" if self.anonymous_handler else f"{len(self.handlers)} users"
        return f"{self.__class__.__name__}({self.prefix or '/'!r}, {mode})"

    @property
    def is_multi_tenant(self):
        return self.anonymous_handler is None

    def __call__(self, environ, start_response):
        method = environ["REQUEST_METHOD"].upper()

        head_filter = None
        if method == "HEAD":
            head_filter = HeadResponseFilter(start_response)
            start_response = head_filter.start_response

        app_iter = self._dispatch(environ, start_response, method)

        if head_filter:
            return head_filter.iter_response(app_iter)
        return app_iter

    def _dispatch(self, environ, start_response, method):
        path = util.normalize_path(environ.get("PATH_INFO", ""))
        environ["PATH_INFO"] = path

        # 1. + 2.: Tenant resolution and authentication
        handler = self.resolve_handler(environ)
        if handler is None:
            return self.send_basic_auth_response(environ, start_response)

        tenant = handler.tenant
        environ["davguard.tenant"] = tenant
        environ["davguard.user_name"] = tenant.username

        rel_path = util.strip_prefix(self.prefix, path)
        if rel_path is None:
            _logger.debug(f"Path outside prefix {self.prefix!r}: {path!r}")
            return send_status_response(
                environ, start_response, DAVError(HTTP_NOT_FOUND)
            )
        res_path = util.wsgi_to_text(rel_path)

        # 3. Authorization
        if not self.is_allowed(tenant, method, res_path, environ):
            return self.send_forbidden_response(environ, start_response)

        # 4. Method adaptation
        if method == "GET":
            self._adapt_collection_get(handler, res_path, environ)

        # 5. Delegation
        environ["SCRIPT_NAME"] = environ.get("SCRIPT_NAME", "").rstrip("/") + self.prefix
        environ["PATH_INFO"] = rel_path
        return handler.engine(environ, start_response)

    def resolve_handler(self, environ):
        """Return the TenantHandler for this request, or None if not authenticated."""
        if self.anonymous_handler is not None:
            return self.anonymous_handler

        remote_addr = environ.get("REMOTE_ADDR", "")
        credentials = util.parse_basic_auth(environ)
        user_name = credentials[0] if credentials else ""
        _logger.info(
            f"Login attempt: username={user_name!r}, remote_address={remote_addr!r}"
        )
        if credentials is None:
            _logger.info(
                f"Missing or malformed credentials: remote_address={remote_addr!r}"
            )
            return None

        user_name, password = credentials
        tenant = self.store.lookup(user_name)
        if tenant is None:
            _logger.warning(
                f"Unknown user: username={user_name!r}, remote_address={remote_addr!r}"
            )
            return None

        if not tenant.check_password(password):
            _logger.warning(
                f"Invalid password: username={user_name!r}, remote_address={remote_addr!r}"
            )
            return None

        _logger.info(f"User authorized: username={user_name!r}")
        return self.handlers[tenant.username]

    def is_allowed(self, tenant, method, res_path, environ):
        """Check the tenant's rules for the request path (and COPY/MOVE target)."""
        res = allowed(tenant, method, res_path)
        _logger.debug(
            f"Authorization: allowed={res}, method={method}, path={res_path!r}, "
            f"username={tenant.username!r}"
        )
        if res and method in ("COPY", "MOVE"):
            dest_path = self._destination_path(environ)
            if dest_path is not None:
                res = allowed(tenant, method, dest_path)
                _logger.debug(
                    f"Authorization: allowed={res}, method={method}, "
                    f"destination={dest_path!r}, username={tenant.username!r}"
                )
        if not res:
            _logger.debug(
                f"Forbidden: method={method}, path={res_path!r}, "
                f"username={tenant.username!r}"
            )
        return res

    def _destination_path(self, environ):
        """Return the Destination header as path relative to the prefix (or None)."""
        destination = environ.get("HTTP_DESTINATION")
        if not destination:
            return None
        dest_path = unquote(urlparse(destination).path)
        return util.strip_prefix(self.prefix, util.normalize_path(dest_path))

    def _adapt_collection_get(self, handler, res_path, environ):
        """Turn a GET on a collection into a PROPFIND (depth 1 by default)."""
        try:
            info = handler.provider.stat(res_path)
        except (OSError, DAVError) as e:
            _logger.debug(f"Not adapting GET {res_path!r}: {e}")
            return False

        if not util.is_dir_stat(info):
            return False

        environ["REQUEST_METHOD"] = "PROPFIND"
        if not environ.get("HTTP_DEPTH"):
            environ["HTTP_DEPTH"] = "1"
        _logger.debug(
            f"GET on collection {res_path!r}: PROPFIND, depth={environ['HTTP_DEPTH']}"
        )
        return True

    def send_basic_auth_response(self, environ, start_response):
        _logger.debug(f"401 Not Authorized for realm {self.realm!r} (basic)")
        body = self.error_message_401
        start_response(
            "401 Unauthorized",
            [
                ("WWW-Authenticate", f'Basic realm="{self.realm}"'),
                ("Content-Type", "text/plain; charset=utf-8"),
                ("X-Content-Type-Options", "nosniff"),
                ("Content-Length", str(len(body))),
                ("Date", util.get_rfc1123_time()),
            ],
        )
        return [body]

    def send_forbidden_response(self, environ, start_response):
        start_response(
            "403 Forbidden",
            [("Content-Length", "0"), ("Date", util.get_rfc1123_time())],
        )
        return [b""]
