# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI container, that handles the HTTP requests. This object is passed to the
WSGI server and represents the davguard application to the outside.

On init:

    Merge the configuration with the defaults.

    Create the credential store and one tenant handler per tenant (or a single
    handler for the anonymous tenant). Every handler owns a
    ``ScopedFilesystemProvider`` and a ``WsgiDAVApp`` engine that publishes
    this provider on '/' with its own in-memory lock storage.

    Set up the WSGI stack: ``Cors`` (optional) -> ``Dispatcher`` -> engine.

For every request:

    Pass the request to the stack and log a single summary line.
"""

import copy
import time

from wsgidav.error_printer import ErrorPrinter
from wsgidav.http_authenticator import HTTPAuthenticator
from wsgidav.request_resolver import RequestResolver
from wsgidav.wsgidav_app import WsgiDAVApp

from davguard import __version__, util
from davguard.credential_store import CredentialStore, Tenant
from davguard.default_conf import DEFAULT_CONFIG
from davguard.dispatcher import Dispatcher, TenantHandler
from davguard.fs_provider import ScopedFilesystemProvider
from davguard.mw.cors import Cors

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


def _check_config(config):
    errors = []

    if not config.get("users") and not config.get("root"):
        errors.append("Missing required option 'root' (no users are configured).")

    for field in ("rules", "users"):
        if config.get(field) is not None and not isinstance(
            config[field], (list, tuple)
        ):
            errors.append(f"Option {field!r} must be a list.")

    if not isinstance(config.get("cors") or {}, dict):
        errors.append("Option 'cors' must be a dict.")

    if errors:
        raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    return True


# ========================================================================
# DavGuardApp
# ========================================================================
class DavGuardApp:
    def __init__(self, config):
        self.config = copy.deepcopy(DEFAULT_CONFIG)
        util.deep_update(self.config, config)
        config = self.config

        if config["logging"].get("enable") is not False:
            util.init_logging(config)

        _check_config(config)

        self.verbose = config.get("verbose", 3)
        self.prefix = util.normalize_prefix(config.get("prefix"))
        self.no_sniff = bool(config.get("no_sniff"))

        self.store = CredentialStore.from_config(config)

        anonymous = None
        if not len(self.store):
            anonymous = Tenant(
                "", None, util.fix_path(config["root"], config), config.get("rules")
            )

        self.dispatcher = Dispatcher(
            self.store,
            anonymous,
            self.make_handler,
            prefix=self.prefix,
            realm=config.get("realm"),
        )

        # This is the 'outer' application, i.e. the WSGI application object that
        # is eventually called by the server.
        self.application = self.dispatcher
        cors = Cors(self, self.application, config)
        if cors.is_disabled():
            _logger.debug("CORS middleware is disabled (no cors.allow_origin).")
        else:
            self.application = cors

        _logger.info(f"davguard/{__version__} Python/{util.PYTHON_VERSION}")
        if self.verbose >= 3:
            _logger.info(f"Prefix:     {self.prefix or '/'!r}")
            _logger.info(f"Dispatcher: {self.dispatcher}")
            if self.application is cors:
                _logger.info(f"CORS:       {cors}")
            handlers = (
                [self.dispatcher.anonymous_handler]
                if self.dispatcher.anonymous_handler
                else self.dispatcher.handlers.values()
            )
            for handler in handlers:
                _logger.info(f"  - {handler}")

        if not self.dispatcher.is_multi_tenant:
            _logger.warning("No users configured: anonymous access is granted.")
        elif not config.get("ssl_certificate"):
            _logger.warning(
                "Basic authentication is enabled: It is highly recommended to enable SSL."
            )
        return

    def make_engine_config(self, provider):
        """Return the WsgiDAV configuration for an engine that serves `provider`.

        Authentication is handled by the dispatcher, so the engine accepts
        anonymous requests.
        """
        config = self.config
        return {
            "provider_mapping": {"/": provider},
            "mount_path": self.prefix or None,
            "middleware_stack": [ErrorPrinter, HTTPAuthenticator, RequestResolver],
            "http_authenticator": {
                "domain_controller": None,
                "accept_basic": False,
                "accept_digest": False,
                "default_to_digest": False,
            },
            "simple_dc": {"user_mapping": {"*": True}},
            "lock_storage": config.get("lock_storage", True),
            "property_manager": config.get("property_manager", True),
            "fs_dav_provider": dict(config.get("fs_dav_provider") or {}),
            "verbose": self.verbose,
            "logging": {"enable": False},
        }

    def make_handler(self, tenant):
        """Create the filesystem provider and protocol engine of a tenant."""
        if not len(tenant.rules):
            _logger.warning(f"{tenant}: no permission rules, all requests are denied.")
        provider = ScopedFilesystemProvider(
            tenant.root,
            no_sniff=self.no_sniff,
            fs_opts=dict(self.config.get("fs_dav_provider") or {}),
        )
        engine = WsgiDAVApp(self.make_engine_config(provider))
        return TenantHandler(tenant, provider, engine)

    def __call__(self, environ, start_response):
        start_time = time.time()
        method = environ.get("REQUEST_METHOD")
        path = environ.get("PATH_INFO", "")

        def _start_response_wrapper(status, response_headers, exc_info=None):
            if self.verbose >= 3:
                user_info = environ.get("davguard.user_name") or "(anonymous)"
                extra = []
                if "HTTP_DESTINATION" in environ:
                    extra.append('dest="{}"'.format(environ.get("HTTP_DESTINATION")))
                if environ.get("CONTENT_LENGTH", "") != "":
                    extra.append("length={}".format(environ.get("CONTENT_LENGTH")))
                if "HTTP_DEPTH" in environ:
                    extra.append("depth={}".format(environ.get("HTTP_DEPTH")))
                if "HTTP_RANGE" in environ:
                    extra.append("range={}".format(environ.get("HTTP_RANGE")))
                if environ.get("REQUEST_METHOD") != method:
                    extra.append("as={}".format(environ.get("REQUEST_METHOD")))
                extra.append(f"elap={time.time() - start_time:.3f}sec")
                _logger.info(
                    '{addr} - {user} - "{method} {path}" {extra} -> {status}'.format(
                        addr=environ.get("REMOTE_ADDR", ""),
                        user=user_info,
                        method=method,
                        path=util.wsgi_to_text(path),
                        extra=", ".join(extra),
                        status=status,
                    )
                )
            return start_response(status, response_headers, exc_info)

        return self.application(environ, _start_response_wrapper)
