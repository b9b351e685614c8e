# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Default configuration.
"""

from davguard.util import DEFAULT_LOGGER_DATE_FORMAT, DEFAULT_LOGGER_FORMAT

__docformat__ = "reStructuredText"

# Use these settings, if config file does not define them (or is totally missing)
DEFAULT_VERBOSE = 3

DEFAULT_CONFIG = {
    "server": "cheroot",
    "server_args": {},
    "host": "localhost",
    "port": 8080,
    #: URL prefix of the WebDAV endpoint, e.g. '/dav'
    "prefix": "/",
    #: Scope root of the anonymous tenant (and default for users)
    "root": None,
    #: Report 'application/octet-stream' for all files
    "no_sniff": False,
    #: Realm name sent with the Basic authentication challenge
    "realm": "Restricted",
    #: Permission rules of the anonymous tenant (and default for users).
    #: An empty list denies everything.
    "rules": [],
    #: List of {username, password, root, rules}. Empty: anonymous access
    "users": [],
    "fs_dav_provider": {
        "follow_symlinks": False,
    },
    "lock_storage": True,  # True: in-memory lock table (one per tenant)
    "property_manager": True,  # True: in-memory dead properties
    #: Options for the CORS middleware (disabled unless allow_origin is set)
    "cors": {
        "allow_origin": None,
        "allow_methods": None,
        "allow_headers": None,
        "expose_headers": None,
        "allow_credentials": False,
        "max_age": None,
        "add_always": None,
    },
    #: SSL support (cheroot)
    "ssl_certificate": None,
    "ssl_private_key": None,
    "ssl_certificate_chain": None,
    "ssl_adapter": "builtin",
    #: Verbose Output
    #: 0 - no output
    #: 1 - no output (excepting application exceptions)
    #: 2 - show warnings
    #: 3 - show single line request summaries (for HTTP logging)
    #: 4 - show additional events
    #: 5 - show full request/response header info (HTTP Logging)
    "verbose": DEFAULT_VERBOSE,
    #: Log options
    "logging": {
        "enable": None,  # True: activate 'davguard' logger (in library mode)
        "logger_date_format": DEFAULT_LOGGER_DATE_FORMAT,
        "logger_format": DEFAULT_LOGGER_FORMAT,
        "enable_loggers": [],
    },
}
