# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Miscellaneous support functions for davguard.

Generic dictionary and header helpers are re-exported from ``wsgidav.util``,
so configuration and middleware code can import everything from here.
"""

import base64
import binascii
import logging
import posixpath
import stat
import sys
from typing import Optional, Tuple

from wsgidav.util import (  # noqa: F401
    deep_update,
    fix_path,
    get_dict_value,
    get_rfc1123_time,
    purge_passwords,
    to_bytes,
    to_set,
    to_str,
    update_headers_in_place,
)

__docformat__ = "reStructuredText"

#: The base logger (silent by default)
BASE_LOGGER_NAME = "davguard"
#: Base logger of the WebDAV protocol engine
ENGINE_LOGGER_NAME = "wsgidav"

_logger = logging.getLogger(BASE_LOGGER_NAME)

#: Currently used Python version as string
PYTHON_VERSION = ".".join([str(s) for s in sys.version_info[:3]])

DEFAULT_LOGGER_DATE_FORMAT = "%H:%M:%S"
DEFAULT_LOGGER_FORMAT = "%(asctime)s.%(msecs)03d - %(levelname)-8s: %(message)s"

_VERBOSE_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
}


# ========================================================================
# Logging
# ========================================================================


def _level_for_verbose(verbose):
    if verbose >= 4:
        return logging.DEBUG
    return _VERBOSE_LEVELS.get(max(0, verbose), logging.CRITICAL)


def init_logging(config):
    """Initialize the base logger named 'davguard'.

    The base logger is filtered by the `verbose` configuration option.
    The engine logger ('wsgidav') shares the console handler, but is kept one
    level quieter, so request summaries are only written once.

    Log Level Matrix
    ~~~~~~~~~~~~~~~~

    +---------+--------+-------------+------------------------+---------------+
    | Verbose | Option | base logger | module logger(enabled) | engine logger |
    +=========+========+=============+========================+===============+
    |    0    | -qqq   | CRITICAL    | CRITICAL               | CRITICAL      |
    +---------+--------+-------------+------------------------+---------------+
    |    1    | -qq    | ERROR       | ERROR                  | CRITICAL      |
    +---------+--------+-------------+------------------------+---------------+
    |    2    | -q     | WARN        | WARN                   | ERROR         |
    +---------+--------+-------------+------------------------+---------------+
    |    3    |        | INFO        | **DEBUG**              | WARN          |
    +---------+--------+-------------+------------------------+---------------+
    |    4    | -v     | DEBUG       | DEBUG                  | INFO          |
    +---------+--------+-------------+------------------------+---------------+
    |    5    | -vv    | DEBUG       | DEBUG                  | DEBUG         |
    +---------+--------+-------------+------------------------+---------------+

    """
    verbose = config.get("verbose", 3)
    log_opts = config.get("logging") or {}

    enable_loggers = log_opts.get("enable_loggers") or []
    logger_date_format = log_opts.get("logger_date_format", DEFAULT_LOGGER_DATE_FORMAT)
    logger_format = log_opts.get("logger_format", DEFAULT_LOGGER_FORMAT)

    formatter = logging.Formatter(logger_format, logger_date_format)

    consoleHandler = logging.StreamHandler(sys.stdout)
    consoleHandler.setFormatter(formatter)

    for name, level in (
        (BASE_LOGGER_NAME, _level_for_verbose(verbose)),
        (ENGINE_LOGGER_NAME, _level_for_verbose(verbose - 1)),
    ):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # Don't call the root's handlers after our custom handlers
        logger.propagate = False

        # Remove previous handlers
        for hdlr in logger.handlers[:]:  # Must iterate an array copy
            try:
                hdlr.flush()
                hdlr.close()
            except Exception:
                pass
            logger.removeHandler(hdlr)

        logger.addHandler(consoleHandler)

    if verbose >= 3:
        for e in enable_loggers:
            e = e.strip()
            if not e.startswith(BASE_LOGGER_NAME + "."):
                e = BASE_LOGGER_NAME + "." + e
            logging.getLogger(e).setLevel(logging.DEBUG)
    return


def get_module_logger(moduleName):
    """Create a module logger, that can be en/disabled by configuration.

    @see: util.init_logging
    """
    if not moduleName.startswith(BASE_LOGGER_NAME + "."):
        moduleName = BASE_LOGGER_NAME + "." + moduleName
    return logging.getLogger(moduleName)


# ========================================================================
# WSGI paths
# ========================================================================


def wsgi_to_text(s: str) -> str:
    """Decode a WSGI 'bytes-as-latin-1' string as UTF-8.

    Falls back to the unchanged value if it is not valid UTF-8 (or was already
    decoded by the server).
    """
    try:
        return s.encode("iso-8859-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return s


def normalize_path(path: str) -> str:
    """Collapse '.', '..' and duplicate slashes; keep a trailing slash.

    The result always starts with '/' and never climbs above the root:
    ``normalize_path("/a/../../b/")`` returns ``"/b/"``.
    """
    if not path:
        return "/"
    trailing = path.endswith("/")
    res = posixpath.normpath("/" + path.lstrip("/"))
    # normpath keeps a leading '//' (POSIX allows implementation-defined meaning)
    res = "/" + res.lstrip("/")
    if trailing and res != "/":
        res += "/"
    return res


def normalize_prefix(prefix: Optional[str]) -> str:
    """Return '' for the root prefix, else '/a/b' (leading but no trailing slash)."""
    if not prefix:
        return ""
    prefix = "/" + prefix.strip("/")
    return "" if prefix == "/" else prefix


def strip_prefix(prefix: str, path: str) -> Optional[str]:
    """Return `path` relative to `prefix` ('/...'), or None if it is outside.

    Matching is done on whole segments: '/dav' matches '/dav' and '/dav/x',
    but not '/davx'.
    """
    if not prefix:
        return path or "/"
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix) :]
    return None


# ========================================================================
# HTTP Basic authentication
# ========================================================================


def calc_base64(s):
    """Return base64 encoded string (used to build Basic auth headers)."""
    s = to_bytes(s)
    s = base64.b64encode(s)
    return to_str(s)


def parse_basic_auth(environ) -> Optional[Tuple[str, str]]:
    """Return (user_name, password) from a Basic `Authorization` header.

    Returns None if the header is missing, uses another scheme, or is
    malformed.
    """
    auth_header = environ.get("HTTP_AUTHORIZATION", "")
    scheme, _sep, auth_value = auth_header.strip().partition(" ")
    if scheme.lower() != "basic" or not auth_value.strip():
        return None
    try:
        auth_value = base64.b64decode(auth_value.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None
    try:
        auth_value = auth_value.decode("utf-8")
    except UnicodeDecodeError:
        auth_value = auth_value.decode("iso-8859-1")
    if ":" not in auth_value:
        return None
    user_name, password = auth_value.split(":", 1)
    return user_name, password


def is_dir_stat(info) -> bool:
    """Return True if an ``os.stat_result`` describes a directory."""
    return stat.S_ISDIR(info.st_mode)
