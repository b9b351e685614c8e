# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Tenant records and the read-only table used to authenticate them.

Users are defined in the configuration like this::

    root: /srv/dav/public          # default scope for users without 'root'
    rules:                         # default rules for users without 'rules'
      - {path: "/", access: read-only}
    users:
      - username: alice
        password: "{bcrypt}$2b$12$..."
        root: /srv/dav/alice
        rules:
          - {path: "/", access: allow}
      - username: bob
        password: "{env}BOB_PASSWORD"

Supported password encodings:

``{bcrypt}<hash>``
    A bcrypt hash, verified with the `bcrypt` package.
``{env}<NAME>``
    The plain text password is read from environment variable NAME once, on
    startup.
anything else
    A plain text password.

Plain text passwords are compared in constant time.

If no user is configured, the store is empty and davguard runs in
single-tenant mode: every request is served as the anonymous tenant, built
from the global ``root`` and ``rules`` options.
"""

import hmac
import os
from types import MappingProxyType

import bcrypt

from davguard import util
from davguard.permissions import RuleSet

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

BCRYPT_PREFIX = "{bcrypt}"
ENV_PREFIX = "{env}"


class Tenant:
    """One configured identity with its own scope root and permission rules.

    Attributes are set once on construction and must not be modified, since
    tenants are shared across concurrent requests.
    """

    def __init__(self, username, password, root, rules):
        self.username = username or ""
        self._password = _resolve_password(self.username, password)
        self.root = root
        self.rules = rules if isinstance(rules, RuleSet) else RuleSet.from_config(rules)

    def __repr__(self):
        name = self.username or "(anonymous)"
        return f"Tenant({name!r}, root={self.root!r}, rules={len(self.rules)})"

    @property
    def is_anonymous(self):
        return not self.username

    def check_password(self, password) -> bool:
        """Return True if `password` matches the stored credential."""
        stored = self._password
        if stored is None or password is None:
            return False
        if stored.startswith(BCRYPT_PREFIX):
            hashed = util.to_bytes(stored[len(BCRYPT_PREFIX) :])
            try:
                return bcrypt.checkpw(util.to_bytes(password), hashed)
            except ValueError:
                _logger.error(f"Invalid bcrypt hash configured for {self.username!r}")
                return False
        return hmac.compare_digest(util.to_bytes(stored), util.to_bytes(password))


def _resolve_password(username, password):
    if password is None:
        return None
    password = str(password)
    if password.startswith(ENV_PREFIX):
        var_name = password[len(ENV_PREFIX) :]
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"User {username!r}: environment variable {var_name!r} is not set."
            )
        return value
    return password


class CredentialStore:
    """Immutable username -> :class:`Tenant` table.

    An empty store means: no authentication (single-tenant mode).
    """

    def __init__(self, tenants=()):
        tenant_map = {}
        for tenant in tenants:
            if not tenant.username:
                raise ValueError("Invalid option: users[].username must not be empty.")
            if tenant.username in tenant_map:
                raise ValueError(f"Duplicate user name: {tenant.username!r}")
            tenant_map[tenant.username] = tenant
        self._tenants = MappingProxyType(tenant_map)

    @classmethod
    def from_config(cls, config):
        """Create tenants from ``config["users"]``.

        Missing ``root`` and ``rules`` entries are inherited from the global
        options.
        """
        user_list = config.get("users") or []
        if not isinstance(user_list, (list, tuple)):
            raise ValueError(f"Invalid option: users must be a list: {user_list!r}")

        default_root = config.get("root")
        default_rules = config.get("rules")

        tenants = []
        for idx, user in enumerate(user_list):
            if not isinstance(user, dict):
                raise ValueError(f"Invalid option: users[{idx}] must be a dict.")
            username = user.get("username")
            if not username:
                raise ValueError(f"Invalid option: users[{idx}].username is missing.")
            if user.get("password") in (None, ""):
                raise ValueError(f"Invalid option: users[{idx}].password is missing.")
            root = user.get("root") or default_root
            if not root:
                raise ValueError(
                    f"Invalid option: users[{idx}].root is missing (and no global root)."
                )
            root = util.fix_path(root, config)
            rules = user.get("rules")
            if rules is None:
                rules = default_rules
            tenants.append(Tenant(str(username), user["password"], root, rules))

        return cls(tenants)

    def __repr__(self):
        return f"{self.__class__.__name__}({sorted(self._tenants)})"

    def __len__(self):
        return len(self._tenants)

    def __iter__(self):
        return iter(self._tenants.values())

    def lookup(self, username):
        """Return the tenant for `username` or None if it is not known."""
        if not username:
            return None
        return self._tenants.get(username)
