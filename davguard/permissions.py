# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Path and method based permission rules.

A rule set is an ordered list of rules. Every rule has one matcher and one
effect::

    rules:
      - path: "/"                 # prefix, matched on whole path segments
        access: read-only         # allow | deny | read-only
      - path: "/private"
        access: deny
      - regex: "\\.git(/|$)"      # re.search() on the request path
        access: deny
      - path: "/inbox"
        methods: [PUT, MKCOL]     # explicit list of allowed methods

Evaluation of a request path:

- Each matching rule has a specificity: the length of its (normalized) prefix,
  or the end offset of the regex match.
- The most specific matches win. If several rules share that specificity,
  the method is allowed only if *all* of them allow it (deny wins ties).
- If no rule matches, access is denied.
"""

import re
from typing import Iterable, Optional

from davguard import util

__docformat__ = "reStructuredText"

#: Methods that never modify a resource
READ_ONLY_METHODS = frozenset(("GET", "HEAD", "PROPFIND", "OPTIONS"))

ACCESS_ALLOW = "allow"
ACCESS_DENY = "deny"
ACCESS_READ_ONLY = "read-only"

_ACCESS_ALIASES = {
    "allow": ACCESS_ALLOW,
    "deny": ACCESS_DENY,
    "read-only": ACCESS_READ_ONLY,
    "readonly": ACCESS_READ_ONLY,
}


class Rule:
    """A single (matcher, effect) pair. Instances are immutable by convention."""

    __slots__ = ("path", "regex", "access", "methods")

    def __init__(self, *, path=None, regex=None, access=None, methods=None):
        if (path is None) == (regex is None):
            raise ValueError("A rule needs exactly one of 'path' or 'regex'.")
        if (access is None) == (methods is None):
            raise ValueError("A rule needs exactly one of 'access' or 'methods'.")

        if path is not None:
            path = "/" + str(path).strip("/")
        if regex is not None:
            try:
                regex = re.compile(regex)
            except re.error as e:
                raise ValueError(f"Invalid rule regex {regex!r}: {e}") from e

        if access is not None:
            key = str(access).strip().lower()
            if key not in _ACCESS_ALIASES:
                raise ValueError(
                    f"Invalid rule access {access!r} "
                    f"(expected {', '.join(sorted(_ACCESS_ALIASES))})"
                )
            access = _ACCESS_ALIASES[key]
        else:
            try:
                methods = util.to_set(methods, raise_error=True)
            except TypeError as e:
                raise ValueError(f"Invalid rule methods {methods!r}") from e
            methods = frozenset(m.strip().upper() for m in methods)

        self.path = path
        self.regex = regex
        self.access = access
        self.methods = methods

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ValueError(f"Rule must be a dict: {d!r}")
        unknown = set(d) - {"path", "regex", "access", "methods"}
        if unknown:
            raise ValueError(f"Unknown rule option(s) {sorted(unknown)}: {d!r}")
        return cls(
            path=d.get("path"),
            regex=d.get("regex"),
            access=d.get("access"),
            methods=d.get("methods"),
        )

    def __repr__(self):
        matcher = (
            f"path={self.path!r}"
            if self.regex is None
            else f"regex={self.regex.pattern!r}"
        )
        effect = (
            f"access={self.access!r}"
            if self.methods is None
            else f"methods={sorted(self.methods)}"
        )
        return f"Rule({matcher}, {effect})"

    def match(self, path: str) -> Optional[int]:
        """Return the specificity of this rule for `path`, or None."""
        if self.regex is not None:
            m = self.regex.search(path)
            return None if m is None else m.end()
        if self.path == "/":
            return 1
        if path == self.path or path.startswith(self.path + "/"):
            return len(self.path)
        return None

    def permits(self, method: str) -> bool:
        if self.methods is not None:
            return method in self.methods
        if self.access == ACCESS_ALLOW:
            return True
        if self.access == ACCESS_READ_ONLY:
            return method in READ_ONLY_METHODS
        return False


class RuleSet:
    """Ordered, immutable collection of :class:`Rule` objects."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules = tuple(rules)

    @classmethod
    def from_config(cls, rule_list):
        """Build a rule set from a list of dicts (or Rule instances)."""
        if rule_list is None:
            rule_list = []
        if not isinstance(rule_list, (list, tuple)):
            raise ValueError(f"'rules' must be a list: {rule_list!r}")
        rules = []
        for r in rule_list:
            rules.append(r if isinstance(r, Rule) else Rule.from_dict(r))
        return cls(rules)

    def __repr__(self):
        return f"RuleSet({list(self._rules)})"

    def __len__(self):
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def is_allowed(self, method: str, path: str) -> bool:
        """Return True if `method` is allowed on `path` (relative to the prefix)."""
        method = method.upper()
        best = 0
        winners = []
        for rule in self._rules:
            specificity = rule.match(path)
            if specificity is None:
                continue
            if specificity > best:
                best = specificity
                winners = [rule]
            elif specificity == best:
                winners.append(rule)

        if not winners:
            return False
        return all(rule.permits(method) for rule in winners)


def allowed(tenant, method: str, path: str) -> bool:
    """Decide if `tenant` may perform `method` on `path`."""
    return tenant.rules.is_allowed(method, path)
