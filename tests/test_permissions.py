# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for davguard.permissions"""

import unittest

from davguard.credential_store import Tenant
from davguard.permissions import Rule, RuleSet, allowed


class RuleTest(unittest.TestCase):
    def testInvalidRules(self):
        with self.assertRaises(ValueError):
            Rule(access="allow")
        with self.assertRaises(ValueError):
            Rule(path="/", regex="x", access="allow")
        with self.assertRaises(ValueError):
            Rule(path="/")
        with self.assertRaises(ValueError):
            Rule(path="/", access="allow", methods=["GET"])
        with self.assertRaises(ValueError):
            Rule(path="/", access="maybe")
        with self.assertRaises(ValueError):
            Rule(regex="[unclosed", access="allow")
        with self.assertRaises(ValueError):
            Rule(path="/", methods=42)
        with self.assertRaises(ValueError):
            Rule.from_dict({"path": "/", "access": "allow", "modify": True})
        with self.assertRaises(ValueError):
            RuleSet.from_config({"path": "/", "access": "allow"})

    def testPathMatch(self):
        rule = Rule(path="/private/", access="deny")
        self.assertEqual(rule.path, "/private")
        self.assertEqual(rule.match("/private"), 8)
        self.assertEqual(rule.match("/private/"), 8)
        self.assertEqual(rule.match("/private/a/b.txt"), 8)
        self.assertIsNone(rule.match("/privateer"))
        self.assertIsNone(rule.match("/"))

        root = Rule(path="/", access="allow")
        self.assertEqual(root.match("/"), 1)
        self.assertEqual(root.match("/any/thing"), 1)

    def testRegexMatch(self):
        rule = Rule(regex=r"\.git(/|$)", access="deny")
        self.assertEqual(rule.match("/repo/.git"), 10)
        self.assertEqual(rule.match("/repo/.git/config"), 11)
        self.assertIsNone(rule.match("/repo/.github"))

    def testPermits(self):
        rw = Rule(path="/", access="allow")
        ro = Rule(path="/", access="readonly")
        deny = Rule(path="/", access="DENY")
        put = Rule(path="/", methods="put, mkcol")

        for method in ("GET", "HEAD", "PROPFIND", "OPTIONS"):
            self.assertTrue(rw.permits(method))
            self.assertTrue(ro.permits(method))
            self.assertFalse(deny.permits(method))
        for method in ("PUT", "DELETE", "MKCOL", "MOVE", "COPY", "PROPPATCH", "LOCK"):
            self.assertTrue(rw.permits(method))
            self.assertFalse(ro.permits(method))
        self.assertTrue(put.permits("PUT"))
        self.assertTrue(put.permits("MKCOL"))
        self.assertFalse(put.permits("GET"))


class RuleSetTest(unittest.TestCase):
    def testEmptyDeniesAll(self):
        rules = RuleSet.from_config([])
        self.assertEqual(len(rules), 0)
        for method in ("GET", "PROPFIND", "PUT"):
            self.assertFalse(rules.is_allowed(method, "/"))
            self.assertFalse(rules.is_allowed(method, "/readme.txt"))

    def testNoMatchDenies(self):
        rules = RuleSet.from_config([{"path": "/public", "access": "allow"}])
        self.assertTrue(rules.is_allowed("GET", "/public/a.txt"))
        self.assertFalse(rules.is_allowed("GET", "/"))
        self.assertFalse(rules.is_allowed("GET", "/publication"))

    def testMostSpecificWins(self):
        rules = RuleSet.from_config(
            [
                {"path": "/", "access": "read-only"},
                {"path": "/private", "access": "deny"},
                {"path": "/private/shared", "access": "allow"},
            ]
        )
        self.assertTrue(rules.is_allowed("GET", "/readme.txt"))
        self.assertFalse(rules.is_allowed("PUT", "/readme.txt"))
        self.assertFalse(rules.is_allowed("GET", "/private"))
        self.assertFalse(rules.is_allowed("PROPFIND", "/private/secret.txt"))
        self.assertTrue(rules.is_allowed("PUT", "/private/shared/x.txt"))
        # Order of the rule list is irrelevant
        reverse = RuleSet(reversed(list(rules)))
        self.assertFalse(reverse.is_allowed("GET", "/private/secret.txt"))
        self.assertTrue(reverse.is_allowed("GET", "/readme.txt"))

    def testTiesAreDenied(self):
        rules = RuleSet.from_config(
            [
                {"path": "/docs", "access": "allow"},
                {"path": "/docs", "access": "read-only"},
            ]
        )
        self.assertTrue(rules.is_allowed("GET", "/docs/a"))
        self.assertFalse(rules.is_allowed("PUT", "/docs/a"))

    def testRegexAndPathCompete(self):
        rules = RuleSet.from_config(
            [
                {"path": "/", "access": "allow"},
                {"regex": r"\.secret$", "access": "deny"},
            ]
        )
        self.assertTrue(rules.is_allowed("GET", "/a/b.txt"))
        self.assertFalse(rules.is_allowed("GET", "/a/b.secret"))
        self.assertFalse(rules.is_allowed("DELETE", "/b.secret"))

    def testMethodCase(self):
        rules = RuleSet.from_config([{"path": "/", "access": "read-only"}])
        self.assertTrue(rules.is_allowed("get", "/"))
        self.assertFalse(rules.is_allowed("put", "/"))


class AllowedTest(unittest.TestCase):
    def testTenantRules(self):
        tenant = Tenant(
            "alice",
            "s3cret",
            "/tmp",
            [
                {"path": "/", "access": "read-only"},
                {"path": "/private", "access": "deny"},
            ],
        )
        self.assertTrue(allowed(tenant, "GET", "/"))
        self.assertTrue(allowed(tenant, "PROPFIND", "/public/shared.txt"))
        self.assertFalse(allowed(tenant, "PUT", "/new.txt"))
        self.assertFalse(allowed(tenant, "GET", "/private/secret.txt"))

        nobody = Tenant("bob", "pw", "/tmp", None)
        self.assertFalse(allowed(nobody, "GET", "/"))
