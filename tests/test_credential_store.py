# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for davguard.credential_store"""

import os
import shutil
import unittest
from unittest import mock

import bcrypt

from davguard.credential_store import CredentialStore, Tenant
from tests.util import create_test_folder


class TenantTest(unittest.TestCase):
    def testPlainPassword(self):
        tenant = Tenant("alice", "s3cret", "/tmp", [])
        self.assertFalse(tenant.is_anonymous)
        self.assertTrue(tenant.check_password("s3cret"))
        self.assertFalse(tenant.check_password("S3cret"))
        self.assertFalse(tenant.check_password(""))
        self.assertFalse(tenant.check_password(None))
        self.assertNotIn("s3cret", repr(tenant))

    def testBcryptPassword(self):
        hashed = bcrypt.hashpw(b"s3cret", bcrypt.gensalt(rounds=4)).decode("ascii")
        tenant = Tenant("alice", "{bcrypt}" + hashed, "/tmp", [])
        self.assertTrue(tenant.check_password("s3cret"))
        self.assertFalse(tenant.check_password("wrong"))
        # The hash itself must not work as a password
        self.assertFalse(tenant.check_password("{bcrypt}" + hashed))

    def testInvalidBcryptHash(self):
        tenant = Tenant("alice", "{bcrypt}not-a-hash", "/tmp", [])
        self.assertFalse(tenant.check_password("not-a-hash"))

    def testEnvPassword(self):
        with mock.patch.dict(os.environ, {"DAVGUARD_TEST_PW": "from-env"}):
            tenant = Tenant("bob", "{env}DAVGUARD_TEST_PW", "/tmp", [])
        self.assertTrue(tenant.check_password("from-env"))
        self.assertFalse(tenant.check_password("{env}DAVGUARD_TEST_PW"))

        with mock.patch.dict(os.environ, clear=True):
            with self.assertRaises(ValueError):
                Tenant("bob", "{env}DAVGUARD_TEST_PW", "/tmp", [])

    def testAnonymous(self):
        tenant = Tenant("", None, "/tmp", [{"path": "/", "access": "allow"}])
        self.assertTrue(tenant.is_anonymous)
        self.assertFalse(tenant.check_password(""))
        self.assertEqual(len(tenant.rules), 1)


class CredentialStoreTest(unittest.TestCase):
    def setUp(self):
        self.root_path = create_test_folder("davguard-store")
        self.alice_path = os.path.join(self.root_path, "private")

    def tearDown(self):
        shutil.rmtree(self.root_path, ignore_errors=True)

    def testEmpty(self):
        store = CredentialStore.from_config({"root": self.root_path})
        self.assertEqual(len(store), 0)
        self.assertEqual(list(store), [])
        self.assertIsNone(store.lookup("alice"))
        self.assertIsNone(store.lookup(""))

    def testFromConfig(self):
        config = {
            "root": self.root_path,
            "rules": [{"path": "/", "access": "read-only"}],
            "users": [
                {
                    "username": "alice",
                    "password": "s3cret",
                    "root": self.alice_path,
                    "rules": [{"path": "/", "access": "allow"}],
                },
                {"username": "bob", "password": "hunter2"},
            ],
        }
        store = CredentialStore.from_config(config)
        self.assertEqual(len(store), 2)
        self.assertEqual(sorted(t.username for t in store), ["alice", "bob"])

        alice = store.lookup("alice")
        self.assertEqual(alice.root, self.alice_path)
        self.assertTrue(alice.rules.is_allowed("PUT", "/x"))

        # bob inherits the global root and rules
        bob = store.lookup("bob")
        self.assertEqual(bob.root, self.root_path)
        self.assertTrue(bob.rules.is_allowed("GET", "/x"))
        self.assertFalse(bob.rules.is_allowed("PUT", "/x"))

        self.assertIsNone(store.lookup("carol"))
        self.assertIsNone(store.lookup("Alice"))

    def testRelativeRoot(self):
        config = {
            "_config_file": os.path.join(self.root_path, "davguard.yaml"),
            "users": [{"username": "alice", "password": "x", "root": "private"}],
        }
        store = CredentialStore.from_config(config)
        self.assertEqual(store.lookup("alice").root, self.alice_path)

    def testInvalidConfig(self):
        base = {"root": self.root_path}
        invalid_users = [
            {"username": "alice"},
            [{"username": "alice", "password": ""}],
            [{"password": "x"}],
            [{"username": "alice", "password": "x", "root": "/does/not/exist"}],
            [{"username": "alice", "password": "x", "rules": "allow"}],
            [
                {"username": "alice", "password": "x"},
                {"username": "alice", "password": "y"},
            ],
            ["alice"],
        ]
        for users in invalid_users:
            with self.subTest(users=users):
                with self.assertRaises(ValueError):
                    CredentialStore.from_config(dict(base, users=users))

        with self.assertRaises(ValueError):
            CredentialStore.from_config({"users": [{"username": "a", "password": "x"}]})

    def testImmutable(self):
        store = CredentialStore([Tenant("alice", "x", self.root_path, [])])
        with self.assertRaises(TypeError):
            store._tenants["mallory"] = Tenant("mallory", "x", self.root_path, [])
