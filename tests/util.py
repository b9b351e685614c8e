# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
    Test helpers.

Example:
    root_path = create_test_folder("davguard-test")
    ...
    shutil.rmtree(root_path, ignore_errors=True)
"""

import os
import tempfile

from davguard import util

#: Files and folders created by create_test_folder()
FIXTURE_FILES = {
    "readme.txt": b"Hello world\n",
    "index.html": b"<html><body>hi</body></html>",
    "Lotosblütenstengel (蓮花莖).txt": b"encoded\n",
    "subfolder/notes.txt": b"some notes\n",
    "private/secret.txt": b"top secret\n",
    "public/shared.txt": b"shared\n",
}


def create_test_folder(name):
    """Create a fresh temp folder populated with FIXTURE_FILES."""
    path = tempfile.mkdtemp(prefix=name + "-")
    for rel_path, data in FIXTURE_FILES.items():
        file_path = os.path.join(path, *rel_path.split("/"))
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "wb") as fp:
            fp.write(data)
    return path


def basic_auth_header(user_name, password):
    """Return a Basic `Authorization` header dict for webtest."""
    return {"Authorization": "Basic " + util.calc_base64(f"{user_name}:{password}")}


# ========================================================================
# RecordingEngine
# ========================================================================


class RecordingEngine:
    """WSGI app that records the environ of each call.

    Used in place of a WsgiDAVApp to test the dispatcher in isolation.
    """

    def __init__(self, status="200 OK", body=b"engine-body", headers=None):
        self.status = status
        self.body = body
        self.headers = headers or []
        self.calls = []

    @property
    def last(self):
        return self.calls[-1] if self.calls else None

    def __call__(self, environ, start_response):
        self.calls.append(
            {
                "method": environ["REQUEST_METHOD"],
                "path": environ.get("PATH_INFO"),
                "script_name": environ.get("SCRIPT_NAME"),
                "depth": environ.get("HTTP_DEPTH"),
                "user_name": environ.get("davguard.user_name"),
            }
        )
        start_response(
            self.status,
            [
                ("Content-Type", "text/plain"),
                ("Content-Length", str(len(self.body))),
            ]
            + self.headers,
        )
        return [self.body]
