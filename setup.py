#!/usr/bin/env python

import os
import re

from setuptools import Command, find_packages, setup


def _read_version():
    # Don't import davguard here: its dependencies may not be installed yet
    path = os.path.join(os.path.dirname(__file__), "davguard", "_version.py")
    with open(path, encoding="utf-8") as fp:
        match = re.search(r"^__version__\s*=\s*[\"']([^\"']+)[\"']", fp.read(), re.M)
    if not match:
        raise RuntimeError(f"Could not read __version__ from {path}")
    return match.group(1)


version = _read_version()


# Add custom command 'setup.py test'
class PyTestCommand(Command):
    user_options = []
    description = "Run the unit tests using pytest"

    def initialize_options(self):
        pass

    def finalize_options(self):
        pass

    def run(self):
        import subprocess
        import sys

        res = subprocess.call([sys.executable, "-m", "pytest", "tests"])
        if res:
            print(f"ERROR: pytest exited with code {res}")
        raise SystemExit(res)


try:
    with open("README.md", "rt", encoding="utf-8") as fp:
        readme = fp.read()
except OSError:
    readme = "(Readme file not found.)"

install_requires = ["WsgiDAV>=4.3", "PyYAML", "json5", "cheroot", "bcrypt"]
tests_require = ["pytest", "WebTest"]

setup(
    name="davguard",
    version=version,
    author="davguard contributors",
    description="Multi-user WebDAV file server with per-user folders and access rules",
    long_description=readme,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Information Technology",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Topic :: Internet :: WWW/HTTP :: WSGI",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Server",
    ],
    keywords="web wsgi webdav application server authentication",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=install_requires,
    tests_require=tests_require,
    py_modules=[],
    zip_safe=False,
    extras_require={"test": tests_require},
    cmdclass={"test": PyTestCommand},
    entry_points={"console_scripts": ["davguard = davguard.server.server_cli:run"]},
)
