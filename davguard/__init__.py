# -*- coding: utf-8 -*-
# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Multi-tenant access control for WebDAV shares.
"""
# Initialize a silent 'davguard' logger
# http://docs.python-guide.org/en/latest/writing/logging/#logging-in-a-library
# https://docs.python.org/3/howto/logging.html#configuring-logging-for-a-library
import logging

from davguard._version import __version__  # noqa: F401

_base_logger = logging.getLogger(__name__)
_base_logger.addHandler(logging.NullHandler())
_base_logger.propagate = False
_base_logger.setLevel(logging.INFO)
