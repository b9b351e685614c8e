# (c) 2026 davguard contributors
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Filesystem DAV provider that is confined to a tenant's scope root.

:class:`~davguard.fs_provider.ScopedFilesystemProvider` extends WsgiDAV's
:class:`~wsgidav.fs_dav_provider.FilesystemProvider`:

- Every resource path is mapped below ``root_folder_path``. Paths containing
  a ``..`` segment, or resolving to a location outside the root, are rejected
  with HTTP_FORBIDDEN. Unless symlinks are followed, this is checked against
  the real path, so a linked parent folder cannot lead out of the root.
  This also covers COPY/MOVE destinations and members of listed collections.

- If ``no_sniff=True`` is passed, all file resources report the content type
  ``application/octet-stream``, whatever their name or content is. This
  applies to GET, HEAD and range responses as well as to the
  ``getcontenttype`` property of PROPFIND responses.
"""

import os

from wsgidav.dav_error import HTTP_FORBIDDEN, DAVError
from wsgidav.fs_dav_provider import FileResource, FilesystemProvider, FolderResource
from wsgidav.util import join_uri

from davguard import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

NO_SNIFF_CONTENT_TYPE = "application/octet-stream"


# ========================================================================
# Resources
# ========================================================================
class ScopedFileResource(FileResource):
    """File resource with the provider's content type policy."""

    def get_content_type(self):
        if self.provider.no_sniff:
            return NO_SNIFF_CONTENT_TYPE
        return super().get_content_type()


class ScopedFolderResource(FolderResource):
    """Folder resource that creates its members through the provider."""

    def get_member(self, name):
        path = join_uri(self.path, name)
        try:
            return self.provider.get_resource_inst(path, self.environ)
        except DAVError:
            _logger.info(f"Skipping inaccessible member {path!r}")
            return None

    def get_member_list(self):
        members = []
        for name in self.get_member_names():
            member = self.get_member(name)
            if member is not None:
                members.append(member)
        return members


# ========================================================================
# ScopedFilesystemProvider
# ========================================================================
class ScopedFilesystemProvider(FilesystemProvider):
    """Filesystem provider confined to `root_folder`.

    Args:
        root_folder (str): existing directory, the tenant's scope root
        no_sniff (bool): report 'application/octet-stream' for all files
        readonly (bool): reject write attempts with HTTP_FORBIDDEN
        fs_opts (dict | None): see ``fs_dav_provider`` configuration option
    """

    file_class = ScopedFileResource
    folder_class = ScopedFolderResource

    def __init__(self, root_folder, *, no_sniff=False, readonly=False, fs_opts=None):
        if fs_opts is None:
            fs_opts = {}
        super().__init__(root_folder, readonly=readonly, fs_opts=fs_opts)
        self.root_folder_path_real = os.path.realpath(self.root_folder_path)
        self.no_sniff = bool(no_sniff)

    def __repr__(self):
        rw = "Read-Only" if self.readonly else "Read-Write"
        sniff = ", no-sniff" if self.no_sniff else ""
        return (
            f"{self.__class__.__name__} for path {self.root_folder_path!r} ({rw}{sniff})"
        )

    def _loc_to_file_path(self, path: str, environ: dict = None):
        """Convert a resource path to an absolute file path below the root."""
        root_path = self.root_folder_path
        parts = []
        for seg in path.replace("\\", "/").split("/"):
            if seg in ("", "."):
                continue
            if seg == ".." or "\0" in seg:
                raise DAVError(HTTP_FORBIDDEN, f"Invalid path segment in {path!r}")
            parts.append(seg)

        file_path = os.path.abspath(os.path.join(root_path, *parts))
        if os.path.commonpath([root_path, file_path]) != root_path:
            raise DAVError(
                HTTP_FORBIDDEN, f"Tried to access file outside root: {file_path!r}"
            )

        if not self.fs_opts.get("follow_symlinks"):
            # Symlinks in any parent folder must not lead out of the root
            real_root = self.root_folder_path_real
            real_path = os.path.realpath(file_path)
            if os.path.commonpath([real_root, real_path]) != real_root:
                raise DAVError(HTTP_FORBIDDEN, f"Symlink leads outside root: {path!r}")
        return file_path

    def get_resource_inst(self, path: str, environ: dict):
        """Return a resource object for `path` or None if it does not exist.

        See DAVProvider.get_resource_inst()
        """
        self._count_get_resource_inst += 1
        fp = self._loc_to_file_path(path, environ)

        if not os.path.exists(fp):
            return None
        if not self.fs_opts.get("follow_symlinks") and os.path.islink(fp):
            raise DAVError(HTTP_FORBIDDEN, f"Symlink support is disabled: {path!r}")
        if os.path.isdir(fp):
            return self.folder_class(path, environ, fp)
        return self.file_class(path, environ, fp)

    def stat(self, path: str) -> os.stat_result:
        """Return file metadata for a resource path.

        Raises:
            OSError: if the file does not exist
            DAVError: if the path is outside the root
        """
        return os.stat(self._loc_to_file_path(path))
