"""
Virtual filesystem of a sandbox instance.

The sandbox sees a single absolute POSIX namespace. Host directories become
visible in it only through explicit mounts; a virtual path outside every
mount does not exist. Paths are normalized before lookup, so `..` segments
can never climb out of a mount.
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path

from notesbridge.bridge.errors import MountError


def normalize(path: str) -> str:
    """Return the canonical absolute form of a virtual path."""
    return posixpath.normpath("/" + path.lstrip("/"))


def join(base: str, path: str) -> str:
    return normalize(base.rstrip("/") + "/" + path.lstrip("/"))


@dataclass(frozen=True)
class Mount:
    vfs_path: str
    host_path: Path


class VirtualFilesystem:
    def __init__(self):
        self._mounts: dict[str, Mount] = {}

    @property
    def mounts(self) -> list[Mount]:
        return list(self._mounts.values())

    def mount(self, host_path: str | Path, vfs_path: str) -> Mount:
        """
        Bind `host_path` at `vfs_path`.

        Raises:
            MountError: If the host directory does not exist or the virtual
                path already carries a mount.
        """
        vfs_path = normalize(vfs_path)
        host = Path(host_path).resolve()
        if not host.is_dir():
            raise MountError(f"Cannot mount {host}: not a directory")
        if vfs_path in self._mounts:
            raise MountError(f"{vfs_path} is already mounted")
        mount = Mount(vfs_path=vfs_path, host_path=host)
        self._mounts[vfs_path] = mount
        return mount

    def find_mount(self, vfs_path: str) -> Mount | None:
        vfs_path = normalize(vfs_path)
        best = None
        for mount in self._mounts.values():
            prefix = mount.vfs_path.rstrip("/") + "/"
            if vfs_path == mount.vfs_path or vfs_path.startswith(prefix) or mount.vfs_path == "/":
                if best is None or len(mount.vfs_path) > len(best.vfs_path):
                    best = mount
        return best

    def resolve(self, vfs_path: str) -> Path | None:
        """Translate a virtual path into the host path backing it, if any."""
        vfs_path = normalize(vfs_path)
        mount = self.find_mount(vfs_path)
        if mount is None:
            return None
        relative = vfs_path[len(mount.vfs_path):].lstrip("/")
        return mount.host_path / relative if relative else mount.host_path

    def exists(self, vfs_path: str) -> bool:
        host = self.resolve(vfs_path)
        return host is not None and host.exists()

    def is_file(self, vfs_path: str) -> bool:
        host = self.resolve(vfs_path)
        return host is not None and host.is_file()

    def is_dir(self, vfs_path: str) -> bool:
        host = self.resolve(vfs_path)
        return host is not None and host.is_dir()

    def read_bytes(self, vfs_path: str) -> bytes:
        host = self.resolve(vfs_path)
        if host is None:
            raise FileNotFoundError(vfs_path)
        return host.read_bytes()
