"""Target writers: remote git host, plain directory and tar.gz archive."""

from ..config import MirrorConfig, SyncConfig
from ..mirror import new_git_engine
from ..mirror.gitlib import GitLibEngine
from .archive import ArchiveWriter, archive_target_path, create_archive
from .directory import DirectoryWriter
from .gitremote import GitRemoteWriter


def new_target_writer(mirror_cfg: MirrorConfig, sync_cfg: SyncConfig):
    """
    Pick the writer for a mirror target.

    Local targets always use the library engine; remote targets use the
    engine selected by the mirror configuration.
    """
    if mirror_cfg.is_archive():
        return ArchiveWriter(GitLibEngine())
    if mirror_cfg.is_directory():
        return DirectoryWriter(sync_cfg, GitLibEngine())
    return GitRemoteWriter(new_git_engine(mirror_cfg.use_git_binary))


__all__ = [
    'ArchiveWriter', 'DirectoryWriter', 'GitRemoteWriter',
    'archive_target_path', 'create_archive', 'new_target_writer'
]
