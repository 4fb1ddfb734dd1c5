# storage_manager.py
import os
import re
import shutil

import config
from audit_log import append_log
from errors import FilesystemError, InvalidArgument

# Chrome leaves these behind when it dies without a clean shutdown:
# SingletonLock / SingletonCookie / SingletonSocket, leveldb 'LOCK' files and '*.lock'.
_SINGLETON_PATTERN = re.compile(r"^Singleton")


def is_lock_marker(name):
    return bool(_SINGLETON_PATTERN.match(name)) or name == "LOCK" or name.endswith(".lock")


def walk_and_remove(directory, predicate, remove):
    """
    Recursively visits `directory` and calls `remove(path)` for every file whose
    name satisfies `predicate`. Sub-directories are always descended into.
    Removal failures are logged and skipped so one stuck file never aborts the walk.
    Returns the list of removed paths.
    """
    removed = []
    try:
        entries = list(os.scandir(directory))
    except OSError:
        return removed

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                removed.extend(walk_and_remove(entry.path, predicate, remove))
                continue
            if not predicate(entry.name):
                continue
        except OSError:
            continue

        try:
            remove(entry.path)
            removed.append(entry.path)
        except OSError as e:
            append_log(f"CLEAN_LOCK failed {entry.path} err={e}")
    return removed


def _delete_file(path):
    # Broken symlinks and sockets show up as lock markers too.
    os.remove(path)


def remove_stale_locks_in_dir(directory):
    """Removes every lock marker under `directory`. Best-effort, never raises."""
    removed = walk_and_remove(directory, is_lock_marker, _delete_file)
    for path in removed:
        append_log(f"CLEAN_LOCK removed {path}")
    return removed


def cleanup_session_locks():
    """Runs the lock cleanup on every session folder, then on the sessions root itself."""
    sessions_root = config.SESSIONS_ROOT
    removed = []
    try:
        if not os.path.exists(sessions_root):
            return removed
        session_dirs = [e.path for e in os.scandir(sessions_root) if e.is_dir(follow_symlinks=False)]
        for session_dir in session_dirs:
            removed.extend(remove_stale_locks_in_dir(session_dir))
        removed.extend(remove_stale_locks_in_dir(sessions_root))
        append_log("CLEANUP_SESSION_LOCKS completed")
    except OSError as e:
        append_log(f"CLEANUP_SESSION_LOCKS error: {e}")
    return removed


# ==============================================================================
# --- SESSION FOLDERS ---
# ==============================================================================

def session_path(session_id):
    """
    Returns the profile folder for `session_id`. The id must name a folder
    strictly inside the sessions root; absolute paths and '..' are rejected.
    """
    path = os.path.join(config.SESSIONS_ROOT, session_id)
    root = os.path.realpath(config.SESSIONS_ROOT)
    resolved = os.path.realpath(path)
    if resolved == root or os.path.commonpath([root, resolved]) != root:
        raise InvalidArgument(f"invalid session id: {session_id}")
    return path


def ensure_session_dir(session_id):
    """Creates the session's profile folder if needed and returns its path."""
    path = session_path(session_id)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Could not create session folder '{path}': {e}") from e
    return path


def sessions_folder_exists():
    return os.path.isdir(config.SESSIONS_ROOT)


def delete_sessions_root():
    """Deletes the whole sessions folder. Returns False if there was nothing to delete."""
    sessions_root = config.SESSIONS_ROOT
    if not os.path.exists(sessions_root):
        return False
    try:
        shutil.rmtree(sessions_root)
    except OSError as e:
        raise FilesystemError(f"Could not delete '{sessions_root}': {e}") from e
    print("🗑️ Sessions folder deleted.")
    return True
