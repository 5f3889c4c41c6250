"""Recursive directory primitives: create, delete, copy, move, chmod, tree walk and search.

Filesystem failures are never raised from here. Each failing entry is
recorded in the drainable error log and the enclosing operation returns
False. Only caller errors (InvalidPathError) are raised.
"""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Collection, Iterable, Optional, Union

from common.constants import DEFAULT_DIRECTORY_MODE
from common.logging_config import get_logger
from filestore.exceptions import InvalidPathError

logger = get_logger(__name__)

PathLike = Union[str, Path]
Exceptions = Union[bool, Collection[str]]

SEPARATOR = os.sep


class SortMode(str, Enum):
    """Ordering applied by DirectoryTree.list."""
    NAME = "name"
    TIME = "time"


class CopyScheme(str, Enum):
    """Conflict resolution applied by DirectoryTree.copy when a destination entry exists."""
    MERGE = "merge"
    OVERWRITE = "overwrite"
    SKIP = "skip"


class EntryType(str, Enum):
    """Entry filter for DirectoryTree.tree."""
    DIR = "dir"
    FILE = "file"


def _sort_by_name(entry: os.DirEntry) -> str:
    return entry.path


def _sort_by_ctime(entry: os.DirEntry) -> float:
    try:
        return entry.stat().st_ctime
    except OSError:
        return 0.0


SORT_KEYS: dict[SortMode, Callable[[os.DirEntry], Union[str, float]]] = {
    SortMode.NAME: _sort_by_name,
    SortMode.TIME: _sort_by_ctime,
}


@dataclass
class TreeSnapshot:
    """
    Directories and files found by a listing or a tree walk.
    """
    directories: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)

    def __iter__(self):
        yield self.directories
        yield self.files


@dataclass(frozen=True)
class CopyOptions:
    """
    Settings shared by every level of a recursive copy.
    """
    mode: int
    skip: frozenset[str]
    scheme: CopyScheme
    recursive: bool


def _exception_names(exceptions: Exceptions) -> tuple[bool, set[str]]:
    """
    Split an exceptions argument into (skip_hidden, excluded_names).

    True, or a collection containing '.', means dotfiles are skipped.
    """
    if exceptions is True:
        return True, set()
    if not exceptions:
        return False, set()
    names = set(exceptions)
    skip_hidden = '.' in names
    names.discard('.')
    return skip_hidden, names


class DirectoryTree:
    """
    Folder browser with a current-path cursor.

    Lists folders and files, and provides recursive create, delete, copy,
    move and chmod. Every mutating operation appends to the messages/errors
    logs, which callers drain with messages() and errors().
    """

    def __init__(self, path: Optional[PathLike] = None, create: bool = False, mode: int = DEFAULT_DIRECTORY_MODE):
        """
        Initialize the tree.

        Args:
            path: Starting directory for the cursor (defaults to the process cwd)
            create: Whether to create the starting directory if missing
            mode: Mode applied to directories created by this instance
        """
        self.mode = mode
        self.sort = False
        self.path: Optional[str] = None
        self._messages: list[str] = []
        self._errors: list[str] = []

        path = os.fspath(path) if path else os.getcwd()
        if create and not os.path.exists(path):
            self.create(path, self.mode)
        if not self.is_absolute(path):
            path = os.path.realpath(path)
        self.change_to(path)

    @staticmethod
    def is_absolute(path: PathLike) -> bool:
        """
        Whether the given path is absolute.

        Args:
            path: Path to check

        Returns:
            True for absolute paths, False for relative or empty ones
        """
        if not path:
            return False
        return os.path.isabs(os.fspath(path))

    @staticmethod
    def is_slash_term(path: str) -> bool:
        """Whether path ends in a separator."""
        return path.endswith(('/', '\\'))

    @classmethod
    def slash_term(cls, path: str) -> str:
        """Return path with a terminating separator."""
        if cls.is_slash_term(path):
            return path
        return path + SEPARATOR

    @staticmethod
    def add_path_element(path: PathLike, *elements: str) -> str:
        """
        Join elements onto path with a single separator in between.

        Args:
            path: Base path
            elements: Elements to append

        Returns:
            Combined path
        """
        return SEPARATOR.join([os.fspath(path).rstrip(SEPARATOR), *elements])

    def pwd(self) -> Optional[str]:
        """Return the current path."""
        return self.path

    def change_to(self, path: PathLike) -> Optional[str]:
        """
        Move the cursor to path.

        Args:
            path: Absolute path, or path relative to the cursor

        Returns:
            The resolved path, or None if it is not an existing directory
            (the cursor is then left unchanged)
        """
        resolved = self.resolve(path)
        if resolved is not None and os.path.isdir(resolved):
            self.path = resolved
            return resolved
        return None

    def resolve(self, path: PathLike) -> Optional[str]:
        """
        Normalize path against the cursor, collapsing '..' lexically.

        Relative paths are joined onto the cursor first. Paths without '..'
        are then returned unchanged; paths with '..' pop one previous
        segment per '..' and come back slash-terminated. The filesystem and
        symlinks are never consulted.

        Args:
            path: Path to resolve

        Returns:
            The resolved path, or None when a '..' would climb past the root
        """
        path = os.fspath(path).strip()
        if not self.is_absolute(path) and self.path is not None:
            path = self.add_path_element(self.path, path)
        if '..' not in path:
            return path

        path = path.replace('/', SEPARATOR)
        parts: list[str] = []
        for part in path.split(SEPARATOR):
            if part in ('', '.'):
                continue
            if part == '..':
                if not parts:
                    return None
                parts.pop()
                continue
            parts.append(part)

        prefix = SEPARATOR if path.startswith(SEPARATOR) else ''
        return self.slash_term(prefix + SEPARATOR.join(parts))

    def in_path(self, path: PathLike, reverse: bool = False) -> bool:
        """
        Whether the cursor lies within path (or path within the cursor when reversed).

        Args:
            path: Absolute path to compare against
            reverse: Check that path resides within the cursor instead

        Returns:
            True if contained

        Raises:
            InvalidPathError: If path is not absolute
        """
        if not self.is_absolute(path):
            raise InvalidPathError(f"Expected an absolute path, got '{path}'")
        directory = self.slash_term(os.fspath(path))
        current = self.slash_term(self.pwd() or '')
        if reverse:
            return directory.startswith(current)
        return current.startswith(directory)

    def _scan(
        self,
        directory: str,
        sort: Optional[Union[SortMode, bool]] = SortMode.NAME,
        exceptions: Exceptions = False,
        full_path: bool = False,
    ) -> TreeSnapshot:
        snapshot = TreeSnapshot()
        skip_hidden, excluded = _exception_names(exceptions)
        try:
            with os.scandir(directory) as iterator:
                entries = list(iterator)
        except OSError as e:
            logger.debug(f"Cannot list {directory}: {e}")
            return snapshot

        if sort or self.sort:
            mode = sort if isinstance(sort, SortMode) else SortMode.NAME
            entries.sort(key=SORT_KEYS[mode])

        for entry in entries:
            name = entry.name
            if (skip_hidden and name.startswith('.')) or name in excluded:
                continue
            value = entry.path if full_path else name
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            if is_dir:
                snapshot.directories.append(value)
            else:
                snapshot.files.append(value)
        return snapshot

    def list(
        self,
        sort: Optional[Union[SortMode, bool]] = SortMode.NAME,
        exceptions: Exceptions = False,
        full_path: bool = False,
    ) -> TreeSnapshot:
        """
        List the contents of the current directory.

        Args:
            sort: SortMode to order by, or a falsy value for directory order
                (unless the sort attribute is set)
            exceptions: True to skip dotfiles, or names to skip ('.' in the
                collection also skips dotfiles)
            full_path: Return full paths instead of names

        Returns:
            TreeSnapshot of directories and files; empty when the cursor is
            unset or unreadable
        """
        if not self.pwd():
            return TreeSnapshot()
        return self._scan(self.path, sort, exceptions, full_path)

    def find(self, pattern: str = '.*', sort: Optional[Union[SortMode, bool]] = False) -> list[str]:
        """
        File names in the current directory whose whole name matches pattern.

        Matching is case-insensitive.

        Args:
            pattern: Regular expression
            sort: Forwarded to list()

        Returns:
            Matching file names, in listing order
        """
        regex = re.compile(pattern, re.IGNORECASE)
        return [name for name in self.list(sort).files if regex.fullmatch(name)]

    def find_recursive(self, pattern: str = '.*', sort: Optional[Union[SortMode, bool]] = False) -> list[str]:
        """
        Full paths of matching files in and below the current directory.

        Direct matches come first, followed by the matches of each
        subdirectory in listing order. The cursor is unchanged afterwards.

        Args:
            pattern: Regular expression matched against file names
            sort: Forwarded to the listing at every level

        Returns:
            Matching file paths
        """
        if not self.pwd():
            return []
        regex = re.compile(pattern, re.IGNORECASE)
        return self._find_in(self.path, regex, sort)

    def _find_in(self, directory: str, regex: re.Pattern, sort) -> list[str]:
        directories, files = self._scan(directory, sort)
        found = [self.add_path_element(directory, name) for name in files if regex.fullmatch(name)]
        for name in directories:
            found.extend(self._find_in(self.add_path_element(directory, name), regex, sort))
        return found

    def subdirectories(self, path: Optional[PathLike] = None, full_path: bool = True) -> list[str]:
        """
        Immediate subdirectories of path (defaults to the cursor).

        Args:
            path: Directory to inspect
            full_path: Return full paths instead of names

        Returns:
            Subdirectory paths or names; empty if path cannot be read
        """
        path = os.fspath(path) if path else self.path
        if not path:
            return []
        directories = self._scan(path, sort=None, full_path=full_path).directories
        if full_path:
            return [os.path.realpath(d) for d in directories]
        return directories

    def tree(
        self,
        path: Optional[PathLike] = None,
        exceptions: Exceptions = False,
        type_filter: Optional[EntryType] = None,
    ) -> Union[TreeSnapshot, list[str]]:
        """
        Walk path recursively, pre-order with each directory before its contents.

        Entries of one directory are visited in name order. Symlinked
        directories are reported but not followed.

        Args:
            path: Root of the walk (defaults to the cursor)
            exceptions: True to skip every entry below a dot-prefixed segment,
                or basenames to exclude ('.' in the collection also skips
                hidden entries); excluded directories are not descended into
            type_filter: EntryType.DIR or EntryType.FILE to return only
                that list

        Returns:
            TreeSnapshot whose first directory is path itself, or a single
            list when type_filter is given; empty when path is unreadable
        """
        root = os.fspath(path) if path else self.path
        skip_hidden, excluded = _exception_names(exceptions)
        snapshot = TreeSnapshot()

        if root and os.path.isdir(root):
            snapshot.directories.append(root)
            self._walk(root, skip_hidden, excluded, snapshot)

        if type_filter is None:
            return snapshot
        if EntryType(type_filter) == EntryType.DIR:
            return snapshot.directories
        return snapshot.files

    def _walk(self, directory: str, skip_hidden: bool, excluded: set[str], snapshot: TreeSnapshot) -> None:
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda e: e.name)
        except OSError as e:
            logger.debug(f"Cannot walk {directory}: {e}")
            return

        for entry in entries:
            if (skip_hidden and entry.name.startswith('.')) or entry.name in excluded:
                continue
            if entry.is_dir():
                snapshot.directories.append(entry.path)
                if not entry.is_symlink():
                    self._walk(entry.path, skip_hidden, excluded, snapshot)
            else:
                snapshot.files.append(entry.path)

    def create(self, pathname: PathLike, mode: Optional[int] = None) -> bool:
        """
        Create a directory structure recursively, like 'mkdir -p'.

        Missing parents are created before the leaf. Created directories get
        exactly mode, whatever the process umask.

        Args:
            pathname: Directory to create; relative paths are joined onto the cursor
            mode: Directory mode (defaults to the instance mode)

        Returns:
            True if the directory exists afterwards, False if a path
            component is a file or a mkdir failed
        """
        pathname = os.fspath(pathname)
        if not pathname or os.path.isdir(pathname):
            return True
        if not self.is_absolute(pathname) and self.path is not None:
            pathname = self.add_path_element(self.path, pathname)
        if mode is None:
            mode = self.mode

        if os.path.isfile(pathname):
            self._error(f"{pathname} is a file")
            return False

        pathname = pathname.rstrip(SEPARATOR)
        parent = os.path.dirname(pathname)
        if parent and parent != pathname and not self.create(parent, mode):
            return False

        if os.path.lexists(pathname):
            return os.path.isdir(pathname)

        try:
            os.mkdir(pathname, mode)
            os.chmod(pathname, mode)
        except FileExistsError:
            return os.path.isdir(pathname)
        except OSError as e:
            self._error(f"{pathname} NOT created: {e.strerror}")
            return False

        self._message(f"{pathname} created")
        return True

    def dir_size(self, path: Optional[PathLike] = None) -> int:
        """
        Size in bytes of every regular file under path (defaults to the cursor).

        Uses an explicit work stack, so deep trees do not recurse.

        Args:
            path: Directory to measure

        Returns:
            Total size in bytes
        """
        root = os.fspath(path) if path else self.path
        if not root:
            return 0

        size = 0
        stack = [root]
        while stack:
            current = stack.pop()
            if os.path.isfile(current):
                size += os.path.getsize(current)
                continue
            try:
                with os.scandir(current) as iterator:
                    for entry in iterator:
                        if entry.is_file(follow_symlinks=False):
                            size += entry.stat(follow_symlinks=False).st_size
                        elif entry.is_dir(follow_symlinks=False):
                            stack.append(entry.path)
            except OSError as e:
                logger.debug(f"Skipping {current} in size computation: {e}")
        return size

    def delete(self, path: Optional[PathLike] = None) -> bool:
        """
        Recursively remove a directory.

        Children are removed before their parent. The first failure aborts
        the whole removal, leaving the remaining entries in place.

        Args:
            path: Directory to delete (defaults to the cursor)

        Returns:
            True if the directory is gone (or was never a directory),
            False on the first failure
        """
        path = os.fspath(path) if path else self.pwd()
        if not path:
            return False

        path = path.rstrip(SEPARATOR) or SEPARATOR
        if not os.path.isdir(path):
            return True

        if not self._delete_contents(path):
            return False

        try:
            os.rmdir(path)
        except OSError as e:
            self._error(f"{path} NOT removed: {e.strerror}")
            return False
        self._message(f"{path} removed")
        return True

    def _delete_contents(self, directory: str) -> bool:
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda e: e.name)
        except OSError as e:
            self._error(f"{directory} NOT removed: {e.strerror}")
            return False

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if not self._delete_contents(entry.path):
                    return False
                remove = os.rmdir
            else:
                remove = os.unlink
            try:
                remove(entry.path)
            except OSError as e:
                self._error(f"{entry.path} NOT removed: {e.strerror}")
                return False
            self._message(f"{entry.path} removed")
        return True

    def copy(
        self,
        to: PathLike,
        from_path: Optional[PathLike] = None,
        mode: Optional[int] = None,
        skip: Iterable[str] = (),
        scheme: CopyScheme = CopyScheme.MERGE,
        recursive: bool = True,
    ) -> bool:
        """
        Recursively copy a directory.

        The cursor moves to from_path. Individual failures are logged and
        the copy carries on with the next entry.

        Args:
            to: Destination directory, created if missing
            from_path: Source directory (defaults to the cursor)
            mode: Mode for directories created during the copy
            skip: Names of files or directories to leave out
            scheme: What to do when a destination entry already exists
            recursive: Set to False to copy only the top-level files

        Returns:
            True if no copy, mkdir or delete failed during this call
        """
        if not self.pwd():
            return False
        errors_before = len(self._errors)

        destination = self.resolve(to)
        source_arg = from_path if from_path else self.path
        if destination is None:
            self._error(f"{to} is not a valid destination")
            return False

        source = self.change_to(source_arg)
        if source is None:
            self._error(f"{source_arg} not found")
            return False

        options = CopyOptions(
            mode=self.mode if mode is None else mode,
            skip=frozenset(skip),
            scheme=CopyScheme(scheme),
            recursive=recursive,
        )

        if not os.path.isdir(destination):
            self.create(destination, options.mode)
        if not os.access(destination, os.W_OK):
            self._error(f"{destination} not writable")
            return False

        self._copy_directory(source, destination, options)
        return len(self._errors) == errors_before

    def _copy_directory(self, source: str, destination: str, options: CopyOptions) -> None:
        try:
            names = sorted(os.listdir(source))
        except OSError as e:
            self._error(f"{source} NOT copied: {e.strerror}")
            return

        for name in names:
            if name in options.skip:
                continue
            origin = self.add_path_element(source, name)
            target = self.add_path_element(destination, name)

            if options.scheme == CopyScheme.SKIP and os.path.isdir(target):
                continue

            if os.path.isfile(origin):
                if options.scheme != CopyScheme.SKIP or not os.path.isfile(target):
                    self._copy_file(origin, target)
                continue

            if not os.path.isdir(origin):
                continue
            if options.scheme == CopyScheme.OVERWRITE and os.path.isdir(target):
                self.delete(target)
            if not options.recursive:
                continue

            if not os.path.exists(target):
                try:
                    os.mkdir(target, options.mode)
                    os.chmod(target, options.mode)
                except OSError as e:
                    self._error(f"{target} NOT created: {e.strerror}")
                    continue
                self._message(f"{target} created")
                self._copy_directory(origin, target, options)
            elif options.scheme == CopyScheme.MERGE:
                self._copy_directory(origin, target, options)

    def _copy_file(self, origin: str, target: str) -> None:
        try:
            shutil.copy2(origin, target)
        except OSError as e:
            self._error(f"{origin} NOT copied to {target}: {e.strerror}")
            return
        self._message(f"{origin} copied to {target}")

    def move(
        self,
        to: PathLike,
        from_path: Optional[PathLike] = None,
        mode: Optional[int] = None,
        skip: Iterable[str] = (),
        scheme: CopyScheme = CopyScheme.MERGE,
        recursive: bool = True,
    ) -> bool:
        """
        Recursively move a directory: copy, then delete the source.

        Takes the same arguments as copy(). On success the cursor moves to
        the destination.

        Returns:
            True if the copy, the delete and the final change_to all succeeded
        """
        destination = self.resolve(to)
        if destination is None:
            self._error(f"{to} is not a valid destination")
            return False
        if not self.copy(destination, from_path, mode, skip, scheme, recursive):
            return False
        if not self.delete(self.pwd()):
            return False
        return self.change_to(destination) is not None

    def chmod(
        self,
        path: PathLike,
        mode: Optional[int] = None,
        recursive: bool = True,
        exceptions: Collection[str] = (),
    ) -> bool:
        """
        Change the mode of a directory, or of everything below it.

        Args:
            path: Directory to change
            mode: New mode (defaults to the instance mode)
            recursive: Set to False to change only path itself
            exceptions: Basenames of files or directories to leave alone

        Returns:
            True if every change succeeded
        """
        path = os.fspath(path)
        if mode is None:
            mode = self.mode
        if not os.path.isdir(path):
            return False

        if not recursive:
            return self._chmod_entry(path, mode)

        errors_before = len(self._errors)
        directories, files = self.tree(path)
        for entry in directories + files:
            if os.path.basename(entry.rstrip(SEPARATOR)) in exceptions:
                continue
            self._chmod_entry(entry, mode)
        return len(self._errors) == errors_before

    def _chmod_entry(self, path: str, mode: int) -> bool:
        try:
            os.chmod(path, mode)
        except OSError as e:
            self._error(f"{path} NOT changed to {mode:o}: {e.strerror}")
            return False
        self._message(f"{path} changed to {mode:o}")
        return True

    def messages(self, reset: bool = True) -> list[str]:
        """
        Messages recorded by the latest operations.

        Args:
            reset: Clear the messages after reading

        Returns:
            List of messages
        """
        messages = self._messages
        if reset:
            self._messages = []
        return list(messages)

    def errors(self, reset: bool = True) -> list[str]:
        """
        Errors recorded by the latest operations.

        Args:
            reset: Clear the errors after reading

        Returns:
            List of errors
        """
        errors = self._errors
        if reset:
            self._errors = []
        return list(errors)

    def _message(self, text: str) -> None:
        self._messages.append(text)
        logger.debug(text)

    def _error(self, text: str) -> None:
        self._errors.append(text)
        logger.warning(text)
