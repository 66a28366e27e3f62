"""Definition of the bounded download machinery. Every artifact of an installation
(client JAR, libraries, native bundles and asset objects) goes through a download list
that is drained by a fixed number of worker threads, each owning one connection.
"""

from http.client import HTTPConnection, HTTPSConnection, HTTPException
from threading import Thread
from pathlib import Path
from queue import Queue
import urllib.parse
import hashlib

from .http import DEFAULT_TIMEOUT, ssl_context

from typing import Optional, Dict, List, Tuple, Union, Iterator, Callable


# Number of simultaneous connections used when not configured otherwise.
DEFAULT_THREADS_COUNT = 2
MAX_REDIRECTS = 5


class DownloadEntry:
    """A download entry for the download list. The destination file is the full path,
    its parent directory is created when the download starts.
    """

    __slots__ = "url", "size", "sha1", "dst", "name"

    def __init__(self,
        url: str,
        dst: Path, *,
        size: Optional[int] = None,
        sha1: Optional[str] = None,
        name: Optional[str] = None
    ) -> None:
        self.url = url
        self.dst = dst
        self.size = size
        self.sha1 = sha1
        self.name = url if name is None else name

    def __repr__(self) -> str:
        return f"<DownloadEntry {self.name}>"

    def __hash__(self) -> int:
        # Size and sha1 are part of the hash, they should not be modified once the
        # entry has been added to a dictionary.
        return hash((self.url, self.dst, self.size, self.sha1))

    def __eq__(self, other):
        return isinstance(other, DownloadEntry) and \
            (self.url, self.dst, self.size, self.sha1) == \
            (other.url, other.dst, other.size, other.sha1)


class _DownloadEntry:
    """Internal class with already parsed URL to speed up processing and prevent
    unsupported URL schemes.
    """

    __slots__ = "https", "host", "port", "path", "entry", "redirects"

    def __init__(self, https: bool, host: str, port: Optional[int], path: str, entry: DownloadEntry, redirects: int = 0) -> None:
        self.https = https
        self.host = host
        self.port = port
        self.path = path
        self.entry = entry
        self.redirects = redirects

    @classmethod
    def from_entry(cls, entry: DownloadEntry, redirects: int = 0) -> "_DownloadEntry":

        # We only support HTTP/HTTPS
        url_parsed = urllib.parse.urlparse(entry.url)
        if url_parsed.scheme not in ("http", "https"):
            raise ValueError(f"unsupported scheme '{url_parsed.scheme}://' from url {entry.url}")

        path = url_parsed.path or "/"
        if url_parsed.query:
            path = f"{path}?{url_parsed.query}"

        return cls(
            url_parsed.scheme == "https",
            url_parsed.hostname or "",
            url_parsed.port,
            path,
            entry,
            redirects)


class DownloadResult:
    """Base class for download result yielded by `DownloadList.download` function.
    """
    __slots__ = "thread_id", "entry"
    def __init__(self, thread_id: int, entry: DownloadEntry) -> None:
        self.thread_id = thread_id
        self.entry = entry


class DownloadResultProgress(DownloadResult):
    """Subclass of result when a file's download has been successful, or partially
    progressed if `done` is false.
    """
    __slots__ = "size", "done"
    def __init__(self, thread_id: int, entry: DownloadEntry, size: int, done: bool) -> None:
        super().__init__(thread_id, entry)
        self.size = size
        self.done = done


class DownloadResultError(DownloadResult):
    """Subclass of result when a file's download has failed, the error code is indicated
    and the optional original error is given (for connection errors).
    """

    CONNECTION = "connection"
    NOT_FOUND = "not_found"
    INVALID_SIZE = "invalid_size"
    INVALID_SHA1 = "invalid_sha1"

    __slots__ = "code", "origin"

    def __init__(self, thread_id: int, entry: DownloadEntry, code: str, origin: Optional[Exception]) -> None:
        super().__init__(thread_id, entry)
        self.code = code
        self.origin = origin


class FetchError(Exception):
    """Raised (or reported) when a single artifact transfer has failed, the code is one
    of the `DownloadResultError` codes and the origin is the underlying error, if any.
    """

    def __init__(self, entry: DownloadEntry, code: str, origin: Optional[Exception] = None) -> None:
        self.entry = entry
        self.code = code
        self.origin = origin

    def __str__(self) -> str:
        text = f"{self.entry.name}: {self.code}"
        return text if self.origin is None else f"{text} ({self.origin})"


class DownloadList:
    """A download list, composed of entries that can be downloaded all at once in batch
    with multithreading.
    """

    __slots__ = "entries", "count", "size"

    def __init__(self):
        self.entries: List[_DownloadEntry] = []
        self.count = 0
        self.size = 0

    def clear(self) -> None:
        """Clear the download entry, removing all entries and computed count/size.
        """
        self.entries.clear()
        self.count = 0
        self.size = 0

    def add(self, entry: DownloadEntry, *, verify: bool = False) -> bool:
        """Add a download entry to this list.

        :param entry: The entry to add.
        :param verify: Set to true in order to check if the file exists and has the same
        size has the given entry, in such case the entry is not added.
        :return: True if the entry has been added.
        """

        if verify and entry.dst.is_file() and (entry.size is None or entry.size == entry.dst.stat().st_size):
            return False

        self.entries.append(_DownloadEntry.from_entry(entry))
        self.count += 1
        if entry.size is not None:
            self.size += entry.size

        return True

    def download(self, threads_count: int, *,
        timeout: float = DEFAULT_TIMEOUT,
        partial_progress: bool = False
    ) -> Iterator[Tuple[int, DownloadResult]]:
        """Execute the download. The iterator only ends once every entry has settled,
        either successfully or with an error.

        :param threads_count: The number of threads (and therefore of simultaneous
        connections) to run the download on.
        :param timeout: Timeout of each connection, in seconds.
        :param partial_progress: Set to true to be able to receive partial progress update
        on unfinished files, if this is false, DownloadResultProgress.done should be true.
        :return: This function returns an iterator that yields a tuple that contain the
        total number of results and the new result that came in.
        """

        entries_count = len(self.entries)
        if not entries_count or threads_count < 1:
            return

        # Do not create more threads than entries.
        threads_count = min(threads_count, entries_count)

        entries_queue = Queue()
        result_queue = Queue()

        for th_id in range(threads_count):
            th = Thread(target=_download_thread_wrapper,
                        args=(th_id, entries_queue, result_queue, timeout, partial_progress),
                        daemon=True,
                        name=f"Download Thread {th_id}")
            th.start()

        for entry in self.entries:
            entries_queue.put(entry)

        result_count = 0
        crash = None

        try:
            while result_count < entries_count:

                result = result_queue.get()
                if isinstance(result, _DownloadThreadCrash):
                    crash = result
                    break

                if not isinstance(result, DownloadResultProgress) or result.done:
                    result_count += 1

                yield result_count, result

        finally:
            # Send 'threads_count' sentinels, threads are daemon so we don't join them.
            for _ in range(threads_count):
                entries_queue.put(None)

        if crash is not None:
            raise ValueError(f"unexpected crash from thread {crash.thread_id}", crash.origin)


class Fetcher:
    """The artifact fetcher shared by every stage of an installation. It holds the
    configured bound of simultaneous connections, this bound applies to every download
    list run through this fetcher.
    """

    def __init__(self, threads_count: int = DEFAULT_THREADS_COUNT, timeout: float = DEFAULT_TIMEOUT) -> None:
        if threads_count < 1:
            raise ValueError("threads count must be at least 1")
        self.threads_count = threads_count
        self.timeout = timeout

    def fetch(self, url: str, dst_dir: Path, dst_name: str) -> Path:
        """Fetch a single URL into the given directory, under the given name. The
        directory is created if needed.

        :return: The path of the downloaded file.
        :raises FetchError: If the request or the write failed.
        """

        entry = DownloadEntry(url, dst_dir / dst_name, name=dst_name)
        dl = DownloadList()
        dl.add(entry)

        errors = self.fetch_all(dl)
        if len(errors):
            raise errors[0]

        return entry.dst

    def fetch_all(self, dl: DownloadList,
        callback: Optional[Callable[[int, DownloadResult], None]] = None
    ) -> List[FetchError]:
        """Download every entry of the given list and return only when all of them have
        settled. Failures don't interrupt sibling entries, they are all returned.

        :param callback: Optional function called with every result as it comes in.
        :return: The list of failed entries, empty if all succeeded.
        """

        errors = []

        for result_count, result in self.download(dl):
            if callback is not None:
                callback(result_count, result)
            if isinstance(result, DownloadResultError):
                errors.append(FetchError(result.entry, result.code, result.origin))

        dl.clear()
        return errors

    def download(self, dl: DownloadList) -> Iterator[Tuple[int, DownloadResult]]:
        return dl.download(self.threads_count, timeout=self.timeout, partial_progress=True)


class _DownloadThreadCrash:
    """Unexpected exception happening in a thread, this is the result of a bad logic
    from programmer.
    """
    __slots__ = "thread_id", "origin",
    def __init__(self, thread_id: int, origin: Optional[Exception]) -> None:
        self.thread_id = thread_id
        self.origin = origin


def _download_thread_wrapper(
    thread_id: int,
    entries_queue: Queue,
    result_queue: Queue,
    timeout: float,
    partial_progress: bool
) -> None:
    """Wrapper for the download thread that basically ensures that any unexpected error
    sends a signal (DownloadThreadCrash) to the master to signal the crash.
    """
    try:
        _download_thread(thread_id, entries_queue, result_queue, timeout, partial_progress)
    except Exception as e:
        result_queue.put(_DownloadThreadCrash(thread_id, e))


def _download_thread(
    thread_id: int,
    entries_queue: Queue,
    result_queue: Queue,
    timeout: float,
    partial_progress: bool
) -> None:
    """This function is internally used for multi-threaded download. Each entry is tried
    exactly once, the result is sent to the result queue.

    :param entries_queue: Where entries to download are received.
    :param result_queue: Where threads send progress update.
    """

    # Cache for connections depending on host and https
    conn_cache: Dict[Tuple[bool, str, Optional[int]], Union[HTTPConnection, HTTPSConnection]] = {}

    # Each thread has its own buffer.
    buffer_cap = 65536
    buffer_back = bytearray(buffer_cap)
    buffer = memoryview(buffer_back)

    ctx = ssl_context()

    while True:

        raw_entry: Optional[_DownloadEntry] = entries_queue.get()

        # None is a sentinel to stop the thread, it should be consumed ONCE.
        if raw_entry is None:
            break

        conn_key = (raw_entry.https, raw_entry.host, raw_entry.port)
        entry = raw_entry.entry

        # Get connection from cache or create it.
        conn = conn_cache.get(conn_key)
        if conn is None:
            if raw_entry.https:
                conn = HTTPSConnection(raw_entry.host, raw_entry.port, timeout=timeout, context=ctx)
            else:
                conn = HTTPConnection(raw_entry.host, raw_entry.port, timeout=timeout)
            conn_cache[conn_key] = conn

        error: Optional[str] = None
        error_origin: Optional[Exception] = None
        written = False

        try:

            entry.dst.parent.mkdir(parents=True, exist_ok=True)

            conn.request("GET", raw_entry.path)
            res = conn.getresponse()

            if res.status != 200:

                # This loop is used to skip all bytes in the stream,
                # and allow further request.
                while res.readinto(buffer):
                    pass

                if res.status in (301, 302, 303, 307, 308):

                    location = res.headers.get("location")
                    try:
                        if location is None:
                            raise ValueError(f"redirect without location from url {entry.url}")
                        if raw_entry.redirects >= MAX_REDIRECTS:
                            raise ValueError(f"too many redirects from url {entry.url}")
                        redirect_entry = DownloadEntry(
                            urllib.parse.urljoin(entry.url, location),
                            entry.dst,
                            size=entry.size,
                            sha1=entry.sha1,
                            name=entry.name)
                        entries_queue.put(_DownloadEntry.from_entry(redirect_entry, raw_entry.redirects + 1))
                        continue
                    except ValueError as e:
                        error = DownloadResultError.CONNECTION
                        error_origin = e

                else:
                    error = DownloadResultError.NOT_FOUND

            else:

                sha1 = None if entry.sha1 is None else hashlib.sha1()
                size = 0

                written = True
                with entry.dst.open("wb") as dst_fp:

                    while True:

                        read_len = res.readinto(buffer)
                        if not read_len:
                            break

                        size += read_len
                        buffer_view = buffer[:read_len]
                        if sha1 is not None:
                            sha1.update(buffer_view)
                        dst_fp.write(buffer_view)

                        # Filled the whole buffer, send a progress update because we'll
                        # likely need another reading.
                        if partial_progress and read_len == buffer_cap:
                            result_queue.put(DownloadResultProgress(thread_id, entry, size, False))

                if entry.size is not None and size != entry.size:
                    error = DownloadResultError.INVALID_SIZE
                elif sha1 is not None and sha1.hexdigest() != entry.sha1:
                    error = DownloadResultError.INVALID_SHA1
                else:
                    result_queue.put(DownloadResultProgress(thread_id, entry, size, True))

        except (OSError, HTTPException) as e:

            # On errors, we just throw away the old connection, a new one is created
            # for the next entry.
            conn.close()
            del conn_cache[conn_key]

            error = DownloadResultError.CONNECTION
            error_origin = e

        if error is not None:

            # Partially written or invalid files are removed.
            if written:
                try:
                    entry.dst.unlink()
                except OSError:
                    pass  # Not a problem if the file isn't present.

            result_queue.put(DownloadResultError(thread_id, entry, error, error_origin))
