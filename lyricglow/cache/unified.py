"""
Unified offline-first cache for lyrics, artist metadata and images

Every provider in LyricGlow reads and writes through UnifiedCacheManager. It is
a small content-addressable store: each entry's lookup key (a URL, a
"title-artist" string, a provider id) is hashed into a fixed-length filename,
the payload lives in its own file, and a JSON index maps type -> hash ->
{key, timestamp, file}.

On-disk layout under the cache root:

    index.json               full index, rewritten after every mutation
    images/<hash>.jpg        raw image bytes
    lyrics/<hash>.json       lyrics records
    metadata/<hash>.json     provider metadata

Staleness policy (stale-while-offline):
    An entry older than the expiry window is reported as a miss only when the
    network is confirmed reachable, so the caller refreshes it. When offline,
    every readable entry is served regardless of age. Stale entries are never
    deleted by get(); they remain available as a fallback.

Self-healing:
    Index records whose payload file is missing or unreadable are pruned the
    next time they are read.

Concurrency:
    Provider lookups for one track run on worker threads, so index mutations
    and index rewrites are serialized with a re-entrant lock. Payload and
    index files are written to a temporary file and moved into place.
"""

import base64
import binascii
import json
import os
import tempfile
import threading
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import CacheError
from ..network.connectivity import ConnectivityProber
from ..utils.helpers import current_time_ms, generate_key_hash
from ..utils.logger import get_logger


DEFAULT_EXPIRY_HOURS = 168
IMAGE_DATA_URI_PREFIX = 'data:image/jpeg;base64,'


class CacheType(Enum):
    """
    Content categories held by the cache

    The category decides the subdirectory, the file extension and whether the
    payload is raw bytes or JSON.
    """
    IMAGES = "images"
    LYRICS = "lyrics"
    METADATA = "metadata"

    @property
    def extension(self) -> str:
        return 'jpg' if self is CacheType.IMAGES else 'json'

    @property
    def is_binary(self) -> bool:
        return self is CacheType.IMAGES

    @classmethod
    def coerce(cls, value: Union['CacheType', str]) -> 'CacheType':
        """
        Accept a CacheType or its string value

        Raises:
            CacheError: For an unknown content type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise CacheError(
                f"Unknown cache type: {value!r}",
                details={'valid_types': [t.value for t in cls]}
            ) from None


@dataclass
class CacheEntry:
    """Flattened view of one index record"""
    type: str
    key: str
    timestamp: int
    file: str
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UnifiedCacheManager:
    """
    Disk-backed cache shared by every data provider

    Payloads:
        images   -> stored as bytes; set() accepts bytes or a base64 data URI,
                    get() returns a "data:image/jpeg;base64,..." string
        lyrics   -> any JSON value
        metadata -> any JSON value
    """

    def __init__(
        self,
        cache_root: Union[str, Path],
        expiry_ms: Optional[int] = None,
        connectivity: Optional[ConnectivityProber] = None,
        clock: Callable[[], int] = current_time_ms
    ):
        """
        Args:
            cache_root: Directory owning index.json and the payload folders
            expiry_ms: Staleness window in milliseconds (default 168 hours)
            connectivity: Reachability prober deciding whether stale entries refresh
            clock: Returns the current time in epoch milliseconds
        """
        self.logger = get_logger(__name__)
        self.cache_root = Path(cache_root).expanduser()
        self.index_path = self.cache_root / 'index.json'
        self.cache_expiry = expiry_ms if expiry_ms is not None else DEFAULT_EXPIRY_HOURS * 60 * 60 * 1000
        self.connectivity = connectivity or ConnectivityProber()
        self._clock = clock
        self._lock = threading.RLock()

        self.ensure_cache_directories()
        self.index: Dict[str, Dict[str, Dict[str, Any]]] = self.load_index()

    @classmethod
    def from_settings(cls, settings, connectivity: Optional[ConnectivityProber] = None) -> 'UnifiedCacheManager':
        """Build the cache from the cache section of Settings"""
        return cls(
            settings.get_cache_directory(),
            expiry_ms=settings.get_cache_expiry_ms(),
            connectivity=connectivity,
        )

    # ------------------------------------------------------------------
    # Storage plumbing
    # ------------------------------------------------------------------

    def ensure_cache_directories(self) -> None:
        """Create the cache root and one subdirectory per content type"""
        for directory in [self.cache_root] + [self.cache_root / t.value for t in CacheType]:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.logger.error(f"Failed to create cache directory {directory}: {e}")

    def load_index(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """
        Load index.json, discarding anything that is not a well-formed record

        An unreadable or corrupt index yields an empty cache rather than an error.
        """
        if not self.index_path.exists():
            return {}

        try:
            with open(self.index_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Cache index unreadable, starting empty: {e}")
            return {}

        if not isinstance(raw, dict):
            self.logger.warning("Cache index has unexpected shape, starting empty")
            return {}

        valid_types = {t.value for t in CacheType}
        index = {}
        for type_name, records in raw.items():
            if type_name not in valid_types or not isinstance(records, dict):
                continue
            index[type_name] = {
                hash_: record for hash_, record in records.items()
                if self._is_valid_record(record)
            }
        return index

    @staticmethod
    def _is_valid_record(record: Any) -> bool:
        """Records need a str key, a numeric timestamp and a bare filename"""
        if not isinstance(record, dict) or not {'key', 'timestamp', 'file'} <= record.keys():
            return False
        timestamp, key, file_name = record['timestamp'], record['key'], record['file']
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return False
        if not isinstance(key, str) or not isinstance(file_name, str):
            return False
        return file_name not in ('', '.', '..') and Path(file_name).name == file_name

    def save_index(self) -> bool:
        """
        Rewrite index.json in full

        Returns:
            True if the index was persisted
        """
        with self._lock:
            try:
                self._atomic_write(self.index_path, json.dumps(self.index, indent=2).encode('utf-8'))
                return True
            except OSError as e:
                self.logger.error(f"Failed to save cache index: {e}")
                return False

    def _atomic_write(self, path: Path, content: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix='.tmp-', suffix=path.suffix)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    @staticmethod
    def generate_hash(key: str) -> str:
        """Deterministic filename stem for a cache key"""
        return generate_key_hash(key)

    def get_cache_file_path(self, cache_type: Union[CacheType, str], key: str) -> Path:
        """Path of the payload file for a key"""
        cache_type = CacheType.coerce(cache_type)
        return self.cache_root / cache_type.value / f"{self.generate_hash(key)}.{cache_type.extension}"

    def is_expired(self, timestamp: int) -> bool:
        """True if an entry written at timestamp is older than the expiry window"""
        return self._clock() - timestamp > self.cache_expiry

    def should_refresh(self, timestamp: int, is_online: Optional[bool] = None) -> bool:
        """
        Stale entries only need refreshing when the network is reachable

        Connectivity is only probed (when is_online is None) for expired entries.
        """
        if not self.is_expired(timestamp):
            return False
        if is_online is None:
            is_online = self.connectivity.is_online()
        return is_online

    def _drop_record(self, type_name: str, hash_: str) -> None:
        records = self.index.get(type_name)
        if records is not None:
            records.pop(hash_, None)

    def _remove_file(self, path: Path) -> None:
        if path.exists():
            path.unlink()

    # ------------------------------------------------------------------
    # Public store operations
    # ------------------------------------------------------------------

    def has(self, cache_type: Union[CacheType, str], key: str) -> bool:
        """
        Check whether an index record exists for a key

        Neither file existence nor staleness is checked.
        """
        cache_type = CacheType.coerce(cache_type)
        with self._lock:
            return self.generate_hash(key) in self.index.get(cache_type.value, {})

    def get(self, cache_type: Union[CacheType, str], key: str, allow_stale: bool = False) -> Optional[Any]:
        """
        Read a cached payload

        Args:
            cache_type: Content type
            key: Lookup key
            allow_stale: Serve the entry regardless of age (fallback reads)

        Returns:
            The payload (data URI string for images, parsed JSON otherwise),
            or None when absent, unreadable, or stale while online
        """
        cache_type = CacheType.coerce(cache_type)
        hash_ = self.generate_hash(key)
        file_path = self.get_cache_file_path(cache_type, key)

        with self._lock:
            entry = self.index.get(cache_type.value, {}).get(hash_)
            if not entry:
                return None

            if not file_path.exists():
                self.logger.debug(f"Pruning dangling cache record {cache_type.value}/{key}")
                self._drop_record(cache_type.value, hash_)
                self.save_index()
                return None

            timestamp = entry['timestamp']

        # Probe outside the lock so concurrent readers are not blocked on the network
        if not allow_stale and self.should_refresh(timestamp):
            self.logger.debug(f"Cache entry stale, refresh needed: {cache_type.value}/{key}")
            return None

        with self._lock:
            try:
                if cache_type.is_binary:
                    payload = file_path.read_bytes()
                    return IMAGE_DATA_URI_PREFIX + base64.b64encode(payload).decode('ascii')
                with open(file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                self._drop_record(cache_type.value, hash_)
                self.save_index()
                return None
            except (OSError, ValueError) as e:
                self.logger.error(f"Read failed for {cache_type.value}/{key}, dropping entry: {e}")
                self._drop_record(cache_type.value, hash_)
                try:
                    self._remove_file(file_path)
                except OSError:
                    pass
                self.save_index()
                return None

    def set(self, cache_type: Union[CacheType, str], key: str, payload: Any) -> bool:
        """
        Store a payload under a key, replacing any previous entry

        Args:
            cache_type: Content type
            key: Lookup key
            payload: bytes or data URI for images, JSON-compatible value otherwise

        Returns:
            True if both payload and index were written
        """
        cache_type = CacheType.coerce(cache_type)
        if not payload:
            return False

        content = self._serialize(cache_type, key, payload)
        if content is None:
            return False

        hash_ = self.generate_hash(key)
        file_path = self.get_cache_file_path(cache_type, key)

        with self._lock:
            try:
                self._atomic_write(file_path, content)
            except OSError as e:
                self.logger.error(f"Write failed for {cache_type.value}/{key}: {e}")
                return False

            records = self.index.setdefault(cache_type.value, {})
            previous = records.get(hash_)
            records[hash_] = {
                'key': key,
                'timestamp': self._clock(),
                'file': file_path.name,
            }
            if self.save_index():
                return True

            # Keep memory in step with the index on disk
            if previous is None:
                records.pop(hash_, None)
            else:
                records[hash_] = previous
            return False

    def _serialize(self, cache_type: CacheType, key: str, payload: Any) -> Optional[bytes]:
        if cache_type.is_binary:
            if isinstance(payload, (bytes, bytearray)):
                return bytes(payload)
            if isinstance(payload, str) and payload.startswith('data:image'):
                _, _, encoded = payload.partition(',')
                try:
                    return base64.b64decode(encoded, validate=True)
                except (binascii.Error, ValueError) as e:
                    self.logger.error(f"Invalid image data URI for {key}: {e}")
                    return None
            self.logger.debug(f"Rejected image payload of type {type(payload).__name__} for {key}")
            return None

        try:
            return json.dumps(payload, indent=2, ensure_ascii=False).encode('utf-8')
        except (TypeError, ValueError) as e:
            self.logger.error(f"Payload for {cache_type.value}/{key} is not JSON serializable: {e}")
            return None

    def delete_one(self, cache_type: Union[CacheType, str], key: str) -> bool:
        """
        Remove one entry's file and index record

        Returns:
            False if no record existed or the file could not be removed
        """
        cache_type = CacheType.coerce(cache_type)
        hash_ = self.generate_hash(key)

        with self._lock:
            if hash_ not in self.index.get(cache_type.value, {}):
                return False

            try:
                self._remove_file(self.get_cache_file_path(cache_type, key))
            except OSError as e:
                self.logger.error(f"Failed to delete cache entry {cache_type.value}/{key}: {e}")
                return False

            self._drop_record(cache_type.value, hash_)
            self.save_index()
            return True

    def clear_expired(self) -> int:
        """
        Delete entries older than the expiry window

        Does nothing while offline, so an offline session never loses its
        only copy of the data.

        Returns:
            Number of entries removed
        """
        if not self.connectivity.is_online():
            self.logger.debug("Offline, keeping expired cache entries")
            return 0

        cleared = 0
        with self._lock:
            for type_name, records in self.index.items():
                for hash_, entry in list(records.items()):
                    if not self.is_expired(entry['timestamp']):
                        continue
                    try:
                        self._remove_file(self.cache_root / type_name / entry['file'])
                    except OSError as e:
                        self.logger.error(f"Failed to delete expired cache file {entry['file']}: {e}")
                        continue
                    del records[hash_]
                    cleared += 1

            if cleared:
                self.save_index()
                self.logger.info(f"Cleared {cleared} expired cache entries")

        return cleared

    def clear_all(self) -> None:
        """Delete every payload file and reset the index"""
        with self._lock:
            for type_name, records in self.index.items():
                for entry in records.values():
                    try:
                        self._remove_file(self.cache_root / type_name / entry['file'])
                    except OSError as e:
                        self.logger.error(f"Failed to delete cache file {entry['file']}: {e}")

            self.index = {}
            self.save_index()
        self.logger.info("Cache cleared completely")

    def list_all_entries(self) -> List[Dict[str, Any]]:
        """
        Flatten the index across all types

        Returns:
            List of {type, key, timestamp, file, hash} dictionaries
        """
        with self._lock:
            return [
                CacheEntry(
                    type=type_name,
                    key=entry['key'],
                    timestamp=entry['timestamp'],
                    file=entry['file'],
                    hash=hash_,
                ).to_dict()
                for type_name, records in self.index.items()
                for hash_, entry in records.items()
            ]

    def get_entry_size(self, cache_type: Union[CacheType, str], key: str) -> int:
        """Size in bytes of an entry's payload file, 0 if absent"""
        try:
            return self.get_cache_file_path(cache_type, key).stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            self.logger.error(f"Failed to get file size for {key}: {e}")
            return 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Summarize the index

        Returns:
            {types: {type: count}, total, oldestEntry, newestEntry}
        """
        stats: Dict[str, Any] = {'types': {}, 'total': 0, 'oldestEntry': None, 'newestEntry': None}

        with self._lock:
            for type_name, records in self.index.items():
                stats['types'][type_name] = len(records)
                stats['total'] += len(records)
                for entry in records.values():
                    timestamp = entry['timestamp']
                    if stats['oldestEntry'] is None or timestamp < stats['oldestEntry']:
                        stats['oldestEntry'] = timestamp
                    if stats['newestEntry'] is None or timestamp > stats['newestEntry']:
                        stats['newestEntry'] = timestamp

        return stats

    # ------------------------------------------------------------------
    # Provider idiom
    # ------------------------------------------------------------------

    def get_or_fetch(
        self,
        cache_type: Union[CacheType, str],
        key: str,
        fetcher: Callable[[], Any]
    ) -> Optional[Any]:
        """
        Check cache, fetch on miss, fall back to whatever the cache holds

        This is the one lookup path every provider uses:

        1. A fresh (or offline-tolerated) cache hit is returned as is.
        2. Otherwise fetcher() is called. Exceptions are logged and treated
           like an empty result.
        3. A non-empty result is written to the cache and returned.
        4. Otherwise the cached entry is returned regardless of age, or None.

        Args:
            cache_type: Content type
            key: Lookup key
            fetcher: Zero-argument callable performing the network fetch

        Returns:
            Fresh data, stale cached data, or None
        """
        cached = self.get(cache_type, key)
        if cached:
            self.logger.debug(f"Cache hit: {CacheType.coerce(cache_type).value}/{key}")
            return cached

        try:
            fetched = fetcher()
        except Exception as e:
            self.logger.warning(f"Fetch failed for {key}, falling back to cache: {e}")
            fetched = None

        if fetched:
            self.set(cache_type, key, fetched)
            return fetched

        fallback = self.get(cache_type, key, allow_stale=True)
        if fallback:
            self.logger.debug(f"Serving stale cache entry for {key}")
        return fallback
