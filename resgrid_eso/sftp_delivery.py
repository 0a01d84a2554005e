import io
import time
import hashlib
import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import paramiko

from .errors import TransferError, classify_transfer_error

logger = logging.getLogger("resgrid_eso.delivery")

TEMP_SUFFIX = ".tmp"
TRANSFER_ERRORS = (TransferError, paramiko.SSHException, OSError, EOFError)


# ----------------------------
# Utility Functions
# ----------------------------
def compute_sha256(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


@dataclass
class DeliveryResult:
    """Result of a delivery attempt."""
    success: bool
    status: str  # delivered | unchanged | failed
    remote_path: str
    attempts: int = 0
    digest: Optional[str] = None
    error: Optional[str] = None


class FingerprintCache:
    """Last delivered content hash per (source, remote path). Process memory only."""

    def __init__(self):
        self._hashes: Dict[Tuple[str, str], str] = {}

    def get(self, source_id: str, remote_path: str) -> Optional[str]:
        return self._hashes.get((source_id, remote_path))

    def set(self, source_id: str, remote_path: str, digest: str) -> None:
        self._hashes[(source_id, remote_path)] = digest

    def clear(self, source_id: Optional[str] = None) -> int:
        if source_id is None:
            count = len(self._hashes)
            self._hashes.clear()
        else:
            keys = [k for k in self._hashes if k[0] == source_id]
            for k in keys:
                del self._hashes[k]
            count = len(keys)
        logger.debug(f"Cleared {count} fingerprint cache entries")
        return count

    def __len__(self) -> int:
        return len(self._hashes)


class TransferChannel(ABC):
    @abstractmethod
    def store(self, content: bytes, remote_path: str) -> None:
        """Write content at remote_path or raise."""


# ----------------------------
# SFTP Transfer
# ----------------------------
class SftpStore(TransferChannel):
    def __init__(self, host: str, port: int, username: str, password: str, timeout: float = 30):
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_config(cls, sftp_cfg: Dict[str, Any]) -> "SftpStore":
        return cls(
            host=sftp_cfg["host"],
            port=sftp_cfg.get("port", 22),
            username=sftp_cfg["username"],
            password=sftp_cfg["password"],
            timeout=sftp_cfg.get("timeout", 30),
        )

    def _connect(self) -> Tuple[paramiko.SFTPClient, paramiko.Transport]:
        transport = paramiko.Transport((self.host, self.port))
        transport.banner_timeout = self.timeout
        try:
            transport.connect(username=self.username, password=self.password)
            sftp = paramiko.SFTPClient.from_transport(transport)
        except paramiko.AuthenticationException as e:
            transport.close()
            raise TransferError(f"SFTP authentication failed for {self.username}@{self.host}: {e}", retryable=False)
        except Exception:
            transport.close()
            raise
        sftp.get_channel().settimeout(self.timeout)
        return sftp, transport

    def _ensure_dir(self, sftp: paramiko.SFTPClient, remote_dir: str) -> None:
        if not remote_dir or remote_dir == "/":
            return
        try:
            sftp.stat(remote_dir)
            return
        except FileNotFoundError:
            pass
        self._ensure_dir(sftp, posixpath.dirname(remote_dir.rstrip("/")))
        logger.info(f"Remote directory {remote_dir} does not exist. Creating it...")
        sftp.mkdir(remote_dir)

    def store(self, content: bytes, remote_path: str) -> None:
        remote_dir = posixpath.dirname(remote_path)
        remote_temp = remote_path + TEMP_SUFFIX

        logger.info(f"Connecting to SFTP server at {self.host}:{self.port}")
        sftp, transport = self._connect()
        try:
            self._ensure_dir(sftp, remote_dir)

            # upload temp file, then rename to final name
            sftp.putfo(io.BytesIO(content), remote_temp)
            sftp.posix_rename(remote_temp, remote_path)
            logger.info(f"File successfully uploaded to {remote_path} ({len(content)} bytes)")
        finally:
            sftp.close()
            transport.close()


class Deliverer:
    """Fingerprint-deduplicated transfer with bounded exponential backoff."""

    def __init__(
        self,
        channel: TransferChannel,
        cache: Optional[FingerprintCache] = None,
        max_retries: int = 5,
        base_delay: float = 3.0,
        max_delay: float = 60.0,
        max_total_delay: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.channel = channel
        self.cache = cache if cache is not None else FingerprintCache()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_total_delay = max_total_delay
        self.sleep = sleep

    @classmethod
    def from_config(cls, channel: TransferChannel, cache: FingerprintCache, delivery_cfg: Dict[str, Any]) -> "Deliverer":
        return cls(
            channel,
            cache,
            max_retries=int(delivery_cfg.get("max_retries", 5)),
            base_delay=float(delivery_cfg.get("base_delay", 3.0)),
            max_delay=float(delivery_cfg.get("max_delay", 60.0)),
            max_total_delay=float(delivery_cfg.get("max_total_delay", 300.0)),
        )

    def backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def deliver(self, content: bytes, remote_path: str, source_id: str = "") -> DeliveryResult:
        digest = compute_sha256(content)
        if self.cache.get(source_id, remote_path) == digest:
            logger.info(f"Skipping upload to {remote_path} - content has not changed")
            return DeliveryResult(True, "unchanged", remote_path, attempts=0, digest=digest)

        retry = 0
        slept = 0.0
        while True:
            try:
                if retry > 0:
                    logger.info(f"Retry attempt {retry} of {self.max_retries} for {remote_path}")
                self.channel.store(content, remote_path)
                self.cache.set(source_id, remote_path, digest)
                return DeliveryResult(True, "delivered", remote_path, attempts=retry + 1, digest=digest)
            except TRANSFER_ERRORS as e:
                attempts = retry + 1
                if not classify_transfer_error(e):
                    logger.error(f"Upload to {remote_path} failed with non-retryable error: {e}")
                    return DeliveryResult(False, "failed", remote_path, attempts, digest, str(e))
                if retry >= self.max_retries:
                    logger.error(f"Upload to {remote_path} failed after {retry} retries: {e}")
                    return DeliveryResult(False, "failed", remote_path, attempts, digest, str(e))

                delay = self.backoff(retry)
                if slept + delay > self.max_total_delay:
                    logger.error(f"Upload to {remote_path} gave up, retry budget of {self.max_total_delay}s spent: {e}")
                    return DeliveryResult(False, "failed", remote_path, attempts, digest, str(e))

                logger.warning(f"Upload to {remote_path} failed, retrying in {delay}s: {e}")
                self.sleep(delay)
                slept += delay
                retry += 1

    def clear_fingerprints(self, source_id: Optional[str] = None) -> int:
        """Operator reset: forget delivered hashes so the next run re-uploads."""
        count = self.cache.clear(source_id)
        logger.info(f"Cleared {count} delivery fingerprints")
        return count
