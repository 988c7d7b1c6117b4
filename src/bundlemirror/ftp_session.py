from __future__ import annotations

from contextlib import contextmanager
import ftplib
import logging
import socket
from typing import BinaryIO, Iterator

from bundlemirror.config import JobConfig
from bundlemirror.errors import ListingError, TransferError


logger = logging.getLogger("bundlemirror.ftp")

ANONYMOUS_USER = "anonymous"


class FtpSession:
    """One FTP control connection shared by the whole walk.

    The connection is opened lazily and dropped after any protocol failure, so
    the next listing or transfer starts on a fresh login.
    """

    def __init__(
        self,
        host: str,
        port: int = 21,
        user: str = ANONYMOUS_USER,
        password: str = "",
        timeout: float | None = 60.0,
        passive: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout
        self.passive = passive
        self._ftp: ftplib.FTP | None = None

    @classmethod
    def from_job(cls, job: JobConfig) -> "FtpSession":
        return cls(
            host=job.host,
            port=job.port,
            user=job.user,
            password=job.password,
            timeout=job.timeout,
            passive=job.passive,
        )

    def __enter__(self) -> "FtpSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _client(self) -> ftplib.FTP:
        if self._ftp is not None:
            return self._ftp

        logger.info("Connecting to ftp://%s@%s:%s", self.user, self.host, self.port)
        ftp = ftplib.FTP(timeout=self.timeout)
        try:
            ftp.connect(self.host, self.port)
            ftp.login(self.user, self.password)
            ftp.set_pasv(self.passive)
            try:
                ftp.sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            except OSError:
                logger.debug("TCP keepalive not available on control connection")
        except BaseException:
            ftp.close()
            raise
        self._ftp = ftp
        return ftp

    def _drop(self) -> None:
        if self._ftp is None:
            return
        ftp, self._ftp = self._ftp, None
        try:
            ftp.close()
        except OSError as exc:
            logger.debug("Error while closing FTP connection: %s", exc)

    def close(self) -> None:
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors as exc:
            logger.debug("QUIT failed, closing connection: %s", exc)
        self._drop()

    def list_lines(self, remote_address: str) -> list[str]:
        lines: list[str] = []
        try:
            ftp = self._client()
            ftp.cwd(remote_address)
            ftp.retrlines("LIST", lines.append)
        except ftplib.all_errors as exc:
            self._drop()
            raise ListingError(remote_address, str(exc)) from exc
        return lines

    @contextmanager
    def open_file(self, remote_address: str) -> Iterator[BinaryIO]:
        """Stream ``RETR remote_address`` as a binary file object."""
        try:
            ftp = self._client()
            ftp.voidcmd("TYPE I")
            conn = ftp.transfercmd(f"RETR {remote_address}")
        except ftplib.all_errors as exc:
            self._drop()
            raise TransferError(remote_address, exc) from exc

        completed = False
        try:
            with conn, conn.makefile("rb") as reader:
                yield reader
            ftp.voidresp()
            completed = True
        except ftplib.all_errors as exc:
            raise TransferError(remote_address, exc) from exc
        finally:
            if not completed:
                self._drop()
