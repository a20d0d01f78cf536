from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .utils import DEFAULT_UTC_OFFSET_HOURS, Clock, display_timestamp, file_date, now_utc, shifted

logger = logging.getLogger(__name__)

LOG_PREFIX = "access-"
LOG_SUFFIX = ".log"
LOG_NAME_RE = re.compile(r"^access-(\d{4}-\d{2}-\d{2})\.log$")


class AccessLogError(Exception):
    """Base class for log catalog and reader failures."""


class LogDirectoryError(AccessLogError):
    pass


class InvalidLogName(AccessLogError):
    pass


class LogNotFound(AccessLogError):
    pass


class LogReadError(AccessLogError):
    pass


# === Writer ===


class AccessLogWriter:
    """Appends one line per request to ``access-YYYY-MM-DD.log``.

    Dates use a fixed UTC offset rather than the host zone. The file for a day
    is created by its first write, so rollover happens lazily after midnight.
    """

    def __init__(
        self,
        log_dir: Path | str,
        clock: Optional[Clock] = None,
        utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.clock = clock or now_utc
        self.utc_offset_hours = utc_offset_hours

    def local_now(self) -> datetime:
        return shifted(self.clock(), self.utc_offset_hours)

    def path_for(self, moment: datetime) -> Path:
        return self.log_dir / f"{LOG_PREFIX}{file_date(moment)}{LOG_SUFFIX}"

    def current_path(self) -> Path:
        return self.path_for(self.local_now())

    def format_entry(
        self,
        ip: str,
        method: str,
        target: str,
        user_agent: str,
        now: Optional[datetime] = None,
    ) -> str:
        moment = now or self.local_now()
        return f'[{display_timestamp(moment)}] [IP: {ip}] [{method}] {target} - "{user_agent}"\n'

    def write(self, ip: str, method: str, target: str, user_agent: str = "") -> Path:
        moment = self.local_now()
        line = self.format_entry(ip, method, target, user_agent or "", now=moment)
        path = self.path_for(moment)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(line)
        return path


# === Catalog & reader ===


def is_valid_log_name(filename: str) -> bool:
    if not filename.startswith(LOG_PREFIX) or not filename.endswith(LOG_SUFFIX):
        return False
    # a name like "access-/../x.log" passes the affix check but escapes the dir
    return "/" not in filename and "\\" not in filename and "\x00" not in filename


def list_log_files(log_dir: Path | str) -> List[str]:
    """Return the daily log file names in ``log_dir``, newest day first."""
    try:
        names = [entry.name for entry in Path(log_dir).iterdir() if entry.is_file()]
    except OSError as exc:
        raise LogDirectoryError(f"cannot list log directory: {exc}") from exc
    dated = [(m.group(1), name) for name in names if (m := LOG_NAME_RE.match(name))]
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [name for _, name in dated]


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError) as exc:
        raise LogNotFound(path.name) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LogReadError(f"cannot read {path.name}: {exc}") from exc


def read_log_file(log_dir: Path | str, filename: str) -> str:
    """Return the raw text of one log file.

    The name is checked before the filesystem is touched.
    """
    if not is_valid_log_name(filename):
        raise InvalidLogName(filename)
    return _read(Path(log_dir) / filename)


def read_today(writer: AccessLogWriter) -> str:
    return _read(writer.current_path())
