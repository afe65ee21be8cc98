import os
import tempfile

from pydantic import ValidationError

from usage_dashboard.observability.logger import get_logger
from usage_dashboard.scraper.models import AggregateSnapshot

log = get_logger("cache")


class CacheStore:
    """The latest AggregateSnapshot as a single JSON file (data/usage.json).

    Writes go to a temp file in the same directory and are swapped in with
    os.replace, so readers see either the old snapshot or the new one.
    """

    def __init__(self, path: str = "data/usage.json"):
        self.path = path

    def write(self, snapshot: AggregateSnapshot) -> str:
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".usage-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(by_alias=True, indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        log.info("cache_written", path=self.path, accounts=len(snapshot.accounts))
        return self.path

    def read(self) -> AggregateSnapshot | None:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return AggregateSnapshot.model_validate_json(f.read())
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            log.warning("cache_unreadable", path=self.path, error=str(e))
            return None
