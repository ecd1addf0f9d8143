from __future__ import annotations

from pathlib import Path
from typing import Any

import libconf

from rozo_warnquota.errors import ConfigError, ExportNotFoundError
from rozo_warnquota.observability.logging import get_logger

log = get_logger(__name__)


class ExportRegistry:
    def __init__(self, exports: dict[int, str]) -> None:
        self.exports = dict(exports)

    @classmethod
    def load(cls, path: str | Path) -> ExportRegistry:
        p = Path(path)
        try:
            with open(p, "r", encoding="utf-8") as f:
                cfg = libconf.load(f)
        except OSError as e:
            raise ConfigError(f"Error on reading exportd configuration {p}: {e.strerror or e}") from e
        except libconf.ConfigParseError as e:
            raise ConfigError(f"Error on reading exportd configuration {p}: {e}") from e
        return cls(cls._exports_from(cfg, p))

    @staticmethod
    def _exports_from(cfg: Any, p: Path) -> dict[int, str]:
        exports: dict[int, str] = {}
        for entry in cfg.get("exports", ()):
            try:
                eid = int(entry["eid"])
                root = str(entry["root"])
            except (KeyError, TypeError, ValueError):
                log.warning("Ignoring malformed export entry in %s: %r", p, entry)
                continue
            exports[eid] = root
        return exports

    def resolve(self, eid: int) -> str:
        try:
            return self.exports[eid]
        except KeyError:
            raise ExportNotFoundError(f"export {eid} does not exist") from None

    def __contains__(self, eid: object) -> bool:
        return eid in self.exports
