"""Environment-driven settings shared by the API and the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional

DATA_FILE_NAME = "expense_data.json"


@dataclass(frozen=True)
class StoreConfig:
    data_dir: Path = Path("data")
    backup_dir: Path = Path.home() / "Downloads"
    env: str = "prod"
    allowed_origins: List[str] = field(default_factory=list)

    @property
    def data_file(self) -> Path:
        return self.data_dir / DATA_FILE_NAME

    @property
    def is_development(self) -> bool:
        return self.env in {"dev", "development"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        environ = os.environ if environ is None else environ
        defaults = cls()
        raw_origins = environ.get("EXPENSE_STORE_ALLOWED_ORIGINS", "")
        return cls(
            data_dir=Path(environ.get("EXPENSE_STORE_DATA_DIR") or defaults.data_dir),
            backup_dir=Path(environ.get("EXPENSE_STORE_BACKUP_DIR") or defaults.backup_dir),
            env=environ.get("EXPENSE_STORE_ENV", "prod").strip().lower(),
            allowed_origins=[origin.strip() for origin in raw_origins.split(",") if origin.strip()],
        )

    def override(
        self, *, data_dir: Optional[Path] = None, backup_dir: Optional[Path] = None
    ) -> "StoreConfig":
        """Return a copy with explicitly supplied directories taking precedence."""
        return replace(
            self,
            data_dir=Path(data_dir) if data_dir is not None else self.data_dir,
            backup_dir=Path(backup_dir) if backup_dir is not None else self.backup_dir,
        )
