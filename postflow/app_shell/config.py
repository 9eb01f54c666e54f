import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = "./data"
DEFAULT_RULES_PATH = "rules.yaml"


@dataclass(frozen=True)
class Settings:
    """Filesystem locations, resolved from the environment."""

    data_dir: Path
    rules_path: Path

    @property
    def db_path(self) -> str:
        return str(self.data_dir / "postflow.db")

    @property
    def uploads_dir(self) -> str:
        return str(self.data_dir / "uploads")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=Path(os.environ.get("POSTFLOW_DATA_DIR", DEFAULT_DATA_DIR)),
            rules_path=Path(os.environ.get("POSTFLOW_RULES_PATH", DEFAULT_RULES_PATH)),
        )


def migrations_dir() -> str:
    """The migrations directory shipped next to the package."""
    return str(Path(__file__).resolve().parents[2] / "migrations")
