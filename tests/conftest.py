import os
from pathlib import Path

import pytest

from postflow.adapters.clock import FrozenClock
from postflow.adapters.dev_notify import DevEmailChannel, DevPushChannel, DevWebhookChannel
from postflow.adapters.sqlite.migrator import SQLiteMigrator
from postflow.app_shell.context import ServiceContext
from postflow.rules.loader import load_rules
from postflow.rules.models import Rules
from tests.fakes import FIXED_NOW, Stack, build_stack


@pytest.fixture
def rules() -> Rules:
    """Rules with notification targets filled in so every dev channel delivers."""
    rules = Rules()
    rules.notifications.admin_email = "admin@example.com"
    rules.notifications.webhook_url = "https://hooks.example.com/posts"
    rules.notifications.site_url = "https://blog.example.com"
    return rules


@pytest.fixture
def stack(rules: Rules) -> Stack:
    """PostService wired over in-memory repositories."""
    return build_stack(rules)


@pytest.fixture
def test_data_dir(tmp_path):
    return str(tmp_path)


@pytest.fixture
def db_path(test_data_dir) -> str:
    path = os.path.join(test_data_dir, "postflow.db")
    SQLiteMigrator(path, "migrations").run_migrations()
    return path


@pytest.fixture
def test_ctx(test_data_dir, db_path):
    """
    Creates a full ServiceContext backed by a temporary SQLite DB and FileStore.
    """
    # Load REAL rules from project root; tests run from project root
    rules_path = Path("rules.yaml").resolve()
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")

    rules = load_rules(rules_path)
    rules.notifications.admin_email = "admin@example.com"
    rules.notifications.webhook_url = "https://hooks.example.com/posts"

    fs_path = os.path.join(test_data_dir, "uploads")
    os.makedirs(fs_path, exist_ok=True)

    return ServiceContext.create(
        db_path=db_path,
        fs_path=fs_path,
        rules=rules,
        clock=FrozenClock(FIXED_NOW),
        channels=[DevEmailChannel(), DevPushChannel(), DevWebhookChannel()],
    )
