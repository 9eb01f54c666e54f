from functools import lru_cache

from fastapi import Depends

from postflow.adapters.sqlite.migrator import SQLiteMigrator
from postflow.app_shell.config import Settings, migrations_dir
from postflow.app_shell.context import ServiceContext
from postflow.rules.loader import load_rules
from postflow.rules.models import Rules
from postflow.services.post import PostService


# --- Settings ---
@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Context ---
@lru_cache
def get_context() -> ServiceContext:
    """Process-wide service graph; the in-process queue lives here."""
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path, migrations_dir()).run_migrations()
    return ServiceContext.create(settings.db_path, settings.uploads_dir, get_rules())


# --- Services ---
def get_post_service(ctx: ServiceContext = Depends(get_context)) -> PostService:
    return ctx.post_service
