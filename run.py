import json
import os
import logging
from dotenv import load_dotenv
from flask import Flask
from booktracker.repo import SupabaseRepo, SqliteRepo
from booktracker.service import BookService
from booktracker.storage import LocalTaxonomyCache
from booktracker.web import register_routes, register_error_handlers

load_dotenv()

DEFAULT_CFG = {
    "backend": "supabase",  # "supabase" or "sqlite"
    "database": "data/books.db",
    "cache_path": "data/taxonomy_cache.json",
    "page_size": 20,
    "debug": True,
    "host": "127.0.0.1",
    "port": 5000,
    "logging_level": "INFO"
}

def load_config(path="config.json"):
    if not os.path.exists(path):
        print("config.json not found, using defaults:", DEFAULT_CFG)
        return DEFAULT_CFG
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except Exception as e:
        print("Failed to read config.json:", e, "; using defaults")
        return DEFAULT_CFG
    merged = DEFAULT_CFG.copy()
    merged.update(cfg)
    return merged

cfg = load_config()

def configure_logging(level_name: str):
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # quieter werkzeug and http client when not debugging
    quiet = logging.WARNING if not cfg.get("debug") else logging.INFO
    logging.getLogger("werkzeug").setLevel(quiet)
    logging.getLogger("httpx").setLevel(quiet)

def create_repo(config):
    if config.get("backend") == "sqlite":
        repo = SqliteRepo(config["database"])
        repo.init_schema()
        return repo
    return SupabaseRepo(os.environ.get("SUPABASE_URL"), os.environ.get("SUPABASE_ANON_KEY"))

def create_app():
    configure_logging(cfg.get("logging_level", "INFO"))
    logger = logging.getLogger(__name__)
    logger.info("Starting app with config: %s", {k: v for k, v in cfg.items() if k != "database"})

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "dev-key")
    repo = create_repo(cfg)
    cache = LocalTaxonomyCache(cfg["cache_path"])
    service = BookService(repo, cache=cache, page_size=int(cfg.get("page_size", 20)))
    app.config["SERVICE"] = service

    register_routes(app, service)
    register_error_handlers(app)
    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host=cfg.get("host", "127.0.0.1"), port=cfg.get("port", 5000), debug=cfg.get("debug", True))
