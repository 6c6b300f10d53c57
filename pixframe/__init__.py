from typing import Dict, Optional

from flask import Flask

from .config import WorkspaceConfig
from .folders import FolderManager
from .guard import StoreGuard
from .models import CUSTOMER, PROJECT
from .routes import bp
from .store import DurableStore


def build_guards(config: WorkspaceConfig) -> Dict[str, StoreGuard]:
    config.ensure_directories()
    guards = {}
    for name, kind, path in (
        ('customers', CUSTOMER, config.customer_db_path),
        ('projects', PROJECT, config.project_db_path),
    ):
        guard = StoreGuard(DurableStore(path, kind), FolderManager(config, kind))
        guard.initialize()
        guards[name] = guard
    return guards


def create_app(config: Optional[WorkspaceConfig] = None) -> Flask:
    config = config or WorkspaceConfig.from_env()
    app = Flask(__name__)
    app.config['WORKSPACE'] = config
    app.extensions['pixframe'] = build_guards(config)
    app.register_blueprint(bp)
    return app


__all__ = ['create_app', 'build_guards', 'WorkspaceConfig']
