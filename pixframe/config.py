import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


def default_workspace_path() -> Path:
    return Path.home() / 'Documents' / 'PixFrameWorkspace'


@dataclass(frozen=True)
class WorkspaceConfig:
    """Where the record files and customer folders live.

    Built once at start-up and passed to everything that touches the disk.
    """

    workspace_path: Path = field(default_factory=default_workspace_path)
    data_dir: str = 'Data'
    customers_dir: str = 'Customers'
    customer_file: str = 'customers.csv'
    project_file: str = 'projects.csv'

    def __post_init__(self):
        object.__setattr__(self, 'workspace_path', Path(self.workspace_path).expanduser())

    @property
    def data_path(self) -> Path:
        return self.workspace_path / self.data_dir

    @property
    def customers_path(self) -> Path:
        return self.workspace_path / self.customers_dir

    @property
    def customer_db_path(self) -> Path:
        return self.data_path / self.customer_file

    @property
    def project_db_path(self) -> Path:
        return self.data_path / self.project_file

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'WorkspaceConfig':
        env = os.environ if environ is None else environ
        workspace = env.get('PIXFRAME_WORKSPACE', '').strip()
        return cls(
            workspace_path=Path(workspace) if workspace else default_workspace_path(),
            data_dir=env.get('PIXFRAME_DATA_DIR', 'Data'),
            customers_dir=env.get('PIXFRAME_CUSTOMERS_DIR', 'Customers'),
        )

    def ensure_directories(self) -> None:
        os.makedirs(self.data_path, exist_ok=True)
        os.makedirs(self.customers_path, exist_ok=True)


__all__ = ['WorkspaceConfig', 'default_workspace_path']
