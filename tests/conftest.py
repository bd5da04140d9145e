import pytest

from services.config.management import ConfigService
from services.database.database_service import DatabaseService
from services.download_management.download_management_service import DownloadManagementService
from services.file_naming.file_naming_service import FileNamingService
from services.import_service.import_service import ImportService

SINGLETONS = (
    ConfigService,
    DatabaseService,
    DownloadManagementService,
    FileNamingService,
    ImportService,
)


def _reset_singletons():
    for cls in SINGLETONS:
        cls._instance = None
        cls._initialized = False


@pytest.fixture(autouse=True)
def reset_singletons():
    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def db_service(tmp_path):
    return DatabaseService(str(tmp_path / "database" / "boutarchive.db"))


@pytest.fixture
def config_service(tmp_path):
    return ConfigService(str(tmp_path / "config.txt"))


@pytest.fixture
def sparse_file():
    """Create a file of ``size`` bytes without writing its contents."""
    def _create(path, size):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as handle:
            handle.truncate(size)
        return path
    return _create
