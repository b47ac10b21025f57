import os, sys, pytest
# Ensure backend directory is on path so 'agency' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import agency
from agency import create_app, get_db
from agency.models.identity import Base
# Import all model modules to ensure tables are registered before create_all
import agency.models.workspace  # noqa: F401
import agency.models.task  # noqa: F401
import agency.models.finance  # noqa: F401
import agency.models.audit  # noqa: F401

TEST_SECRET = 'test-signing-secret-0123456789abcdef0123456789'


@pytest.fixture()
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': TEST_SECRET,
        'AUTHZ_RECHECK_IDENTITY': False,
    })
    # fresh schema per test; the in-memory database lives as long as the engine
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app
    agency.SessionLocal.remove()
    agency.db_engine.dispose()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
