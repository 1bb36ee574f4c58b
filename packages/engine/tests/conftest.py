# This project was developed with assistance from AI tools.
"""Shared fixtures for engine tests.

Services run against InMemoryLoanStore with an explicitly loaded catalog so
tests never depend on the module-level catalog cache.
"""

import pytest

from loanflow.core.config import settings
from loanflow.schemas.context import OperationContext
from loanflow.services.audit import AuditRecorder
from loanflow.services.compliance.catalog import RuleCatalog, clear_catalog_cache
from loanflow.services.compliance.service import ComplianceService
from loanflow.services.locking import LoanLocks
from loanflow.services.workflow import WorkflowEngine

from .factories import NOW, REQUIRED_DOC_TYPES, make_loan, make_officer
from .fakes import InMemoryLoanStore, RecordingNotifier, RecordingPublisher


@pytest.fixture(autouse=True)
def _clear_catalog_cache():
    """Keep cached catalogs from leaking between tests."""
    clear_catalog_cache()
    yield
    clear_catalog_cache()


@pytest.fixture
def store():
    return InMemoryLoanStore()


@pytest.fixture
def ctx():
    return OperationContext(tenant_id=1, actor_id="user-7", now=NOW)


@pytest.fixture
def catalog():
    """The shipped regulation catalog."""
    return RuleCatalog.load(settings.RULE_CATALOG_PATH)


@pytest.fixture
def locks():
    return LoanLocks()


@pytest.fixture
def audit(store):
    return AuditRecorder(store)


@pytest.fixture
def compliance(store, catalog, audit, locks):
    return ComplianceService(store, catalog=catalog, audit=audit, locks=locks)


@pytest.fixture
def workflow(store, audit, locks):
    return WorkflowEngine(store, audit=audit, locks=locks)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def officer(store):
    return store.add_officer(make_officer())


@pytest.fixture
def loan(store, officer):
    """A qualifying, fully compliant loan with all required documents."""
    loan = store.add_loan(make_loan(loan_officer_id=officer.id))
    for doc_type in REQUIRED_DOC_TYPES:
        store.add_document(loan.tenant_id, loan.id, doc_type)
    return loan
