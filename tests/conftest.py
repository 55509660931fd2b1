import pytest
from closer.config import get_settings
from closer.core.conversation_evaluator import ConversationEvaluator
from closer.models.session import SessionContext
from closer.models.workspace import WorkspaceContext


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; never let one test's environment leak into the next."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fresh_session():
    """Returns a brand-new conversation in the awareness stage."""
    return SessionContext(conversation_id="conv-test-001")


@pytest.fixture
def default_workspace():
    """Workspace with every field at its documented default."""
    return WorkspaceContext()


@pytest.fixture
def tea_workspace():
    """A priced product with COD and an active promo."""
    return WorkspaceContext(
        product_name="Sleep Tea",
        price=1500,
        currency="PHP",
        has_cod=True,
        has_promo=True,
        company_name="Herbal Co",
        business_package_price=7999,
        compensation_plan_summary="20% direct bonus on every sale",
    )


@pytest.fixture
def evaluator():
    """Returns an evaluator over the bundled rule and content packs."""
    return ConversationEvaluator()
