import pytest
from catalogue.catalog import InMemoryCatalog, Product
from fulfillment.carrier import FakeCarrier
from notifications.channel.fake_email import FakeEmailAdapter
from notifications.notifier import OrderNotifier
from ordering import wiring
from ordering.order.lifecycle import OrderLifecycle
from ordering.settings import CheckoutSettings
from ordering.worker import BackgroundWorker
from payments.gateway import FakeGateway
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture
def catalog():
    return InMemoryCatalog(
        [
            Product(
                product_id="makhana-peri-peri",
                sku="MKH-PP",
                name="Peri Peri Makhana",
                category="makhana",
                pack_prices={1: 100, 2: 190, 4: 360},
                stock=50,
            ),
            Product(
                product_id="chips-ragi",
                sku="CHP-RG",
                name="Ragi Chips",
                category="chips",
                pack_prices={1: 95, 2: 190},
                stock=20,
            ),
            Product(
                product_id="trail-mix",
                sku="TRL-MX",
                name="Trail Mix",
                category="mixes",
                base_price=120,
                stock=10,
            ),
            Product(
                product_id="bhel-mix",
                sku="BHL-MX",
                name="Bhel Mix",
                category="mixes",
                pack_prices={1: 60},
                stock=30,
            ),
        ]
    )


@pytest.fixture
def gateway():
    return FakeGateway(key_secret="s3cr3t")


@pytest.fixture
def carrier():
    return FakeCarrier(rate=75.0)


@pytest.fixture
def mailer():
    return FakeEmailAdapter()


@pytest.fixture
def post_payment():
    from ordering.domain import ordering

    worker = BackgroundWorker(ordering, max_workers=2)
    yield worker
    worker.shutdown(wait_for_jobs=True)


@pytest.fixture
def lifecycle(catalog, gateway, carrier, mailer, post_payment):
    lifecycle = OrderLifecycle(
        catalog=catalog,
        gateway=gateway,
        carrier=carrier,
        notifier=OrderNotifier(mailer),
        settings=CheckoutSettings(),
    )
    wiring.install(lifecycle, post_payment)
    yield lifecycle
    # Jobs still queued must not outlive this test's data
    post_payment.drain()
    wiring.reset()


@pytest.fixture
def address():
    return {
        "full_name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "street": "12 Hill Road",
        "area": "Bandra West",
        "city": "Mumbai",
        "state": "Maharashtra",
        "postal_code": "400050",
    }
