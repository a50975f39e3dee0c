"""
Concurrent sales against the same stock.

Each worker thread gets its own scoped session, like WSGI worker threads do.
"""

import threading

from retail.database import get_session
from retail.exceptions import InsufficientStockError
from retail.models import Product, Sale
from retail.services.sales_service import create_sale


def _run_concurrently(jobs):
    """Start every job behind a barrier and collect one outcome per job."""
    barrier = threading.Barrier(len(jobs))
    outcomes = []
    lock = threading.Lock()

    def worker(job):
        db_session = get_session()
        try:
            barrier.wait()
            job(db_session)
            outcome = 'ok'
        except InsufficientStockError:
            outcome = 'insufficient'
        except Exception as e:
            outcome = f'error: {e!r}'
        finally:
            db_session.remove()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    return outcomes


class TestLastUnitRace:

    def test_only_one_of_two_sales_gets_the_last_unit(self, session, tenant1, seller_actor, product_factory,
                                                      reload, ledger):
        product = product_factory(tenant1.id, stock_qty=1)
        product_id, tenant_id = product.id, tenant1.id
        # Workers must not wait on a transaction held by this thread
        session.rollback()

        def sell_one(db_session):
            create_sale(db_session, seller_actor, tenant_id, [{'product_id': product_id, 'quantity': 1}])

        outcomes = _run_concurrently([sell_one, sell_one])

        assert sorted(outcomes) == ['insufficient', 'ok']
        assert reload(Product, product_id).stock_qty == 0
        assert [row.quantity for row in ledger(product_id)] == [-1]
        assert session.query(Sale).filter_by(tenant_id=tenant_id).count() == 1

    def test_many_sellers_never_oversell(self, session, tenant1, seller_actor, product_factory, reload, ledger):
        product = product_factory(tenant1.id, stock_qty=3)
        product_id, tenant_id = product.id, tenant1.id
        session.rollback()

        def sell_one(db_session):
            create_sale(db_session, seller_actor, tenant_id, [{'product_id': product_id, 'quantity': 1}])

        outcomes = _run_concurrently([sell_one] * 5)

        assert outcomes.count('ok') == 3
        assert outcomes.count('insufficient') == 2
        assert reload(Product, product_id).stock_qty == 0
        assert sum(row.quantity for row in ledger(product_id)) == -3

        references = [s.reference for s in session.query(Sale).filter_by(tenant_id=tenant_id).all()]
        assert len(references) == len(set(references)) == 3
