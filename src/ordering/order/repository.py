from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        results = self._dao.query.filter(order_number=order_number).all()
        return results.first if results.items else None

    def for_customer(self, customer_id: str, limit: int = 50) -> list[Order]:
        """The customer's orders, newest first."""
        return (
            self._dao.query.filter(customer_id=customer_id).order_by("-created_at").limit(limit).all().items
        )

    def newest(self, limit: int = 50) -> list[Order]:
        return self._dao.query.order_by("-created_at").limit(limit).all().items
