"""Template registry: maps notification kinds to template classes."""

from notifications.templates.order_confirmation import (
    AdminNewOrderTemplate,
    CustomerOrderConfirmationTemplate,
)

TEMPLATE_REGISTRY: dict[str, type] = {
    "order_confirmation": CustomerOrderConfirmationTemplate,
    "admin_new_order": AdminNewOrderTemplate,
}


def get_template(kind: str):
    """Look up a template class by notification kind."""
    template_cls = TEMPLATE_REGISTRY.get(kind)
    if template_cls is None:
        raise ValueError(f"No template registered for notification kind: {kind}")
    return template_cls
