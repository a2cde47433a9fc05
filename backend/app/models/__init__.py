from app.models.counterparty import Client, Supplier
from app.models.estate import Estate, OwnershipLink
from app.models.invoice import Invoice
from app.models.owner import Owner

__all__ = ["Owner", "Estate", "OwnershipLink", "Client", "Supplier", "Invoice"]
