"""Central model registry: import all models so metadata sees every table."""

from garage.database import Base  # noqa: F401

from garage.models.invoice import Invoice, InvoiceItem  # noqa: F401
from garage.models.payment import Payment  # noqa: F401
