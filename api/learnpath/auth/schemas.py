"""Identity claims extracted from a verified token."""

from pydantic import BaseModel


class IdentityClaims(BaseModel):
    """Subset of identity provider claims the ledger relies on."""

    external_id: str
    email: str | None = None
    name: str | None = None
    image_url: str | None = None
