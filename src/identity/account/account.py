"""Account aggregate: the purchasing party behind a checkout request.

Only the fields checkout reads or writes are modelled here: who the buyer is,
how they are taxed, where they ship to, what sits in their cart and which
orders they have placed. Structured fields are stored as JSON text.
"""

import json
from enum import Enum

from protean.fields import Boolean, DateTime, String, Text

from shared.domain import checkout
from shared.utils.dates import db_timestamp

ADDRESS_SNAPSHOT_FIELDS = (
    "fullName",
    "phone",
    "addressLine1",
    "addressLine2",
    "city",
    "state",
    "postalCode",
    "country",
)


class AccountRole(Enum):
    CLIENT = "client"
    ADMIN = "admin"


class ClientType(Enum):
    B2B = "B2B"
    C2B = "C2B"
    B2C = "B2C"


_TAXABLE_CLIENT_TYPES = {ClientType.B2B.value, ClientType.C2B.value}


def _dumps(value):
    return json.dumps(value) if value is not None else None


def _loads(value, default=None):
    if not value:
        return default
    return json.loads(value)


@checkout.aggregate(schema_name="accounts")
class Account:
    email = String(max_length=255)
    name = String(max_length=200)
    role = String(choices=AccountRole, default=AccountRole.CLIENT.value)
    client_type = String(choices=ClientType, default=ClientType.C2B.value)
    tax_exempt = Boolean(default=False)

    # {"country", "state", "address"}; address is a free-form "street, city, state, country"
    company_data = Text()
    billing_address_data = Text()
    # [{"id", "isDefault", "fullName", "phone", "addressLine1", ...}]
    shipping_addresses_data = Text()
    # [{"productId", "quantity"}]
    cart_data = Text()
    order_history_data = Text()

    created_at = DateTime()

    @classmethod
    def create(
        cls,
        email,
        name=None,
        role=AccountRole.CLIENT.value,
        client_type=ClientType.C2B.value,
        tax_exempt=False,
        company=None,
        billing_address=None,
        shipping_addresses=None,
        cart=None,
        account_id=None,
    ):
        values = dict(
            email=email,
            name=name,
            role=role,
            client_type=client_type,
            tax_exempt=tax_exempt,
            company_data=_dumps(company),
            billing_address_data=_dumps(billing_address),
            shipping_addresses_data=_dumps(list(shipping_addresses or [])),
            cart_data=_dumps(list(cart or [])),
            order_history_data=_dumps([]),
            created_at=db_timestamp(),
        )
        if account_id:
            values["id"] = account_id
        return cls(**values)

    @property
    def company(self) -> dict | None:
        return _loads(self.company_data)

    @property
    def billing_address(self) -> dict | None:
        return _loads(self.billing_address_data)

    @property
    def shipping_addresses(self) -> list:
        return _loads(self.shipping_addresses_data, [])

    @property
    def cart(self) -> list:
        return _loads(self.cart_data, [])

    @property
    def order_history(self) -> list:
        return _loads(self.order_history_data, [])

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value

    @property
    def is_taxable(self) -> bool:
        return self.client_type in _TAXABLE_CLIENT_TYPES and not self.tax_exempt

    @property
    def tax_location_source(self) -> dict | None:
        """Where the default tax location is read from: company for B2B, billing for C2B."""
        if self.client_type == ClientType.B2B.value:
            return self.company
        if self.client_type == ClientType.C2B.value:
            return self.billing_address
        return None

    def shipping_address_snapshot(self, address_id: str | None = None) -> dict | None:
        """Pick the selected address, else the default one, else the first one."""
        addresses = self.shipping_addresses
        selected = None
        if address_id:
            selected = next((a for a in addresses if str(a.get("id")) == str(address_id)), None)
        if selected is None and addresses:
            selected = next((a for a in addresses if a.get("isDefault")), addresses[0])
        if selected is None:
            return None
        return {key: selected.get(key) for key in ADDRESS_SNAPSHOT_FIELDS}

    def record_order(self, order_id: str, product_ids) -> None:
        """Append the order to the history and drop its products from the cart."""
        purchased = {str(pid) for pid in product_ids}
        self.order_history_data = _dumps([*self.order_history, str(order_id)])
        self.cart_data = _dumps([item for item in self.cart if str(item.get("productId")) not in purchased])
