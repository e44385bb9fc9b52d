import asyncio
from typing import Any, Dict, List, Optional

from rentdesk.schemas import ACCESS_TYPES, USER_ROLES, Customer, CustomerAccess, Order, OrderAccess, User
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, FormView, ListView, View, is_blank, parse_record_id


class UserListView(ListView):
    resource = "users"
    collection_key = "users"
    model = User
    search_fields = ("username", "email", "first_name", "last_name", "role")
    empty_message = "No users found."
    no_match_message = "No users match your search."
    load_error_message = "Failed to load users. Please try again later."
    deleted_message = "User deleted."

    def filter_record(self, record: User) -> bool:
        role = self.filters.get("role")
        return role is None or record.role == role


class UserDetailView(DetailView):
    resource = "users"
    record_key = "user"
    model = User
    list_route = "/users"
    not_found_message = "User not found."
    load_error_message = "Failed to load the user. Please try again later."

    async def delete(self) -> bool:
        current = self.session.user
        if current is not None and current.id == self.record_id:
            self.error = "You cannot delete your own account."
            return False
        return await super().delete()


class UserFormView(FormView):
    """User account form; the password is set only when creating the account"""

    resource = "users"
    record_key = "user"
    list_route = "/users"
    required_fields = {
        "username": "Username is required.",
        "email": "Email is required.",
    }
    created_message = "User created."
    updated_message = "User updated."
    save_error_message = "Failed to save the user."
    load_error_message = "Failed to load the user."

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "username": "",
            "email": "",
            "password": "",
            "confirm_password": "",
            "first_name": "",
            "last_name": "",
            "role": "user",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: record.get(key) or "" for key in ("username", "email", "first_name", "last_name")}
        fields["role"] = record.get("role") or "user"
        return fields

    def validate(self):
        super().validate()
        if self.fields.get("role") not in USER_ROLES:
            raise ClientValidationError("Unknown role.", field="role")
        if self.is_edit:
            return
        if is_blank(self.fields.get("password")):
            raise ClientValidationError("Password is required.", field="password")
        if self.fields["password"] != self.fields.get("confirm_password"):
            raise ClientValidationError("Passwords do not match.", field="confirm_password")

    def payload(self) -> Dict[str, Any]:
        payload = {k: v for k, v in self.fields.items() if k not in ("password", "confirm_password")}
        if not self.is_edit:
            payload["password"] = self.fields["password"]
        return payload


class ChangePasswordView(View):
    def __init__(self, client, user_id: Any):
        super().__init__(client)
        self.raw_id = user_id

    async def submit(self, current_password: str, new_password: str, confirm_password: str) -> bool:
        if self.loading:
            return False
        try:
            user_id = parse_record_id(self.raw_id)
            if is_blank(current_password) or is_blank(new_password):
                raise ClientValidationError("Enter the current and the new password.")
            if new_password != confirm_password:
                raise ClientValidationError("Passwords do not match.", field="confirm_password")
        except ClientValidationError as e:
            self.fail(e)
            return False
        result = await self.run(
            self.client.post(
                f"/users/{user_id}/change-password",
                json={"currentPassword": current_password, "newPassword": new_password}
            ),
            "Failed to change the password."
        )
        if result is None:
            return False
        self.success = "Password changed."
        return True


def parse_access_type(value: Any) -> str:
    if value not in ACCESS_TYPES:
        raise ClientValidationError("Unknown access type.", field="access_type")
    return value


class UserAccessView(View):
    """
    Customers and orders a user may work with, each with an access level.

    Grants, revocations and level changes are sent one at a time and mirrored
    in the local lists once the backend accepts them.
    """

    load_error_message = "Failed to load data. Please try again later."

    def __init__(self, client, user_id: Any):
        super().__init__(client)
        self.raw_id = user_id
        self.user_id: Optional[int] = None
        self.user: Optional[User] = None
        self.customers: List[Customer] = []
        self.orders: List[Order] = []
        self.user_customers: List[CustomerAccess] = []
        self.user_orders: List[OrderAccess] = []

    @property
    def path(self) -> str:
        return f"/users/{self.user_id}"

    async def fetch(self):
        user_data = await self.client.get(self.path)
        customer_data, order_data = await asyncio.gather(
            self.client.get("/customers"),
            self.client.get("/orders")
        )
        assigned_customers, assigned_orders = await asyncio.gather(
            self.client.get(f"{self.path}/customers"),
            self.client.get(f"{self.path}/orders")
        )
        self.user = User(**(user_data.get("user") or {}))
        self.customers = [Customer(**c) for c in customer_data.get("customers") or []]
        self.orders = [Order(**o) for o in order_data.get("orders") or []]
        self.user_customers = [CustomerAccess(**c) for c in assigned_customers.get("customers") or []]
        self.user_orders = [OrderAccess(**o) for o in assigned_orders.get("orders") or []]
        return self.user

    async def mount(self):
        try:
            self.user_id = parse_record_id(self.raw_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        await self.run(self.fetch(), self.load_error_message)

    @property
    def available_customers(self) -> List[Customer]:
        assigned = {c.id for c in self.user_customers}
        return [c for c in self.customers if c.id not in assigned]

    @property
    def available_orders(self) -> List[Order]:
        assigned = {o.id for o in self.user_orders}
        return [o for o in self.orders if o.id not in assigned]

    def _selection(self, record_id: Any, access_type: Any, missing_message: str, field: str):
        if self.user_id is None:
            raise ClientValidationError("The user was not loaded.")
        if is_blank(record_id):
            raise ClientValidationError(missing_message, field=field)
        return parse_record_id(record_id), parse_access_type(access_type)

    async def _send(self, method: str, endpoint: str, body: Dict[str, Any], fallback: str) -> bool:
        if self.loading:
            return False
        self.success = None
        request = getattr(self.client, method)
        result = await self.run(request(f"{self.path}/{endpoint}", json=body), fallback)
        return result is not None

    async def grant_customer(self, customer_id: Any, access_type: str = "read") -> bool:
        if not self.check_admin():
            return False
        try:
            customer_id, access_type = self._selection(customer_id, access_type, "Select a customer.", "customer_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        customer = next((c for c in self.available_customers if c.id == customer_id), None)
        if customer is None:
            self.fail(ClientValidationError("The customer is not available for assignment.", field="customer_id"))
            return False
        granted = await self._send(
            "post", "customer-access", {"customerId": customer_id, "accessType": access_type},
            "Failed to grant access to the customer."
        )
        if granted:
            self.user_customers.append(CustomerAccess(**customer.model_dump(), access_type=access_type))
            self.success = "Customer access granted."
        return granted

    async def grant_order(self, order_id: Any, access_type: str = "read") -> bool:
        if not self.check_admin():
            return False
        try:
            order_id, access_type = self._selection(order_id, access_type, "Select an order.", "order_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        order = next((o for o in self.available_orders if o.id == order_id), None)
        if order is None:
            self.fail(ClientValidationError("The order is not available for assignment.", field="order_id"))
            return False
        granted = await self._send(
            "post", "order-access", {"orderId": order_id, "accessType": access_type},
            "Failed to grant access to the order."
        )
        if granted:
            self.user_orders.append(OrderAccess(**order.model_dump(), access_type=access_type))
            self.success = "Order access granted."
        return granted

    async def revoke_customer(self, customer_id: Any) -> bool:
        if not self.check_admin():
            return False
        try:
            customer_id, _ = self._selection(customer_id, "read", "Select a customer.", "customer_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        revoked = await self._send(
            "delete", "customer-access", {"customerId": customer_id},
            "Failed to remove access to the customer."
        )
        if revoked:
            self.user_customers = [c for c in self.user_customers if c.id != customer_id]
            self.success = "Customer access removed."
        return revoked

    async def revoke_order(self, order_id: Any) -> bool:
        if not self.check_admin():
            return False
        try:
            order_id, _ = self._selection(order_id, "read", "Select an order.", "order_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        revoked = await self._send(
            "delete", "order-access", {"orderId": order_id},
            "Failed to remove access to the order."
        )
        if revoked:
            self.user_orders = [o for o in self.user_orders if o.id != order_id]
            self.success = "Order access removed."
        return revoked

    async def update_customer_access(self, customer_id: Any, access_type: str) -> bool:
        if not self.check_admin():
            return False
        try:
            customer_id, access_type = self._selection(customer_id, access_type, "Select a customer.", "customer_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        updated = await self._send(
            "put", "customer-access", {"customerId": customer_id, "accessType": access_type},
            "Failed to update access to the customer."
        )
        if updated:
            for customer in self.user_customers:
                if customer.id == customer_id:
                    customer.access_type = access_type
            self.success = "Customer access updated."
        return updated

    async def update_order_access(self, order_id: Any, access_type: str) -> bool:
        if not self.check_admin():
            return False
        try:
            order_id, access_type = self._selection(order_id, access_type, "Select an order.", "order_id")
        except ClientValidationError as e:
            self.fail(e)
            return False
        updated = await self._send(
            "put", "order-access", {"orderId": order_id, "accessType": access_type},
            "Failed to update access to the order."
        )
        if updated:
            for order in self.user_orders:
                if order.id == order_id:
                    order.access_type = access_type
            self.success = "Order access updated."
        return updated
