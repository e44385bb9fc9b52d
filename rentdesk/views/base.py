"""
Shared view-model machinery.

A view holds what a screen holds (loading flag, error/success message, the
fetched records or the form fields) and exposes the screen's operations as
coroutines. Every request a view makes runs through View.run, which owns the
loading flag, turns failures into a user message and drops results that
arrive after the view was closed.
"""
import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Dict, Iterator, List, Optional, Sequence, Set, Type

from pydantic import BaseModel, ValidationError

from rentdesk.config import settings
from rentdesk.documents.formatting import to_date
from rentdesk.services.errors import (
    AdminRequiredError, ApiError, ClientValidationError, parse_record_id, user_message
)
from rentdesk.services.session import Session

logger = logging.getLogger(__name__)


def require_admin(session: Session):
    if not session.is_admin:
        raise AdminRequiredError()


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def in_date_range(value: Any, date_from: Any = None, date_to: Any = None) -> bool:
    """Inclusive range check; an open bound does not restrict"""
    start, end = to_date(date_from), to_date(date_to)
    if start is None and end is None:
        return True
    day = to_date(value)
    if day is None:
        return False
    if start is not None and day < start:
        return False
    return end is None or day <= end


class View:
    """Base class: lifetime, loading flag and error capture"""

    def __init__(self, client):
        self.client = client
        self.loading = False
        self.error: Optional[str] = None
        self.success: Optional[str] = None
        self.closed = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def session(self) -> Session:
        return self.client.session

    @property
    def navigator(self):
        return self.client.navigator

    @property
    def is_admin(self) -> bool:
        return self.session.is_admin

    def fail(self, exc: Exception, fallback: Optional[str] = None):
        """Record a caught error as the view's message"""
        logger.error(f"{self.__class__.__name__}: {exc}")
        if not self.closed:
            self.error = user_message(exc, fallback)

    def check_admin(self) -> bool:
        try:
            require_admin(self.session)
        except AdminRequiredError as e:
            self.fail(e)
            return False
        return True

    @contextmanager
    def reading(self, fallback: Optional[str] = None) -> Iterator[None]:
        """Turn a malformed backend payload into the view's error message"""
        try:
            yield
        except ValidationError as e:
            self.fail(e, fallback)

    async def run(self, operation: Awaitable, fallback: Optional[str] = None) -> Any:
        """
        Await one request-bearing operation within the view lifetime.

        Returns the operation's result, or None when it failed, was cancelled
        or finished after close().
        """
        if self.closed:
            if asyncio.iscoroutine(operation):
                operation.close()
            return None

        task = asyncio.ensure_future(operation)
        self._tasks.add(task)
        self.loading = True
        self.error = None
        try:
            result = await task
        except asyncio.CancelledError:
            if self.closed:
                logger.debug(f"{self.__class__.__name__}: dropped result of a cancelled request")
                return None
            raise
        except (ApiError, ClientValidationError, ValidationError) as e:
            self.fail(e, fallback)
            return None
        finally:
            self._tasks.discard(task)
            if not self.closed:
                self.loading = False

        if self.closed:
            return None
        return result

    def close(self):
        """Tear the view down; in-flight requests are cancelled"""
        self.closed = True
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()


class ListView(View):
    """
    Fetch-on-mount collection with client-side search and filters.

    search_fields are matched as case-insensitive substrings; verbatim_fields
    (phone numbers, ICO) are matched exactly as typed.
    """

    resource: str = ""
    collection_key: str = ""
    model: Type[BaseModel] = BaseModel
    search_fields: Sequence[str] = ("name",)
    verbatim_fields: Sequence[str] = ()
    empty_message = "No records yet."
    no_match_message = "No records match the current search or filters."
    load_error_message = "Failed to load records."
    deleted_message = "Record deleted."

    def __init__(self, client):
        super().__init__(client)
        self.records: List[Any] = []
        self.search_term = ""
        self.filters: Dict[str, Any] = {}

    async def mount(self):
        await self.load()

    async def fetch(self) -> List[Any]:
        data = await self.client.get(f"/{self.resource}")
        return [self.model(**row) for row in data.get(self.collection_key) or []]

    async def load(self):
        records = await self.run(self.fetch(), self.load_error_message)
        if records is not None:
            self.records = records

    def search(self, term: Optional[str]):
        self.search_term = term or ""

    def set_filter(self, name: str, value: Any):
        if value in (None, "", "all"):
            self.filters.pop(name, None)
        else:
            self.filters[name] = value

    def clear_filters(self):
        self.search_term = ""
        self.filters = {}

    def matches_search(self, record: Any) -> bool:
        term = self.search_term.strip()
        if not term:
            return True
        lowered = term.lower()
        for field in self.search_fields:
            value = getattr(record, field, None)
            if value is not None and lowered in str(value).lower():
                return True
        for field in self.verbatim_fields:
            value = getattr(record, field, None)
            if value and term in str(value):
                return True
        return False

    def filter_record(self, record: Any) -> bool:
        return True

    @property
    def results(self) -> List[Any]:
        return [r for r in self.records if self.matches_search(r) and self.filter_record(r)]

    @property
    def is_filtered(self) -> bool:
        return bool(self.search_term.strip() or self.filters)

    @property
    def empty_state(self) -> Optional[str]:
        """Informational message shown instead of the table, None when rows exist"""
        if self.loading or self.results:
            return None
        return self.no_match_message if self.is_filtered else self.empty_message

    @property
    def can_create(self) -> bool:
        return self.is_admin

    @property
    def can_edit(self) -> bool:
        return self.is_admin

    async def delete(self, record_id: Any) -> bool:
        if not self.check_admin():
            return False
        try:
            record_id = parse_record_id(record_id)
        except ClientValidationError as e:
            self.fail(e)
            return False
        result = await self.run(self.client.delete(f"/{self.resource}/{record_id}"))
        if result is None:
            return False
        self.records = [r for r in self.records if getattr(r, "id", None) != record_id]
        self.success = self.deleted_message
        return True


class DetailView(View):
    """One record by id, optionally with related collections fetched concurrently"""

    resource: str = ""
    record_key: str = ""
    model: Type[BaseModel] = BaseModel
    list_route: str = "/"
    not_found_message = "Record not found."
    load_error_message = "Failed to load the record."

    def __init__(self, client, record_id: Any):
        super().__init__(client)
        self.raw_id = record_id
        self.record_id: Optional[int] = None
        self.record: Optional[Any] = None

    @property
    def path(self) -> str:
        return f"/{self.resource}/{self.record_id}"

    async def fetch(self) -> Any:
        return await self.client.get(self.path)

    def apply(self, data: Any):
        payload = data.get(self.record_key)
        if not payload:
            self.error = self.not_found_message
            return
        self.record = self.model(**payload)

    async def mount(self):
        try:
            self.record_id = parse_record_id(self.raw_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(self.fetch(), self.load_error_message)
        if data is not None:
            with self.reading(self.load_error_message):
                self.apply(data)

    async def delete(self) -> bool:
        if self.record_id is None or not self.check_admin():
            return False
        result = await self.run(self.client.delete(self.path))
        if result is None:
            return False
        self.navigator.navigate(self.list_route)
        return True


class FormView(View):
    """
    Create/edit form state.

    The form starts empty (create) or from the fetched record (edit). Submit
    validates locally, POSTs or PUTs, and on success schedules a delayed
    navigation to the list, or to the created record's detail page when
    detail_after_create is set.
    """

    resource: str = ""
    record_key: str = ""
    list_route: str = "/"
    detail_after_create = False
    admin_only = True
    required_fields: Dict[str, str] = {}
    created_message = "Record created."
    updated_message = "Record updated."
    save_error_message = "Failed to save the record."
    load_error_message = "Failed to load the record."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client)
        self.raw_id = record_id
        self.record_id: Optional[int] = None
        self.fields: Dict[str, Any] = self.initial_fields()

    @property
    def is_edit(self) -> bool:
        return self.raw_id is not None

    def initial_fields(self) -> Dict[str, Any]:
        return {}

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in record.items() if k in self.fields}

    async def mount(self):
        if not self.is_edit:
            return
        try:
            self.record_id = parse_record_id(self.raw_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(self.client.get(f"/{self.resource}/{self.record_id}"), self.load_error_message)
        if data is None:
            return
        with self.reading(self.load_error_message):
            self.fields.update(self.fields_from_record(data.get(self.record_key) or {}))

    def set_field(self, name: str, value: Any):
        self.fields[name] = value
        self.on_field_change(name, value)

    def on_field_change(self, name: str, value: Any):
        pass

    def validate(self):
        for field, message in self.required_fields.items():
            if is_blank(self.fields.get(field)):
                raise ClientValidationError(message, field=field)

    def payload(self) -> Dict[str, Any]:
        return dict(self.fields)

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.is_edit:
            return await self.client.put(f"/{self.resource}/{self.record_id}", json=payload)
        return await self.client.post(f"/{self.resource}", json=payload)

    def redirect_route(self, saved: Dict[str, Any]) -> str:
        if self.detail_after_create and not self.is_edit and saved.get("id"):
            return f"{self.list_route}/{saved['id']}"
        return self.list_route

    async def submit(self) -> Optional[Dict[str, Any]]:
        if self.loading:
            logger.warning(f"{self.__class__.__name__}: submit ignored while a request is pending")
            return None
        if self.admin_only and not self.check_admin():
            return None
        if self.is_edit and self.record_id is None:
            self.error = "The record was not loaded."
            return None
        self.success = None
        try:
            self.validate()
        except ClientValidationError as e:
            self.fail(e)
            return None

        data = await self.run(self.save(self.payload()), self.save_error_message)
        if data is None:
            return None
        saved = data.get(self.record_key) or {}
        self.success = self.updated_message if self.is_edit else self.created_message
        self.navigator.navigate_later(self.redirect_route(saved), settings.save_redirect_delay)
        return saved
