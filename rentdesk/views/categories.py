from typing import Any, Dict

from rentdesk.schemas import Category
from rentdesk.views.base import FormView, ListView


class CategoryListView(ListView):
    resource = "categories"
    collection_key = "categories"
    model = Category
    search_fields = ("name", "description")
    empty_message = "No categories have been added yet."
    no_match_message = "No categories match your search."
    load_error_message = "Failed to load categories. Please try again later."
    deleted_message = "Category deleted."


class CategoryFormView(FormView):
    resource = "categories"
    record_key = "category"
    list_route = "/categories"
    required_fields = {"name": "Category name is required."}
    created_message = "Category created."
    updated_message = "Category updated."
    save_error_message = "Error saving the category."
    load_error_message = "Failed to load the category. Please try again later."

    def initial_fields(self) -> Dict[str, Any]:
        return {"name": "", "description": ""}

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {"name": record.get("name") or "", "description": record.get("description") or ""}
