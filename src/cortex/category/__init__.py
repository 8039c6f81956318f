from cortex.category.operations import (
    category_exists,
    create_category,
    delete_category,
    ensure_category_chain,
    list_memories,
    list_subcategories,
    reindex_store,
    set_description,
)

__all__ = [
    "category_exists",
    "create_category",
    "delete_category",
    "ensure_category_chain",
    "list_memories",
    "list_subcategories",
    "reindex_store",
    "set_description",
]
