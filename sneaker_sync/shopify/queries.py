"""
GraphQL query strings for Shopify Admin API.
"""


# Variants of one product with the selected size option
PRODUCT_VARIANTS_QUERY = '''
query productVariants($id: ID!) {
  product(id: $id) {
    id
    title
    variants(first: 100) {
      edges {
        node {
          id
          price
          sku
          selectedOptions {
            name
            value
          }
          inventoryItem {
            id
          }
        }
      }
    }
  }
}
'''


PRODUCT_OPTIONS_QUERY = '''
query productOptions($id: ID!) {
  product(id: $id) {
    id
    options {
      id
      name
      values
    }
  }
}
'''


# Products matching a search string; used for the duplicate check
PRODUCT_SEARCH_QUERY = '''
query productSearch($query: String!) {
  products(first: 1, query: $query) {
    edges {
      node {
        id
        title
      }
    }
  }
}
'''


COLLECTION_BY_TITLE_QUERY = '''
query collectionByTitle($query: String!) {
  collections(first: 10, query: $query) {
    edges {
      node {
        id
        title
        ruleSet {
          appliedDisjunctively
        }
      }
    }
  }
}
'''


SYNCED_PRODUCTS_QUERY = '''
query syncedProducts($query: String!, $first: Int!, $after: String) {
  products(first: $first, after: $after, query: $query, sortKey: TITLE) {
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        id
        title
        variants(first: 1) {
          edges {
            node {
              sku
            }
          }
        }
      }
    }
  }
}
'''


def quote_search_value(value: str) -> str:
    """
    Quote a value for Shopify search syntax.

    Args:
        value: Raw value (e.g., a product title containing quotes)

    Returns:
        Double-quoted value with backslashes and quotes escaped
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_duplicate_query(sku: str, title: str) -> str:
    """Search string matching a product tagged with the SKU or titled the same."""
    return f"tag:{quote_search_value(sku)} OR title:{quote_search_value(title)}"


def build_collection_query(title: str) -> str:
    return f"title:{quote_search_value(title)}"
