"""
GraphQL mutation strings for Shopify Admin API.
"""


PRODUCT_CREATE = '''
mutation productCreate($input: ProductInput!, $media: [CreateMediaInput!]) {
  productCreate(input: $input, media: $media) {
    product {
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
    userErrors {
      field
      message
    }
  }
}
'''


PRODUCT_VARIANTS_BULK_CREATE = '''
mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkCreate(productId: $productId, variants: $variants) {
    productVariants {
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
    userErrors {
      field
      message
    }
  }
}
'''


# Mutation to update variant prices
PRODUCT_VARIANTS_BULK_UPDATE = '''
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants {
      id
      price
    }
    userErrors {
      field
      message
    }
  }
}
'''


PRODUCT_VARIANTS_BULK_DELETE = '''
mutation productVariantsBulkDelete($productId: ID!, $variantsIds: [ID!]!) {
  productVariantsBulkDelete(productId: $productId, variantsIds: $variantsIds) {
    product {
      id
    }
    userErrors {
      field
      message
    }
  }
}
'''


INVENTORY_ITEM_UPDATE = '''
mutation inventoryItemUpdate($id: ID!, $input: InventoryItemInput!) {
  inventoryItemUpdate(id: $id, input: $input) {
    inventoryItem {
      id
      sku
      tracked
    }
    userErrors {
      field
      message
    }
  }
}
'''


PRODUCT_OPTIONS_REORDER = '''
mutation productOptionsReorder($productId: ID!, $options: [OptionReorderInput!]!) {
  productOptionsReorder(productId: $productId, options: $options) {
    product {
      id
    }
    userErrors {
      field
      message
    }
  }
}
'''


COLLECTION_CREATE = '''
mutation collectionCreate($input: CollectionInput!) {
  collectionCreate(collection: $input) {
    collection {
      id
      title
    }
    userErrors {
      field
      message
    }
  }
}
'''


COLLECTION_ADD_PRODUCTS = '''
mutation collectionAddProducts($id: ID!, $productIds: [ID!]!) {
  collectionAddProducts(id: $id, productIds: $productIds) {
    collection {
      id
    }
    userErrors {
      field
      message
    }
  }
}
'''
