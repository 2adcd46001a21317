"""Shopify Admin GraphQL documents."""

PRODUCTS = """
query getProducts($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    edges {
      node {
        id
        title
        handle
        description
        productType
        vendor
        tags
        onlineStoreUrl
        priceRangeV2 {
          minVariantPrice { amount currencyCode }
        }
        images(first: 10) {
          edges { node { url altText } }
        }
        variants(first: 100) {
          edges { node { id title price availableForSale } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PRODUCT_BY_ID = """
query getProduct($id: ID!) {
  product(id: $id) {
    id
    title
    handle
    description
    productType
    vendor
    tags
    onlineStoreUrl
    priceRangeV2 {
      minVariantPrice { amount currencyCode }
    }
    images(first: 10) {
      edges { node { url altText } }
    }
    variants(first: 100) {
      edges { node { id title price availableForSale } }
    }
  }
}
"""

PRODUCT_BY_HANDLE = """
query getProductByHandle($handle: String!) {
  productByHandle(handle: $handle) {
    id
    title
    handle
    description
    productType
    vendor
    tags
    onlineStoreUrl
    priceRangeV2 {
      minVariantPrice { amount currencyCode }
    }
    images(first: 10) {
      edges { node { url altText } }
    }
    variants(first: 100) {
      edges { node { id title price availableForSale } }
    }
  }
}
"""

_ORDER_FIELDS = """
        id
        name
        email
        createdAt
        displayFinancialStatus
        displayFulfillmentStatus
        totalPriceSet { shopMoney { amount currencyCode } }
        lineItems(first: 50) {
          edges { node { title quantity variantTitle } }
        }
        fulfillments(first: 5) {
          trackingInfo { number url company }
        }
"""

ORDERS_BY_QUERY = (
    """
query getOrders($query: String!, $first: Int!) {
  orders(first: $first, query: $query, sortKey: CREATED_AT, reverse: true) {
    edges {
      node {
"""
    + _ORDER_FIELDS
    + """
      }
    }
  }
}
"""
)

_CUSTOMER_FIELDS = """
      id
      email
      firstName
      lastName
      phone
      note
      numberOfOrders
"""

CUSTOMER_BY_EMAIL = (
    """
query getCustomer($query: String!) {
  customers(first: 1, query: $query) {
    edges {
      node {
"""
    + _CUSTOMER_FIELDS
    + """
      }
    }
  }
}
"""
)

CUSTOMER_BY_ID = (
    """
query getCustomerById($id: ID!) {
  customer(id: $id) {
"""
    + _CUSTOMER_FIELDS
    + """
  }
}
"""
)

CUSTOMER_ORDERS_BY_ID = (
    """
query getCustomerOrders($id: ID!, $first: Int!) {
  customer(id: $id) {
    orders(first: $first, sortKey: CREATED_AT, reverse: true) {
      edges {
        node {
"""
    + _ORDER_FIELDS
    + """
        }
      }
    }
  }
}
"""
)

SHOP_POLICIES = """
query getShopPolicies {
  shop {
    shippingPolicy { body }
    refundPolicy { body }
    privacyPolicy { body }
    termsOfService { body }
  }
}
"""

CUSTOMER_UPDATE_NOTE = """
mutation customerUpdate($input: CustomerInput!) {
  customerUpdate(input: $input) {
    customer { id note }
    userErrors { field message }
  }
}
"""

DRAFT_ORDER_CREATE = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id name }
    userErrors { field message }
  }
}
"""
