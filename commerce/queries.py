"""GraphQL documents sent to the Shopify Admin API."""

ORDER_BY_NAME = """
query ($q: String!) {
  orders(first: 1, query: $q) {
    edges {
      node {
        id
        name
        displayFulfillmentStatus
        tags
        lineItems(first: 1) { edges { node { product { id } } } }
        fulfillments { id status trackingInfo { number url company } }
        fulfillmentOrders(first: 10) { nodes { id status } }
      }
    }
  }
}
"""

FULFILLMENT_ORDERS = """
query GetFulfillmentOrders($orderId: ID!) {
  order(id: $orderId) {
    id
    name
    tags
    fulfillmentOrders(first: 10) {
      edges {
        node {
          id
          status
          lineItems(first: 20) {
            edges { node { id remainingQuantity lineItem { id name sku quantity } } }
          }
        }
      }
    }
  }
}
"""

FULFILLMENT_CREATE = """
mutation FulfillmentCreate($fulfillment: FulfillmentInput!) {
  fulfillmentCreate(fulfillment: $fulfillment) {
    fulfillment { id status createdAt trackingInfo { company number url } }
    userErrors { field message }
  }
}
"""

FULFILLMENT_EVENT_CREATE = """
mutation AddEvent($input: FulfillmentEventInput!) {
  fulfillmentEventCreate(fulfillmentEvent: $input) {
    fulfillmentEvent { id status createdAt }
    userErrors { field message }
  }
}
"""

ORDER_PRODUCTS = """
query ($q: String!) {
  orders(first: 1, query: $q) {
    edges {
      node {
        lineItems(first: 20) { edges { node { product { handle featuredImage { url } } } } }
      }
    }
  }
}
"""
