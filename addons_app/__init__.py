"""Product add-ons Shopify app backend."""
