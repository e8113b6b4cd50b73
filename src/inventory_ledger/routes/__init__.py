"""HTTP routers for products and adjustments."""
