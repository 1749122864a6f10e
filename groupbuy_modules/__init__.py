"""Business modules: catalog (projects, products) and orders."""
