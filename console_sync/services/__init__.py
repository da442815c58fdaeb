"""Services: local inventory, catalog, reconciliation and orchestration."""
