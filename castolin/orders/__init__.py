"""Orders: line item reconciliation, reads and batch creation."""
